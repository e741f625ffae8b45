from __future__ import annotations

import dash
import dash_bootstrap_components as dbc
import pandas as pd
import plotly.express as px
from dash import dash_table, dcc, html

from teal_dash.core.composer import compose
from teal_dash.core.filter_slices import FilterSlice, filter_slices
from teal_dash.core.module import Module
from teal_dash.core.namespace import OUTPUT_TYPE, STAGE_STATUS_TYPE, input_id, output_id
from teal_dash.core.reactive import ReactiveGraph, req
from teal_dash.core.transformator import Transformator
from teal_dash.ui.helpers import (
    PENDING_TEXT,
    collect_filter_state,
    collect_pattern_values,
    render_node,
    render_outputs,
    render_stage_statuses,
    render_value,
)


def _entry(component_id, value=None):
    return {"id": component_id, "property": "value", "value": value}


def _echo_server(ns_id, inputs):
    def echo(text):
        req(text)
        return text.upper()

    return inputs.graph.computed(f"{ns_id}:echo", echo, deps=[inputs["text"]])


def test_collect_pattern_values_groups_by_namespace():
    entries = [
        _entry(input_id("root-a", "x"), 1),
        _entry(input_id("root-a", "y"), "b"),
        _entry(input_id("root-b-transform-t", "n"), None),
    ]
    assert collect_pattern_values(entries) == {
        "root-a": {"x": 1, "y": "b"},
        "root-b-transform-t": {"n": None},
    }


def test_collect_filter_state_normalises_selections():
    active = [_entry({"type": "teal-filter-active", "panel": "global_filters"}, ["iris Species", "iris Length"])]
    selected = [
        _entry({"type": "teal-filter-selected", "panel": "global_filters", "slice": "iris Species"}, []),
        _entry({"type": "teal-filter-selected", "panel": "global_filters", "slice": "iris Color"}, "red"),
    ]
    ranges = [
        _entry({"type": "teal-filter-range", "panel": "global_filters", "slice": "iris Length"}, [1.0, 7.0]),
        _entry({"type": "teal-filter-range", "panel": "global_filters", "slice": "iris Width"}, [0.5, 1.0]),
    ]
    bounds = {("global_filters", "iris Length"): (1.0, 7.0), ("global_filters", "iris Width"): (0.1, 2.5)}

    filter_active, filter_selected = collect_filter_state(active, selected, ranges, bounds)

    assert filter_active == {"global_filters": ["iris Species", "iris Length"]}
    assert filter_selected == {
        "global_filters": {
            "iris Species": None,
            "iris Color": ["red"],
            "iris Length": None,
            "iris Width": [0.5, 1.0],
        }
    }


def test_render_value_picks_a_component_per_type():
    df = pd.DataFrame({"a": [1, 2]})
    assert isinstance(render_value(px.scatter(df, x="a", y="a")), dcc.Graph)
    assert isinstance(render_value(df), dash_table.DataTable)
    div = html.Div("x")
    assert render_value(div) is div
    assert render_value(None) is None
    assert render_value("hello").children == "hello"


def test_render_node_reports_pending_and_errors():
    graph = ReactiveGraph()
    source = graph.value("x")
    pending = graph.computed("p", lambda v: v, deps=[source])
    assert render_node(pending).children == PENDING_TEXT

    ok = graph.value("ok", 1)
    failing = graph.computed("f", lambda v: 1 / 0, deps=[ok])
    alert = render_node(failing)
    assert isinstance(alert, dbc.Alert)
    assert alert.color == "danger"
    assert "division by zero" in alert.children[1]


def test_render_outputs_skips_unchanged_outputs():
    definition = compose({"iris": pd.DataFrame({"a": [1]})}, Module(label="M", server=_echo_server))
    session = definition.start_session()
    outputs = [{"id": output_id("root-m"), "property": "children"}]

    first = render_outputs(session, outputs)
    assert first[0].children == PENDING_TEXT
    assert render_outputs(session, outputs) == [dash.no_update]

    session.set_inputs({"root-m": {"text": "hi"}})
    assert render_outputs(session, outputs)[0].children == "HI"


def test_render_outputs_for_unknown_output():
    definition = compose({"iris": pd.DataFrame({"a": [1]})}, Module(label="M"))
    session = definition.start_session()
    outputs = [{"id": {"type": OUTPUT_TYPE, "ns": "root-m", "name": "other"}, "property": "children"}]
    assert "not available" in render_outputs(session, outputs)[0].children


def test_render_stage_statuses_shows_stage_errors():
    definition = compose(
        {"iris": pd.DataFrame({"a": [1]})},
        Module(label="M"),
        transformators=[
            Transformator.from_function("Good", lambda b: b),
            Transformator.from_function("Bad", lambda b: 1 / 0),
        ],
    )
    session = definition.start_session()
    outputs = [
        {"id": {"type": STAGE_STATUS_TYPE, "ns": "root-m-app_transform-good"}, "property": "children"},
        {"id": {"type": STAGE_STATUS_TYPE, "ns": "root-m-app_transform-bad"}, "property": "children"},
    ]
    good, bad = render_stage_statuses(session, outputs)

    assert good is None
    assert isinstance(bad, dbc.Alert)


def test_failing_filter_renders_an_alert_not_a_placeholder():
    definition = compose(
        {"iris": pd.DataFrame({"a": [1]})},
        Module(label="M", server=lambda ns_id, data: data.graph.computed(f"{ns_id}:n", len, deps=[data])),
        filter=filter_slices(FilterSlice("iris", id="bad", expr="missing_col > 1")),
    )
    session = definition.start_session()

    rendered = render_outputs(session, [{"id": output_id("root-m"), "property": "children"}])
    statuses = render_stage_statuses(
        session, [{"id": {"type": STAGE_STATUS_TYPE, "ns": "root-m-data"}, "property": "children"}]
    )

    assert isinstance(rendered[0], dbc.Alert)
    assert isinstance(statuses[0], dbc.Alert)

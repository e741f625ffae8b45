from __future__ import annotations

import dash
import dash_bootstrap_components as dbc
import pandas as pd
from dash import dcc

from teal_dash.core.composer import compose
from teal_dash.core.filter_slices import GLOBAL_FILTERS, FilterSlice, filter_slices
from teal_dash.core.module import Module, modules
from teal_dash.core.transformator import Transformator
from teal_dash.services.session_service import SessionManager
from teal_dash.ui.dash_app import create_dash_app
from teal_dash.ui.ids import IDs, filter_active_id, filter_body_id, filter_range_id, filter_selected_id, show_code_id
from teal_dash.ui.layout.build_filter_panel import build_filter_controls, range_bounds
from teal_dash.ui.layout.build_layout import build_layout


def _make_data():
    return {
        "iris": pd.DataFrame(
            {"Species": ["setosa", "setosa", "virginica"], "Length": [1.0, 1.5, 5.0]}
        ),
        "mtcars": pd.DataFrame({"cyl": [4, 6, 8]}),
    }


def _make_definition(**filter_kwargs):
    spec = filter_slices(
        FilterSlice("iris", "Species", selected=["setosa"]),
        FilterSlice("iris", "Length"),
        FilterSlice("mtcars", "cyl"),
        **filter_kwargs,
    )
    return compose(
        _make_data(),
        modules(
            modules(Module(label="Iris", datanames=["iris"]), Module(label="Cars", datanames=["mtcars"]), label="Data"),
            Module(label="About", datanames=None),
        ),
        filter=spec,
        title="Layout test",
    )


def _walk(component):
    yield component
    children = getattr(component, "children", None)
    if children is None:
        return
    if not isinstance(children, (list, tuple)):
        children = [children]
    for child in children:
        if hasattr(child, "to_plotly_json"):
            yield from _walk(child)


def _ids(component):
    return [getattr(c, "id", None) for c in _walk(component) if getattr(c, "id", None) is not None]


def test_layout_carries_the_session_id():
    session = _make_definition().start_session("abc")
    layout = build_layout(session)
    stores = [c for c in _walk(layout) if isinstance(c, dcc.Store)]
    assert [(s.id, s.data) for s in stores] == [(IDs.Store.SESSION_ID, "abc")]


def test_global_filters_render_a_single_panel():
    layout = build_layout(_make_definition().start_session())
    ids = _ids(layout)
    assert ids.count(filter_body_id(GLOBAL_FILTERS)) == 1
    assert filter_active_id(GLOBAL_FILTERS) in ids
    assert filter_selected_id(GLOBAL_FILTERS, "iris Species") in ids
    assert filter_range_id(GLOBAL_FILTERS, "iris Length") in ids


def test_module_specific_filters_render_one_panel_per_module_with_datanames():
    definition = _make_definition(module_specific=True, mapping={"Iris": ["iris Species"]})
    ids = _ids(build_layout(definition.start_session()))

    assert filter_body_id("root-data-iris") in ids
    assert filter_body_id("root-data-cars") in ids
    assert filter_body_id("root-about") not in ids
    assert filter_body_id(GLOBAL_FILTERS) not in ids


def test_module_panel_only_offers_slices_for_its_datasets():
    definition = _make_definition(module_specific=True, mapping={"Iris": ["iris Species"]})
    session = definition.start_session()
    children = build_filter_controls(session, "root-data-cars", ["mtcars"])
    checklist = next(c for c in children if isinstance(c, dbc.Checklist))

    assert [o["value"] for o in checklist.options] == ["mtcars cyl"]
    assert checklist.value == []


def test_tabs_mirror_the_module_tree():
    layout = build_layout(_make_definition().start_session())
    tabs = [c for c in _walk(layout) if isinstance(c, dbc.Tabs)]

    assert tabs[0].id == IDs.Control.MODULE_TABS
    assert [t.label for t in tabs[0].children] == ["Data", "About"]
    assert [t.label for t in tabs[1].children] == ["Iris", "Cars"]
    assert show_code_id("root-about") in _ids(layout)


def test_range_bounds_only_for_numeric_value_slices():
    df = _make_data()["iris"]
    assert range_bounds(FilterSlice("iris", "Length"), df) == (1.0, 5.0)
    assert range_bounds(FilterSlice("iris", "Species"), df) is None
    assert range_bounds(FilterSlice("iris", "Length", choices=[1.0]), df) is None


def test_create_dash_app_starts_a_session_per_page_load():
    definition = _make_definition()
    sessions = SessionManager(definition)
    app = create_dash_app(definition, sessions=sessions)

    assert isinstance(app, dash.Dash)
    assert app.title == "Layout test"

    first = app.layout()
    second = app.layout()
    first_id = next(c.data for c in _walk(first) if isinstance(c, dcc.Store))
    second_id = next(c.data for c in _walk(second) if isinstance(c, dcc.Store))

    assert first_id != second_id
    assert set(sessions.session_ids) >= {first_id, second_id}


def test_module_panel_covers_datasets_of_its_transformators():
    definition = compose(
        _make_data(),
        Module(
            label="Iris",
            datanames=["iris"],
            transformators=[Transformator.from_function("Cars", lambda b: b, datanames=["mtcars"])],
        ),
        filter=filter_slices(FilterSlice("iris", "Species"), FilterSlice("mtcars", "cyl"), module_specific=True),
    )
    ids = _ids(build_layout(definition.start_session()))

    assert filter_range_id("root-iris", "mtcars cyl") in ids
    assert filter_selected_id("root-iris", "iris Species") in ids

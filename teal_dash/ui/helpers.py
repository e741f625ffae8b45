from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import dash
import dash_bootstrap_components as dbc
import pandas as pd
from dash import dash_table, dcc, html
from dash.development.base_component import Component
from plotly.basedatatypes import BaseFigure

from teal_dash.core.bundle import DataBundle
from teal_dash.core.pipeline import StageState
from teal_dash.core.reactive import Node, NodeStatus
from teal_dash.core.session import Session

logger = logging.getLogger(__name__)

PENDING_TEXT = "Waiting for input..."
FONT_FAMILY = 'system-ui, -apple-system, BlinkMacSystemFont, "SF Pro Text", "Segoe UI", sans-serif'


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------
def _message(text: str, class_name: str = "text-muted") -> html.Div:
    return html.Div(text, className=f"{class_name} teal-message small")


def error_alert(message: str, title: str = "Error") -> dbc.Alert:
    return dbc.Alert(
        [html.Strong(f"{title}: "), message],
        color="danger",
        className="teal-error mb-2",
    )


def data_table(df: pd.DataFrame, max_rows: int = 20) -> dash_table.DataTable:
    """
    Styled Dash DataTable for a DataFrame, paged by `max_rows`.
    """
    df = df.reset_index(drop=df.index.name is None)
    df.columns = [str(c) for c in df.columns]

    return dash_table.DataTable(
        data=df.to_dict("records"),
        columns=[{"name": c, "id": c} for c in df.columns],
        style_table={"overflowX": "auto"},
        style_as_list_view=True,
        style_cell={
            "fontFamily": FONT_FAMILY,
            "fontSize": "12px",
            "padding": "6px 8px",
            "border": "none",
            "textAlign": "left",
            "minWidth": "80px",
            "maxWidth": "260px",
            "whiteSpace": "nowrap",
            "textOverflow": "ellipsis",
        },
        style_header={
            "fontFamily": FONT_FAMILY,
            "fontSize": "12px",
            "fontWeight": "600",
            "backgroundColor": "#f3f4f6",
            "borderBottom": "1px solid #e5e7eb",
        },
        style_data={"borderBottom": "1px solid #e5e7eb"},
        page_size=max_rows,
        sort_action="native",
        filter_action="none",
    )


def bundle_summary(bundle: DataBundle) -> html.Ul:
    return html.Ul(
        [
            html.Li(f"{name}: {df.shape[0]} rows x {df.shape[1]} columns")
            for name, df in bundle.datasets.items()
        ],
        className="teal-bundle-summary mb-0",
    )


def render_value(value: Any) -> Any:
    """
    Turn a server result into Dash children.

    Figures go into dcc.Graph, DataFrames into a DataTable; Dash components
    are returned unchanged.
    """
    if value is None:
        return None
    if isinstance(value, Component):
        return value
    if isinstance(value, BaseFigure):
        return dcc.Graph(figure=value, config={"displaylogo": False})
    if isinstance(value, pd.DataFrame):
        return data_table(value)
    if isinstance(value, pd.Series):
        return data_table(value.to_frame())
    if isinstance(value, DataBundle):
        return bundle_summary(value)
    if isinstance(value, (str, int, float)):
        return html.Div(str(value))
    return html.Pre(repr(value), className="teal-pre")


def render_node(node: Optional[Node]) -> Any:
    if node is None:
        return _message("Output not available.")
    if node.status is NodeStatus.ERROR:
        message = str(node.error) or type(node.error).__name__
        return error_alert(message)
    if node.status is NodeStatus.PENDING:
        return _message(PENDING_TEXT)
    try:
        return render_value(node.value)
    except Exception as e:
        logger.exception("Failed to render output", extra={"node": node.name})
        return error_alert(str(e) or type(e).__name__, title="Rendering failed")


def render_stage(stage: Optional[StageState]) -> Any:
    if stage is None:
        return None
    if stage.status is NodeStatus.ERROR:
        return error_alert(stage.error_message or "", title=f"{stage.label} failed")
    return None


# -----------------------------------------------------------------------------
# Pattern-matching callback plumbing
# -----------------------------------------------------------------------------
def collect_pattern_values(entries: Iterable[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Group `dash.ctx.inputs_list` entries of namespaced inputs by namespace.

    :return: ns id -> {input name: value}
    """
    values: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        component_id = entry["id"]
        values.setdefault(component_id["ns"], {})[component_id["name"]] = entry.get("value")
    return values


def _as_selection(value: Any) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value) or None
    return [value]


def collect_filter_state(
    active_entries: Iterable[Mapping[str, Any]],
    selected_entries: Iterable[Mapping[str, Any]],
    range_entries: Iterable[Mapping[str, Any]] = (),
    range_bounds: Optional[Mapping[Tuple[str, str], Tuple[Any, Any]]] = None,
) -> Tuple[Dict[str, List[str]], Dict[str, Dict[str, Optional[List[Any]]]]]:
    """
    Turn filter-panel callback entries into `Session.update` arguments.

    Empty selections mean "no filter", as does a range slider spanning the
    whole column.
    """
    active: Dict[str, List[str]] = {}
    for entry in active_entries:
        active[entry["id"]["panel"]] = list(entry.get("value") or [])

    selected: Dict[str, Dict[str, Optional[List[Any]]]] = {}
    for entry in selected_entries:
        component_id = entry["id"]
        panel = selected.setdefault(component_id["panel"], {})
        panel[component_id["slice"]] = _as_selection(entry.get("value"))

    bounds = range_bounds or {}
    for entry in range_entries:
        component_id = entry["id"]
        key = (component_id["panel"], component_id["slice"])
        value = _as_selection(entry.get("value"))
        if value is not None and key in bounds and tuple(value) == tuple(bounds[key]):
            value = None
        selected.setdefault(component_id["panel"], {})[component_id["slice"]] = value

    return active, selected


def _output_token(node: Optional[Node]) -> Any:
    if node is None:
        return None
    return node.status, node.version, id(node.error)


def render_outputs(session: Session, outputs: Iterable[Mapping[str, Any]]) -> List[Any]:
    """
    Children for every module output placeholder in `outputs`
    (`dash.ctx.outputs_list` entries). Outputs unchanged since the last
    render of this session are left as `dash.no_update`.
    """
    rendered = session.view_state.setdefault("outputs", {})
    children = []
    for entry in outputs:
        component_id = entry["id"]
        key = (component_id["ns"], component_id["name"])
        try:
            node = session.output(*key)
        except KeyError:
            node = None

        token = _output_token(node)
        if key in rendered and rendered[key] == token:
            children.append(dash.no_update)
            continue
        rendered[key] = token
        children.append(render_node(node))
    return children


def render_stage_statuses(session: Session, outputs: Iterable[Mapping[str, Any]]) -> List[Any]:
    stages = session.stage_states()
    rendered = session.view_state.setdefault("stages", {})
    children = []
    for entry in outputs:
        ns_id = entry["id"]["ns"]
        stage = stages.get(ns_id)
        token = None if stage is None else (stage.status, stage.error_message)
        if ns_id in rendered and rendered[ns_id] == token:
            children.append(dash.no_update)
            continue
        rendered[ns_id] = token
        children.append(render_stage(stage))
    return children

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

import dash
from dash import MATCH, Input, Output, State
from dash.exceptions import PreventUpdate

from teal_dash.core.exceptions import DefinitionError, SessionBusyError
from teal_dash.core.filter_slices import GLOBAL_FILTERS
from teal_dash.ui.helpers import error_alert
from teal_dash.ui.ids import IDs
from teal_dash.ui.layout.build_filter_panel import build_filter_controls

if TYPE_CHECKING:
    from teal_dash.ui.context import AppContext

logger = logging.getLogger(__name__)


def _panel_datanames(ctx: AppContext, key: str) -> Optional[List[str]]:
    if key == GLOBAL_FILTERS:
        return None
    node = ctx.definition.find(key)
    return node.item.visible_datanames(ctx.definition.data)


def register_filter_callbacks(app: dash.Dash, ctx: AppContext) -> None:
    # ---------------------------------------------------------
    # Variables offered for a new filter
    # ---------------------------------------------------------
    @app.callback(
        Output({"type": IDs.Pattern.ADD_FILTER_VARNAME, "panel": MATCH}, "options"),
        Output({"type": IDs.Pattern.ADD_FILTER_VARNAME, "panel": MATCH}, "value"),
        Input({"type": IDs.Pattern.ADD_FILTER_DATANAME, "panel": MATCH}, "value"),
    )
    def update_varname_options(dataname: Optional[str]):
        data = ctx.definition.data
        if not dataname or dataname not in data:
            return [], None
        varnames = ctx.definition.filter.available_varnames(dataname, data[dataname])
        return [{"label": v, "value": v} for v in varnames], None

    # ---------------------------------------------------------
    # Add a filter slice to a panel
    # ---------------------------------------------------------
    @app.callback(
        Output({"type": IDs.Pattern.FILTER_BODY, "panel": MATCH}, "children"),
        Output({"type": IDs.Pattern.ADD_FILTER_STATUS, "panel": MATCH}, "children"),
        Input({"type": IDs.Pattern.ADD_FILTER_BTN, "panel": MATCH}, "n_clicks"),
        State({"type": IDs.Pattern.ADD_FILTER_DATANAME, "panel": MATCH}, "value"),
        State({"type": IDs.Pattern.ADD_FILTER_VARNAME, "panel": MATCH}, "value"),
        State(IDs.Store.SESSION_ID, "data"),
        prevent_initial_call=True,
    )
    def add_filter(n_clicks, dataname, varname, session_id):
        if not n_clicks or not session_id:
            raise PreventUpdate

        key = dash.ctx.triggered_id["panel"]
        if not dataname or not varname:
            return dash.no_update, error_alert("Pick a dataset and a variable first.", title="Cannot add filter")

        session = ctx.session(session_id)
        try:
            filter_slice = session.add_filter(key, dataname, varname)
        except SessionBusyError:
            raise PreventUpdate
        except DefinitionError as e:
            logger.warning("Add filter rejected", extra={"panel": key, "error": str(e)})
            return dash.no_update, error_alert(str(e), title="Cannot add filter")

        controls = build_filter_controls(session, key, _panel_datanames(ctx, key))
        return controls, f"Added {filter_slice.label}"

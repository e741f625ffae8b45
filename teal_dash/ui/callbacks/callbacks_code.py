from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import dash
from dash import MATCH, Input, Output, State
from dash.exceptions import PreventUpdate

from teal_dash.ui.ids import IDs

if TYPE_CHECKING:
    from teal_dash.ui.context import AppContext

logger = logging.getLogger(__name__)

NO_CODE = "# No data has reached this module yet"


def register_code_callbacks(app: dash.Dash, ctx: AppContext) -> None:
    @app.callback(
        Output({"type": IDs.Pattern.CODE_MODAL, "ns": MATCH}, "is_open"),
        Output({"type": IDs.Pattern.CODE_BODY, "ns": MATCH}, "children"),
        Input({"type": IDs.Pattern.SHOW_CODE_BTN, "ns": MATCH}, "n_clicks"),
        State(IDs.Store.SESSION_ID, "data"),
        prevent_initial_call=True,
    )
    def show_code(n_clicks, session_id):
        if not n_clicks or not session_id:
            raise PreventUpdate

        ns_id = dash.ctx.triggered_id["ns"]
        session = ctx.session(session_id)
        code = session.code(ns_id)
        logger.info("code_shown", extra={"session_id": session_id, "ns": ns_id})
        return True, code or NO_CODE

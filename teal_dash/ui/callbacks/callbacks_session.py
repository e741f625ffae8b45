from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import dash
from dash import ALL, Input, Output, State
from dash.exceptions import PreventUpdate

from teal_dash.core.exceptions import DefinitionError, SessionBusyError
from teal_dash.core.namespace import INPUT_TYPE, OUTPUT_TYPE, STAGE_STATUS_TYPE
from teal_dash.ui.helpers import (
    collect_filter_state,
    collect_pattern_values,
    render_outputs,
    render_stage_statuses,
)
from teal_dash.ui.ids import IDs

if TYPE_CHECKING:
    from teal_dash.ui.context import AppContext

logger = logging.getLogger(__name__)


def register_session_callbacks(app: dash.Dash, ctx: AppContext) -> None:
    # ---------------------------------------------------------
    # Browser state -> session graph -> rendered outputs
    # ---------------------------------------------------------
    @app.callback(
        Output({"type": OUTPUT_TYPE, "ns": ALL, "name": ALL}, "children"),
        Output({"type": STAGE_STATUS_TYPE, "ns": ALL}, "children"),
        Input(IDs.Store.SESSION_ID, "data"),
        Input({"type": INPUT_TYPE, "ns": ALL, "name": ALL}, "value"),
        Input({"type": IDs.Pattern.FILTER_ACTIVE, "panel": ALL}, "value"),
        Input({"type": IDs.Pattern.FILTER_SELECTED, "panel": ALL, "slice": ALL}, "value"),
        Input({"type": IDs.Pattern.FILTER_RANGE, "panel": ALL, "slice": ALL}, "value"),
        State({"type": IDs.Pattern.FILTER_RANGE, "panel": ALL, "slice": ALL}, "min"),
        State({"type": IDs.Pattern.FILTER_RANGE, "panel": ALL, "slice": ALL}, "max"),
    )
    def sync_session(session_id, _inputs, _active, _selected, _ranges, range_min, range_max):
        if not session_id:
            raise PreventUpdate

        session = ctx.session(session_id)
        input_entries, active_entries, selected_entries, range_entries = dash.ctx.inputs_list[1:5]
        output_entries, stage_entries = dash.ctx.outputs_list

        bounds = {
            (entry["id"]["panel"], entry["id"]["slice"]): (low, high)
            for entry, low, high in zip(range_entries, range_min, range_max)
        }
        filter_active, filter_selected = collect_filter_state(
            active_entries, selected_entries, range_entries, bounds
        )
        known_panels = session.filters.panels
        filter_active = {k: v for k, v in filter_active.items() if k in known_panels}
        filter_selected = {k: v for k, v in filter_selected.items() if k in known_panels}

        try:
            evaluated = session.update(
                inputs=collect_pattern_values(input_entries),
                filter_active=filter_active,
                filter_selected=filter_selected,
            )
        except SessionBusyError:
            logger.info("Session busy, dropping update", extra={"session_id": session_id})
            raise PreventUpdate
        except DefinitionError as e:
            # nothing was applied; render what the session currently holds
            logger.warning(
                "Rejected browser state",
                exc_info=e,
                extra={"session_id": session_id},
            )
            evaluated = []

        logger.debug(
            "session_synced",
            extra={"session_id": session_id, "n_evaluated": len(evaluated)},
        )
        return (
            render_outputs(session, output_entries),
            render_stage_statuses(session, stage_entries),
        )

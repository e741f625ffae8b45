from __future__ import annotations

from typing import Optional

import dash_bootstrap_components as dbc
from dash import dcc

from teal_dash.core.filter_slices import GLOBAL_FILTERS
from teal_dash.core.session import Session
from teal_dash.ui.ids import IDs
from teal_dash.ui.layout.build_filter_panel import build_filter_panel
from teal_dash.ui.layout.build_module_tabs import build_module_tabs
from teal_dash.ui.layout.build_navbar import build_navbar


def build_layout(session: Session, subtitle: Optional[str] = None) -> dbc.Container:
    """
    Page layout for one session: navbar, session store, and the module tabs,
    with the shared filter panel on the left unless filters are module-specific.
    """
    definition = session.definition
    tabs = build_module_tabs(session, definition.tree, tabs_id=IDs.Control.MODULE_TABS)

    uses_global_panel = not session.filters.module_specific and any(
        leaf.item.has_filter_panel for leaf in definition.leaves
    )
    if uses_global_panel:
        body = dbc.Row(
            [
                dbc.Col(build_filter_panel(session, GLOBAL_FILTERS), md=3, className="mt-3"),
                dbc.Col(tabs, md=9, className="mt-3"),
            ],
            className="gx-3",
        )
    else:
        body = tabs

    return dbc.Container(
        fluid=True,
        className="teal-root",
        children=[
            build_navbar(definition.title, subtitle),
            dcc.Store(id=IDs.Store.SESSION_ID, data=session.id),
            body,
        ],
    )

from __future__ import annotations

from typing import Optional

import dash_bootstrap_components as dbc
from dash import html

from teal_dash.ui.ids import IDs


def build_navbar(title: str, subtitle: Optional[str] = None) -> dbc.Navbar:
    return dbc.Navbar(
        dbc.Container(
            fluid=True,
            children=[
                html.Div(
                    [
                        html.H2(title, className="mb-0"),
                        html.Small(
                            subtitle or "",
                            className="text-muted",
                            id=IDs.Control.NAVBAR_SUBTITLE,
                        ),
                    ],
                    className="d-flex flex-column justify-content-center",
                ),
            ],
        ),
        dark=False,
        className="shadow-sm teal-navbar mb-2",
    )

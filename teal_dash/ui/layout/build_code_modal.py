from __future__ import annotations

import dash_bootstrap_components as dbc
from dash import html

from teal_dash.ui.ids import code_body_id, code_modal_id, show_code_id


def build_code_modal(ns_id: str) -> html.Div:
    """
    "Show code" button plus the modal displaying the provenance script of
    the data the module at `ns_id` currently sees.
    """
    return html.Div(
        [
            dbc.Button(
                "Show code",
                id=show_code_id(ns_id),
                n_clicks=0,
                size="sm",
                color="secondary",
                outline=True,
                className="mt-2",
            ),
            dbc.Modal(
                [
                    dbc.ModalHeader(dbc.ModalTitle("Reproducible code")),
                    dbc.ModalBody(
                        html.Pre(id=code_body_id(ns_id), className="teal-code mb-0"),
                    ),
                ],
                id=code_modal_id(ns_id),
                is_open=False,
                size="lg",
                scrollable=True,
            ),
        ],
        className="teal-code-block",
    )

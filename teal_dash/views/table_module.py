from __future__ import annotations

from typing import Dict, List, Optional

import dash_bootstrap_components as dbc
from dash import html

from teal_dash.core.bundle import DataBundle
from teal_dash.core.inputs import InputScope
from teal_dash.core.module import ALL, Module
from teal_dash.core.namespace import input_id, output_id
from teal_dash.core.reactive import Node
from teal_dash.core.transformator import Transformator
from teal_dash.ui.helpers import data_table

DEFAULT_ROWS = 10


def preview_tables(bundle: DataBundle, n_rows: int) -> html.Div:
    children = []
    for name, df in bundle.datasets.items():
        children.append(html.H6(f"{name} ({df.shape[0]} rows)", className="mt-3"))
        children.append(data_table(df.head(n_rows), max_rows=n_rows))
    return html.Div(children)


def data_table_module(
    label: str = "Data",
    datanames=ALL,
    n_rows: int = DEFAULT_ROWS,
    transformators: Optional[List[Transformator]] = None,
) -> Module:
    """
    Preview of every dataset the module sees, after filters and transformators.
    """

    def ui(ns_id: str) -> html.Div:
        return html.Div(
            [
                dbc.InputGroup(
                    [
                        dbc.InputGroupText("Rows"),
                        dbc.Input(id=input_id(ns_id, "n_rows"), type="number", min=1, step=1, value=n_rows),
                    ],
                    size="sm",
                    style={"maxWidth": "200px"},
                ),
                html.Div(id=output_id(ns_id)),
            ]
        )

    def server(ns_id: str, data: Node, inputs: InputScope) -> Dict[str, Node]:
        def tables(bundle: DataBundle, rows) -> html.Div:
            rows = int(rows) if rows else n_rows
            return preview_tables(bundle, max(rows, 1))

        return {"main": data.graph.computed(f"{ns_id}:tables", tables, deps=[data, inputs["n_rows"]])}

    return Module(
        label=label,
        server=server,
        ui=ui,
        datanames=datanames,
        transformators=list(transformators or []),
    )

from __future__ import annotations

from typing import List, Optional, Sequence

import dash_bootstrap_components as dbc
import pandas as pd
import plotly.express as px
from dash import dcc, html
from plotly.graph_objs import Figure

from teal_dash.core.bundle import DataBundle
from teal_dash.core.inputs import InputScope
from teal_dash.core.module import Module
from teal_dash.core.namespace import input_id, output_id
from teal_dash.core.reactive import Node, req


def _column_dropdown(ns_id: str, name: str, label: str, columns: Sequence[str], value: Optional[str]) -> dbc.Col:
    return dbc.Col(
        [
            html.Label(label, className="form-label"),
            dcc.Dropdown(
                id=input_id(ns_id, name),
                options=[{"label": c, "value": c} for c in columns],
                value=value,
                clearable=name == "color",
            ),
        ],
        md=4,
    )


def scatter_figure(df: pd.DataFrame, x: str, y: str, color: Optional[str], title: str) -> Figure:
    if df.empty:
        fig = px.scatter(title=f"{title} (no rows after filtering)")
        fig.update_layout(margin=dict(l=40, r=40, t=40, b=40))
        return fig

    for col in (x, y, color):
        if col is not None and col not in df.columns:
            raise ValueError(f"Column '{col}' not found. Available columns: {list(df.columns)}")

    fig = px.scatter(df, x=x, y=y, color=color, title=title)
    fig.update_traces(marker=dict(size=6))
    fig.update_layout(margin=dict(l=40, r=40, t=40, b=40))
    return fig


def scatterplot_module(
    label: str,
    dataname: str,
    columns: List[str],
    x: Optional[str] = None,
    y: Optional[str] = None,
    color: Optional[str] = None,
) -> Module:
    """
    Scatter plot of two columns of one dataset, optionally coloured by a third.

    :param columns: columns offered in the axis dropdowns
    """
    if len(columns) < 2:
        raise ValueError("scatterplot_module needs at least two columns")

    def ui(ns_id: str) -> html.Div:
        return html.Div(
            [
                dbc.Row(
                    [
                        _column_dropdown(ns_id, "x", "X axis", columns, x or columns[0]),
                        _column_dropdown(ns_id, "y", "Y axis", columns, y or columns[1]),
                        _column_dropdown(ns_id, "color", "Colour", columns, color),
                    ],
                    className="mb-2",
                ),
                html.Div(id=output_id(ns_id)),
            ]
        )

    def server(ns_id: str, data: Node, inputs: InputScope) -> Node:
        def plot(bundle: DataBundle, x_col: Optional[str], y_col: Optional[str], color_col: Optional[str]) -> Figure:
            req(x_col, y_col)
            return scatter_figure(bundle[dataname], x_col, y_col, color_col, title=f"{dataname}: {y_col} vs {x_col}")

        return data.graph.computed(
            f"{ns_id}:plot",
            plot,
            deps=[data, inputs["x"], inputs["y"], inputs["color"]],
        )

    return Module(label=label, server=server, ui=ui, datanames=[dataname])

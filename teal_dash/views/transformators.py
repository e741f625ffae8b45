from __future__ import annotations

from typing import Dict, List, Optional

import dash_bootstrap_components as dbc
import pandas as pd
from dash import dcc, html

from teal_dash.core.bundle import DataBundle
from teal_dash.core.namespace import input_id
from teal_dash.core.reactive import req
from teal_dash.core.transformator import Transformator

ROWNAMES = "rownames"


# -----------------------------------------------------------------------------
# Step functions (recorded in the provenance log, so they stay module-level)
# -----------------------------------------------------------------------------
def add_rownames_step(datasets: Dict[str, pd.DataFrame], dataname: str, column: str = ROWNAMES) -> Dict[str, pd.DataFrame]:
    df = datasets[dataname]
    df.insert(0, column, df.index.astype(str))
    return {dataname: df}


def head_step(datasets: Dict[str, pd.DataFrame], dataname: str, n: int) -> Dict[str, pd.DataFrame]:
    return {dataname: datasets[dataname].head(n)}


def group_summary_step(
    datasets: Dict[str, pd.DataFrame],
    dataname: str,
    by: str,
    target: str,
) -> Dict[str, pd.DataFrame]:
    df = datasets[dataname]
    if by not in df.columns:
        raise KeyError(f"Column '{by}' not found in '{dataname}'")
    summary = df.groupby(by, observed=True).mean(numeric_only=True).reset_index()
    summary.insert(1, "n", df.groupby(by, observed=True).size().values)
    return {target: summary}


# -----------------------------------------------------------------------------
# Transformators
# -----------------------------------------------------------------------------
def add_rownames(dataname: str, label: str = "Add row names", column: str = ROWNAMES) -> Transformator:
    """
    Copy the index of `dataname` into a leading `column`. Bundles without
    `dataname` pass through unchanged, so it can run as an app-level step.
    """

    def transform(bundle: DataBundle) -> DataBundle:
        if dataname not in bundle:
            return bundle
        return bundle.eval_step(
            f"{label}: {dataname}",
            add_rownames_step,
            code=f"{dataname}.insert(0, {column!r}, {dataname}.index.astype(str))",
            dataname=dataname,
            column=column,
        )

    return Transformator.from_function(label, transform, datanames=[dataname])


def head_transformator(dataname: str, label: str = "Keep first rows", default_n: int = 50) -> Transformator:
    """Keep the first `n` rows of `dataname`; `n` is chosen in the UI."""

    def ui(ns_id: str) -> dbc.InputGroup:
        return dbc.InputGroup(
            [
                dbc.InputGroupText("Rows"),
                dbc.Input(id=input_id(ns_id, "n"), type="number", min=0, step=1, value=default_n),
            ],
            size="sm",
            style={"maxWidth": "220px"},
        )

    def transform(bundle: DataBundle, n: Optional[int]) -> DataBundle:
        req(n)
        n = int(n)
        if n < 0:
            raise ValueError(f"Number of rows must be >= 0, got {n}")
        return bundle.eval_step(
            f"{label}: {dataname}",
            head_step,
            code=f"{dataname} = {dataname}.head({n})",
            dataname=dataname,
            n=n,
        )

    return Transformator.from_function(label, transform, ui=ui, params=["n"], datanames=[dataname])


def group_summary(
    dataname: str,
    by_choices: List[str],
    label: str = "Group summary",
    target: Optional[str] = None,
) -> Transformator:
    """
    Add a dataset `target` (default `<dataname>_summary`) with the mean of
    every numeric column of `dataname` per group. Existing datasets are kept.
    """
    target = target or f"{dataname}_summary"

    def ui(ns_id: str) -> html.Div:
        return html.Div(
            [
                html.Label("Group by", className="form-label"),
                dcc.Dropdown(
                    id=input_id(ns_id, "by"),
                    options=[{"label": c, "value": c} for c in by_choices],
                    value=by_choices[0] if by_choices else None,
                    clearable=False,
                ),
            ],
            style={"maxWidth": "320px"},
        )

    def transform(bundle: DataBundle, by: Optional[str]) -> DataBundle:
        req(by)
        return bundle.eval_step(
            f"{label}: {target}",
            group_summary_step,
            code=(
                f"{target} = {dataname}.groupby({by!r}, observed=True).mean(numeric_only=True).reset_index()\n"
                f"{target}.insert(1, 'n', {dataname}.groupby({by!r}, observed=True).size().values)"
            ),
            dataname=dataname,
            by=by,
            target=target,
        )

    return Transformator.from_function(label, transform, ui=ui, params=["by"], datanames=[dataname])

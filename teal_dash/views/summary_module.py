from __future__ import annotations

import pandas as pd

from teal_dash.core.bundle import DataBundle
from teal_dash.core.module import Module
from teal_dash.core.reactive import Node


def dataset_summary(bundle: DataBundle) -> pd.DataFrame:
    """One row per dataset: shape, missing values, numeric columns."""
    rows = []
    for name, df in bundle.datasets.items():
        rows.append(
            {
                "dataset": name,
                "rows": int(df.shape[0]),
                "columns": int(df.shape[1]),
                "missing": int(df.isna().sum().sum()),
                "numeric_columns": int(df.select_dtypes("number").shape[1]),
            }
        )
    return pd.DataFrame(rows, columns=["dataset", "rows", "columns", "missing", "numeric_columns"])


def summary_module(label: str = "Summary", datanames=None) -> Module:
    """
    Dataset overview. With the default `datanames=None` it sees every dataset
    unfiltered and has no filter panel.
    """

    def server(ns_id: str, data: Node) -> Node:
        return data.graph.computed(f"{ns_id}:summary", dataset_summary, deps=[data])

    return Module(label=label, server=server, datanames=datanames)

from __future__ import annotations

import pandas as pd
import pytest
from plotly.graph_objs import Figure

from teal_dash.core.bundle import DataBundle
from teal_dash.core.composer import compose
from teal_dash.core.filter_slices import GLOBAL_FILTERS, FilterSlice, filter_slices
from teal_dash.core.module import modules
from teal_dash.core.reactive import NodeStatus
from teal_dash.views import (
    add_rownames,
    data_table_module,
    group_summary,
    head_transformator,
    scatterplot_module,
    summary_module,
)
from teal_dash.views.scatter_module import scatter_figure
from teal_dash.views.summary_module import dataset_summary


def _make_data():
    iris = pd.DataFrame(
        {
            "sepal_length": [5.1, 4.9, 6.3, 5.8],
            "petal_length": [1.4, 1.4, 6.0, 5.1],
            "species": ["setosa", "setosa", "virginica", "virginica"],
        }
    )
    mtcars = pd.DataFrame({"mpg": [21.0, 22.8, 18.7], "cyl": [6, 4, 8]}, index=["Mazda", "Datsun", "Hornet"])
    return {"iris": iris, "mtcars": mtcars}


def test_scatter_module_plots_selected_columns():
    definition = compose(
        _make_data(),
        scatterplot_module("Scatter", "iris", columns=["sepal_length", "petal_length"], color="species"),
    )
    session = definition.start_session()
    node = session.output("root-scatter")
    assert node.status is NodeStatus.PENDING

    session.set_inputs({"root-scatter": {"x": "sepal_length", "y": "petal_length", "color": "species"}})
    assert isinstance(node.value, Figure)
    assert len(node.value.data) == 2


def test_scatter_figure_rejects_unknown_columns():
    with pytest.raises(ValueError, match="not found"):
        scatter_figure(_make_data()["iris"], "nope", "petal_length", None, title="t")


def test_scatter_figure_handles_empty_data():
    fig = scatter_figure(_make_data()["iris"].iloc[0:0], "sepal_length", "petal_length", None, title="t")
    assert "no rows" in fig.layout.title.text


def test_dataset_summary_counts_rows_and_missing_values():
    data = _make_data()
    data["iris"].loc[0, "petal_length"] = None
    summary = dataset_summary(DataBundle(data))

    assert summary["dataset"].tolist() == ["iris", "mtcars"]
    assert summary["rows"].tolist() == [4, 3]
    assert summary["missing"].tolist() == [1, 0]


def test_summary_module_ignores_filters_by_default():
    definition = compose(
        _make_data(),
        modules(summary_module("Summary"), data_table_module("Table", datanames=["iris"])),
        filter=filter_slices(FilterSlice("iris", "species", selected=["setosa"])),
    )
    session = definition.start_session()
    assert session.output("root-summary").value["rows"].tolist() == [4, 3]
    assert session.filters.panel(GLOBAL_FILTERS).active == ["iris species"]


def test_add_rownames_copies_index_and_skips_missing_datasets():
    definition = compose(
        _make_data(),
        modules(data_table_module("Cars", datanames=["mtcars"]), data_table_module("Iris", datanames=["iris"])),
        transformators=[add_rownames("mtcars")],
    )
    session = definition.start_session()

    cars = session.module("root-cars").data.value
    assert cars["mtcars"]["rownames"].tolist() == ["Mazda", "Datsun", "Hornet"]
    assert "mtcars.insert(0, 'rownames'" in session.code("root-cars")

    iris = session.module("root-iris").data.value
    assert iris.names == ["iris"]
    assert "rownames" not in session.code("root-iris")


def test_head_transformator_uses_its_input():
    definition = compose(
        _make_data(),
        data_table_module("Table", datanames=["iris"], transformators=[head_transformator("iris", default_n=2)]),
    )
    session = definition.start_session()
    session.set_inputs({"root-table-transform-keep_first_rows": {"n": 1}})

    assert len(session.module("root-table").data.value["iris"]) == 1
    assert "iris = iris.head(1)" in session.code("root-table")


def test_group_summary_adds_a_dataset_and_keeps_the_rest():
    definition = compose(
        _make_data(),
        data_table_module("Table", transformators=[group_summary("iris", by_choices=["species"])]),
    )
    session = definition.start_session()
    session.set_inputs({"root-table-transform-group_summary": {"by": "species"}})

    bundle = session.module("root-table").data.value
    assert bundle.names == ["iris", "mtcars", "iris_summary"]
    assert bundle["iris_summary"]["n"].tolist() == [2, 2]


def test_table_module_renders_once_rows_are_known():
    definition = compose(_make_data(), data_table_module("Table"))
    session = definition.start_session()
    session.set_inputs({"root-table": {"n_rows": 2}})
    assert session.output("root-table").status is NodeStatus.READY

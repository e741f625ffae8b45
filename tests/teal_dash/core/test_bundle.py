from __future__ import annotations

import pandas as pd
import pytest

from teal_dash.core.bundle import DataBundle
from teal_dash.core.exceptions import BundleError


def _make_bundle() -> DataBundle:
    iris = pd.DataFrame(
        {
            "Species": ["setosa", "setosa", "virginica", "versicolor"],
            "Petal.Length": [1.4, 1.3, 5.5, 4.1],
        }
    )
    mtcars = pd.DataFrame({"mpg": [21.0, 22.8, 18.7], "cyl": [6, 4, 8]}, index=["Mazda", "Datsun", "Hornet"])
    return DataBundle({"iris": iris, "mtcars": mtcars}, code="iris = load_iris()\nmtcars = load_mtcars()")


def _add_double(datasets, dataname, column):
    df = datasets[dataname]
    df[f"{column}_x2"] = df[column] * 2
    return {dataname: df}


def test_bundle_rejects_non_dataframes():
    with pytest.raises(BundleError):
        DataBundle({"iris": [1, 2, 3]})
    with pytest.raises(BundleError):
        DataBundle({"": pd.DataFrame()})


def test_eval_step_returns_new_bundle_and_keeps_original():
    bundle = _make_bundle()
    derived = bundle.eval_step("double mpg", _add_double, dataname="mtcars", column="mpg")

    assert "mpg_x2" in derived["mtcars"].columns
    assert "mpg_x2" not in bundle["mtcars"].columns
    assert len(derived.steps) == len(bundle.steps) + 1


def test_eval_step_can_add_datasets():
    bundle = _make_bundle()

    def summarise(datasets):
        counts = datasets["iris"].groupby("Species").size().reset_index(name="n")
        return {"iris_summary": counts}

    derived = bundle.eval_step("summary", summarise)
    assert derived.names == ["iris", "mtcars", "iris_summary"]


def test_eval_step_rejects_non_mapping_result():
    bundle = _make_bundle()
    with pytest.raises(BundleError):
        bundle.eval_step("bad", lambda datasets: datasets["iris"])


def test_eval_code_binds_datasets_as_variables():
    bundle = _make_bundle()
    derived = bundle.eval_code("iris = iris[iris['Species'] == 'setosa']", label="setosa only")

    assert derived["iris"]["Species"].unique().tolist() == ["setosa"]
    assert derived["mtcars"].equals(bundle["mtcars"])


def test_subset_keeps_requested_datasets_only():
    bundle = _make_bundle()
    sub = bundle.subset(["mtcars"])
    assert sub.names == ["mtcars"]
    assert bundle.subset(["iris", "mtcars"]) is bundle


def test_subset_with_unknown_name_raises():
    with pytest.raises(BundleError):
        _make_bundle().subset(["penguins"])


def test_get_code_lists_every_step_in_order():
    bundle = _make_bundle()
    derived = (
        bundle.eval_step("double mpg", _add_double, dataname="mtcars", column="mpg")
        .eval_code("iris = iris.head(2)", label="head")
    )
    code = derived.get_code()

    assert code.index("load_iris") < code.index("# double mpg") < code.index("# head")
    assert "_add_double(datasets, dataname='mtcars', column='mpg')" in code
    assert "iris = iris.head(2)" in code


def test_replay_reproduces_the_bundle():
    bundle = _make_bundle()
    derived = (
        bundle.eval_step("double mpg", _add_double, dataname="mtcars", column="mpg")
        .subset(["mtcars"])
        .eval_code("mtcars = mtcars[mtcars['cyl'] > 4]", label="big engines")
    )
    replayed = derived.replay()

    assert replayed.names == derived.names
    pd.testing.assert_frame_equal(replayed["mtcars"], derived["mtcars"])


def test_missing_dataset_error_lists_available_names():
    with pytest.raises(KeyError, match="available"):
        _make_bundle()["penguins"]

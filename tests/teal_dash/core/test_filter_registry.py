from __future__ import annotations

import pandas as pd
import pytest

from teal_dash.core.bundle import DataBundle
from teal_dash.core.exceptions import DefinitionError, FilterMappingError
from teal_dash.core.filter_registry import FilterRegistry, apply_filters, choice_counts, slice_choices
from teal_dash.core.filter_slices import GLOBAL_FILTERS, FilterSlice, deep_copy_filter, filter_slices


def _make_bundle() -> DataBundle:
    return DataBundle(
        {
            "iris": pd.DataFrame({"Species": ["setosa", "virginica", "virginica"], "Width": [1.0, 2.0, 3.0]}),
            "mtcars": pd.DataFrame({"cyl": [4, 6, 8, 8]}),
        }
    )


def _make_spec(**kwargs):
    return filter_slices(
        FilterSlice("iris", "Species", selected=["virginica"]),
        FilterSlice("mtcars", "cyl", selected=["8"], fixed=True),
        **kwargs,
    )


def test_apply_filters_records_one_step_per_slice():
    bundle = _make_bundle()
    spec = _make_spec()
    filtered = apply_filters(bundle, spec.slices)

    assert filtered["iris"]["Species"].tolist() == ["virginica", "virginica"]
    assert filtered["mtcars"]["cyl"].tolist() == [8, 8]
    assert "# filter iris Species" in filtered.get_code()
    assert len(filtered.steps) == 2


def test_apply_filters_skips_datasets_outside_datanames_and_unselected_slices():
    bundle = _make_bundle()
    filtered = apply_filters(bundle, [FilterSlice("iris", "Width"), *_make_spec().slices], datanames=["iris"])

    assert len(filtered.steps) == 1
    assert filtered["mtcars"]["cyl"].tolist() == [4, 6, 8, 8]


def test_global_registry_has_a_single_panel():
    registry = FilterRegistry(_make_spec(), {"root-a": "A", "root-b": "B"})
    assert list(registry.panels) == [GLOBAL_FILTERS]
    assert registry.panel_key("root-a") == GLOBAL_FILTERS
    assert registry.panel(GLOBAL_FILTERS).active == ["iris Species", "mtcars cyl"]


def test_module_specific_registry_has_one_panel_per_module():
    spec = _make_spec(module_specific=True, mapping={"A": ["iris Species"]})
    registry = FilterRegistry(spec, {"root-a": "A", "root-b": "B"})

    assert registry.panel("root-a").active == ["iris Species"]
    assert registry.panel("root-b").active == []
    assert registry.panel_key("root-b") == "root-b"


def test_selection_override_shows_in_snapshot_without_touching_spec():
    spec = _make_spec()
    registry = FilterRegistry(spec, {})
    registry.set_selected(GLOBAL_FILTERS, "iris Species", ["setosa"])

    snapshot = {s.id: s for s in registry.snapshot(GLOBAL_FILTERS)}
    assert snapshot["iris Species"].selected == ["setosa"]
    assert spec.get("iris Species").selected == ["virginica"]


def test_fixed_slices_ignore_selection_changes():
    registry = FilterRegistry(_make_spec(), {})
    registry.set_selected(GLOBAL_FILTERS, "mtcars cyl", ["4"])
    snapshot = {s.id: s for s in registry.snapshot(GLOBAL_FILTERS)}
    assert snapshot["mtcars cyl"].selected == ["8"]


def test_set_active_rejects_unknown_ids():
    registry = FilterRegistry(_make_spec(), {})
    with pytest.raises(FilterMappingError):
        registry.set_active(GLOBAL_FILTERS, ["nope"])


def test_inactive_slices_are_not_in_snapshot():
    registry = FilterRegistry(_make_spec(), {})
    registry.set_active(GLOBAL_FILTERS, ["mtcars cyl"])
    assert [s.id for s in registry.snapshot(GLOBAL_FILTERS)] == ["mtcars cyl"]


def test_add_slice_registers_and_activates():
    spec = deep_copy_filter(_make_spec())
    registry = FilterRegistry(spec, {})
    added = registry.add_slice(GLOBAL_FILTERS, "iris", "Width")

    assert added.id == "iris Width"
    assert "iris Width" in registry.panel(GLOBAL_FILTERS).active
    assert registry.add_slice(GLOBAL_FILTERS, "iris", "Width") is added


def test_add_slice_requires_allow_add():
    registry = FilterRegistry(_make_spec(allow_add=False), {})
    with pytest.raises(DefinitionError):
        registry.add_slice(GLOBAL_FILTERS, "iris", "Width")


def test_slice_choices_and_counts():
    df = _make_bundle()["iris"]
    filter_slice = FilterSlice("iris", "Species")
    assert slice_choices(filter_slice, df) == ["setosa", "virginica"]
    assert choice_counts(filter_slice, df) == {"virginica": 2, "setosa": 1}
    assert slice_choices(FilterSlice("iris", "Species", choices=["a"]), df) == ["a"]

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .bundle import DataBundle
from .exceptions import DefinitionError, FilterMappingError
from .filter_slices import GLOBAL_FILTERS, FilterSlice, FilterSlices

logger = logging.getLogger(__name__)

PanelSnapshot = Tuple[FilterSlice, ...]


@dataclass
class FilterPanelState:
    """
    Mutable filter state of one panel within one session.

    - active: ids of the slices currently applied, in activation order
    - selected: per-slice selection overrides made from the UI
    """

    key: str
    active: List[str] = field(default_factory=list)
    selected: Dict[str, Optional[List[Any]]] = field(default_factory=dict)


def _filter_step(datasets: Dict[str, pd.DataFrame], filter_slice: FilterSlice) -> Dict[str, pd.DataFrame]:
    name = filter_slice.dataname
    return {name: filter_slice.apply(datasets[name])}


def apply_filters(
    bundle: DataBundle,
    slices: Iterable[FilterSlice],
    datanames: Optional[Iterable[str]] = None,
) -> DataBundle:
    """
    Apply `slices` to `bundle`, recording one provenance step per slice.

    Slices on datasets outside `datanames` (or missing from the bundle) are
    skipped, as are value slices without a selection.
    """
    allowed = None if datanames is None else set(datanames)
    for filter_slice in slices:
        if filter_slice.dataname not in bundle:
            continue
        if allowed is not None and filter_slice.dataname not in allowed:
            continue
        if not filter_slice.is_expression and filter_slice.selected is None:
            continue
        bundle = bundle.eval_step(
            f"filter {filter_slice.id}",
            _filter_step,
            code=filter_slice.code(),
            filter_slice=filter_slice,
        )
    return bundle


def slice_choices(filter_slice: FilterSlice, df: Optional[pd.DataFrame]) -> List[Any]:
    """Values the UI offers for a value slice."""
    if filter_slice.choices is not None:
        return list(filter_slice.choices)
    if df is None or filter_slice.varname not in df.columns:
        return []
    return sorted(df[filter_slice.varname].dropna().astype(str).unique())


def choice_counts(filter_slice: FilterSlice, df: Optional[pd.DataFrame]) -> Dict[str, int]:
    if df is None or filter_slice.varname not in df.columns:
        return {}
    counts = df[filter_slice.varname].dropna().astype(str).value_counts()
    return {str(k): int(v) for k, v in counts.items()}


class FilterRegistry:
    """
    Per-session filter state: which slices are active in which panel and
    what each panel has selected.

    There is one panel per module when the spec is module-specific, otherwise
    a single panel keyed by "global_filters" shared by every module.

    The registry owns its FilterSlices; callers pass a deep copy of the
    app-level spec (see `deep_copy_filter`).
    """

    def __init__(self, spec: FilterSlices, module_labels: Mapping[str, str]):
        """
        :param spec: the session's own FilterSlices
        :param module_labels: module namespace id -> module label, for the
            modules that get a filter panel
        """
        self.spec = spec
        self.panels: Dict[str, FilterPanelState] = {}

        if spec.module_specific:
            for ns_id, label in module_labels.items():
                self.panels[ns_id] = FilterPanelState(key=ns_id, active=spec.active_ids(label))
        else:
            self.panels[GLOBAL_FILTERS] = FilterPanelState(
                key=GLOBAL_FILTERS, active=spec.active_ids(GLOBAL_FILTERS)
            )

    @property
    def module_specific(self) -> bool:
        return self.spec.module_specific

    def panel_key(self, ns_id: str) -> str:
        return ns_id if self.spec.module_specific else GLOBAL_FILTERS

    def panel(self, key: str) -> FilterPanelState:
        try:
            return self.panels[key]
        except KeyError:
            raise KeyError(f"Filter panel '{key}' not found")

    def _require_slice(self, slice_id: str) -> FilterSlice:
        filter_slice = self.spec.get(slice_id)
        if filter_slice is None:
            raise FilterMappingError(f"Filter '{slice_id}' is not registered (available: {self.spec.ids})")
        return filter_slice

    # ------------------------------------------------------------------
    # Mutations (driven by the UI)
    # ------------------------------------------------------------------
    def set_active(self, key: str, slice_ids: Iterable[str]) -> None:
        ids = list(dict.fromkeys(slice_ids))
        for slice_id in ids:
            self._require_slice(slice_id)
        self.panel(key).active = ids

    def set_selected(self, key: str, slice_id: str, selected: Optional[Iterable[Any]]) -> None:
        filter_slice = self._require_slice(slice_id)
        if filter_slice.fixed:
            logger.info("Ignoring selection change on fixed filter", extra={"slice": slice_id, "panel": key})
            return
        panel = self.panel(key)
        panel.selected[slice_id] = None if selected is None else list(selected)

    def add_slice(self, key: str, dataname: str, varname: str) -> FilterSlice:
        """
        Create a new value slice on `dataname.varname` and activate it in the
        panel. Requires `allow_add`.
        """
        if not self.spec.allow_add:
            raise DefinitionError("Adding filters is disabled for this app (allow_add=False)")

        base_id = f"{dataname} {varname}"
        slice_id = base_id
        n = 2
        while self.spec.get(slice_id) is not None:
            existing = self.spec.get(slice_id)
            if existing.dataname == dataname and existing.varname == varname and not existing.is_expression:
                break
            slice_id = f"{base_id} ({n})"
            n += 1

        filter_slice = self.spec.get(slice_id)
        if filter_slice is None:
            filter_slice = self.register_slice(dataname, varname, slice_id)

        panel = self.panel(key)
        if slice_id not in panel.active:
            panel.active.append(slice_id)
        return filter_slice

    def register_slice(self, dataname: str, varname: str, slice_id: str) -> FilterSlice:
        """Add an inactive value slice on `dataname.varname` under `slice_id`."""
        if self.spec.get(slice_id) is not None:
            raise DefinitionError(f"Filter '{slice_id}' is already registered")
        filter_slice = FilterSlice(dataname=dataname, varname=varname, id=slice_id)
        self.spec.slices.append(filter_slice)
        return filter_slice

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    def snapshot(self, key: str) -> PanelSnapshot:
        """
        Immutable view of the slices a panel applies, with its selections.
        """
        panel = self.panel(key)
        result = []
        for slice_id in panel.active:
            filter_slice = self.spec.get(slice_id)
            if filter_slice is None:
                continue
            if slice_id in panel.selected:
                filter_slice = replace(filter_slice, selected=panel.selected[slice_id])
            else:
                filter_slice = replace(filter_slice)
            result.append(filter_slice)
        return tuple(result)

    def slices_for(self, datanames: Optional[Iterable[str]]) -> List[FilterSlice]:
        """Slices a panel serving `datanames` may show (None means all)."""
        if datanames is None:
            return list(self.spec.slices)
        names = set(datanames)
        return [s for s in self.spec.slices if s.dataname in names]

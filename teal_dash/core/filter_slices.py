from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .exceptions import DefinitionError, FilterMappingError
from .reactive import MISSING

GLOBAL_FILTERS = "global_filters"
COUNT_TYPES = (None, "none", "all")


@dataclass
class FilterSlice:
    """
    A named, reusable filter predicate over one dataset.

    Fields:

    - id: unique identifier, referenced by the filter mapping
    - dataname: dataset the slice applies to
    - varname: column filtered by value (categorical selection or numeric range)
    - selected: selected values; a two-element list is a range for numeric columns
    - choices: values offered in the UI; derived from the data when None
    - expr: pandas query expression, used instead of varname/selected
    - title: label shown in the UI
    - fixed: if True the selection cannot be changed from the UI
    - keep_na: keep rows where the column is missing
    """

    dataname: str
    varname: Optional[str] = None
    id: Optional[str] = None
    selected: Optional[List[Any]] = None
    choices: Optional[List[Any]] = None
    expr: Optional[str] = None
    title: Optional[str] = None
    fixed: bool = False
    keep_na: Optional[bool] = None

    def __post_init__(self) -> None:
        if not isinstance(self.dataname, str) or not self.dataname:
            raise DefinitionError(f"Filter slice dataname must be a non-empty string, got {self.dataname!r}")

        if self.expr is None and not self.varname:
            raise DefinitionError(
                f"Filter slice on '{self.dataname}' needs either 'varname' or 'expr'"
            )

        if self.expr is not None and self.id is None:
            raise DefinitionError("Expression filter slices must define an 'id'")

        if self.id is None:
            self.id = f"{self.dataname} {self.varname}"

        if self.selected is not None:
            self.selected = list(self.selected)
        if self.choices is not None:
            self.choices = list(self.choices)

    @property
    def is_expression(self) -> bool:
        return self.expr is not None

    @property
    def label(self) -> str:
        if self.title:
            return self.title
        return self.expr if self.is_expression else f"{self.dataname}.{self.varname}"

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------
    def _is_range(self, series: pd.Series) -> bool:
        return (
            pd.api.types.is_numeric_dtype(series)
            and not pd.api.types.is_bool_dtype(series)
            and self.selected is not None
            and len(self.selected) == 2
        )

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Return the rows of `df` that pass this slice. An unset selection keeps
        every row.
        """
        if self.is_expression:
            return df.query(self.expr, engine="python")

        if self.selected is None:
            return df

        if self.varname not in df.columns:
            raise KeyError(f"Column '{self.varname}' not found in dataset '{self.dataname}'")

        series = df[self.varname]
        if self._is_range(series):
            low, high = self.selected
            mask = series.between(low, high, inclusive="both")
        else:
            mask = series.astype(str).isin([str(v) for v in self.selected])

        if self.keep_na:
            mask = mask | series.isna()
        return df[mask.fillna(False).astype(bool)]

    def code(self) -> str:
        """The pandas statement equivalent to `apply`, for provenance scripts."""
        name = self.dataname
        if self.is_expression:
            return f"{name} = {name}.query({self.expr!r})"
        if self.selected is None:
            return f"# {self.id}: no selection"

        col = f"{name}[{self.varname!r}]"
        if self.selected is not None and len(self.selected) == 2 and all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in self.selected
        ):
            low, high = self.selected
            cond = f"{col}.between({low!r}, {high!r})"
        else:
            values = [str(v) for v in self.selected]
            cond = f"{col}.astype(str).isin({values!r})"
        if self.keep_na:
            cond = f"({cond}) | {col}.isna()"
        return f"{name} = {name}[{cond}]"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterSlice":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise DefinitionError(f"Unknown filter slice fields: {sorted(unknown)}")
        return cls(**dict(data))


@dataclass
class FilterSlices:
    """
    Definition-time filter specification for an app.

    `module_specific` and `mapping` decide which slices are active in which
    module when a session starts (see `filter_slices`).
    """

    slices: List[FilterSlice] = field(default_factory=list)
    exclude_varnames: Optional[Dict[str, List[str]]] = None
    include_varnames: Optional[Dict[str, List[str]]] = None
    count_type: Optional[str] = None
    allow_add: bool = True
    module_specific: bool = False
    mapping: Dict[str, List[str]] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.slices)

    def __len__(self) -> int:
        return len(self.slices)

    @property
    def ids(self) -> List[str]:
        return [s.id for s in self.slices]

    def get(self, slice_id: str) -> Optional[FilterSlice]:
        return next((s for s in self.slices if s.id == slice_id), None)

    def for_dataname(self, dataname: str) -> List[FilterSlice]:
        return [s for s in self.slices if s.dataname == dataname]

    def active_ids(self, module_label: str) -> List[str]:
        """
        Slice ids active for `module_label` at session start.

        Global filters apply everywhere; module entries only count when the
        spec is module-specific.
        """
        active = list(self.mapping.get(GLOBAL_FILTERS, []) or [])
        if self.module_specific:
            for slice_id in self.mapping.get(module_label, []) or []:
                if slice_id not in active:
                    active.append(slice_id)
        return active

    def available_varnames(self, dataname: str, df: pd.DataFrame) -> List[str]:
        """
        Columns a user may add filters on, honouring include/exclude lists.
        """
        columns = [str(c) for c in df.columns]
        if self.include_varnames and dataname in self.include_varnames:
            allowed = set(self.include_varnames[dataname])
            columns = [c for c in columns if c in allowed]
        if self.exclude_varnames and dataname in self.exclude_varnames:
            excluded = set(self.exclude_varnames[dataname])
            columns = [c for c in columns if c not in excluded]
        return columns

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slices": [s.to_dict() for s in self.slices],
            "exclude_varnames": self.exclude_varnames,
            "include_varnames": self.include_varnames,
            "count_type": self.count_type,
            "allow_add": self.allow_add,
            "module_specific": self.module_specific,
            "mapping": {k: list(v) for k, v in self.mapping.items()},
        }


def _check_mapping(mapping: Any) -> Dict[str, List[str]]:
    if not isinstance(mapping, Mapping):
        raise FilterMappingError(f"Filter mapping must be a dict, got {type(mapping).__name__}")

    checked: Dict[str, List[str]] = {}
    for key, ids in mapping.items():
        if not isinstance(key, str) or not key:
            raise FilterMappingError(f"Filter mapping keys must be non-empty strings, got {key!r}")
        if ids is None:
            checked[key] = []
            continue
        if isinstance(ids, str):
            ids = [ids]
        if not isinstance(ids, Sequence) or not all(isinstance(i, str) for i in ids):
            raise FilterMappingError(
                f"Filter mapping entry '{key}' must be a list of filter ids, got {ids!r}"
            )
        checked[key] = list(ids)
    return checked


def filter_slices(
    *slices: FilterSlice,
    exclude_varnames: Optional[Dict[str, List[str]]] = None,
    include_varnames: Optional[Dict[str, List[str]]] = None,
    count_type: Optional[str] = None,
    allow_add: bool = True,
    module_specific: bool = False,
    mapping: Any = MISSING,
) -> FilterSlices:
    """
    Build the filter settings for an app.

    :param slices: the FilterSlice objects
    :param module_specific: True when each module has its own filter panel
        (see `mapping`), False for one panel shared by all modules
    :param mapping: which slice ids are active in which module on app start.
        Keys are module labels or "global_filters" (active everywhere).
        - missing: every slice is active everywhere
        - empty dict: every slice is available but starts inactive
        - module keys are dropped when `module_specific` is False

    Raises:
        FilterMappingError: if the mapping references an unknown slice id
        DefinitionError: for duplicate slice ids or invalid options
    """
    if not isinstance(allow_add, bool):
        raise DefinitionError(f"allow_add must be a bool, got {allow_add!r}")
    if not isinstance(module_specific, bool):
        raise DefinitionError(f"module_specific must be a bool, got {module_specific!r}")
    if count_type not in COUNT_TYPES:
        raise DefinitionError(f"count_type must be one of {COUNT_TYPES}, got {count_type!r}")

    for s in slices:
        if not isinstance(s, FilterSlice):
            raise DefinitionError(f"Expected FilterSlice objects, got {type(s).__name__}")

    all_ids = [s.id for s in slices]
    duplicates = sorted({i for i in all_ids if all_ids.count(i) > 1})
    if duplicates:
        raise DefinitionError(f"Duplicate filter slice ids: {', '.join(duplicates)}")

    if mapping is MISSING:
        mapping = {GLOBAL_FILTERS: list(all_ids)}
    mapping = _check_mapping(mapping)

    if not module_specific:
        mapping = {k: v for k, v in mapping.items() if k == GLOBAL_FILTERS}

    failed = [i for ids in mapping.values() for i in ids if i not in all_ids]
    if failed:
        raise FilterMappingError(
            "Filters in mapping don't match any available filter.\n "
            f"{', '.join(failed)} not in {', '.join(all_ids)}"
        )

    return FilterSlices(
        slices=list(slices),
        exclude_varnames=exclude_varnames,
        include_varnames=include_varnames,
        count_type=count_type,
        allow_add=allow_add,
        module_specific=module_specific,
        mapping=mapping,
    )


def as_filter_slices(
    items: Iterable[Union[FilterSlice, Mapping[str, Any]]],
    **attrs: Any,
) -> FilterSlices:
    """
    Build FilterSlices from plain dicts (e.g. parsed JSON) or FilterSlice objects.
    """
    slices = []
    for item in items:
        if isinstance(item, FilterSlice):
            slices.append(item)
        elif isinstance(item, Mapping):
            slices.append(FilterSlice.from_dict(item))
        else:
            raise DefinitionError(f"Filter slice must be a dict or FilterSlice, got {type(item).__name__}")
    return filter_slices(*slices, **attrs)


def deep_copy_filter(filter_spec: FilterSlices) -> FilterSlices:
    """
    Independent copy of a filter specification.

    The spec is created once at app-definition time; every session must get
    its own copy so selections made by one user never leak into another
    user's session.
    """
    if not isinstance(filter_spec, FilterSlices):
        raise TypeError(f"Expected FilterSlices, got {type(filter_spec).__name__}")

    def copy_lists(value: Optional[Dict[str, List[str]]]) -> Optional[Dict[str, List[str]]]:
        return None if value is None else {k: list(v) for k, v in value.items()}

    return FilterSlices(
        slices=[FilterSlice.from_dict(s.to_dict()) for s in filter_spec.slices],
        exclude_varnames=copy_lists(filter_spec.exclude_varnames),
        include_varnames=copy_lists(filter_spec.include_varnames),
        count_type=filter_spec.count_type,
        allow_add=filter_spec.allow_add,
        module_specific=filter_spec.module_specific,
        mapping=copy_lists(filter_spec.mapping) or {},
    )

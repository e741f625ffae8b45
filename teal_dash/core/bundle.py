from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import BundleError

logger = logging.getLogger(__name__)

StepFunction = Callable[..., Mapping[str, pd.DataFrame]]


@dataclass(frozen=True)
class ProvenanceStep:
    """
    One entry of a bundle's replay log.

    Exactly one of `fn` / `source` drives replay:
    - fn: called as fn(datasets, **bindings), returns datasets to add/replace
    - source: Python code executed with the datasets bound as variables

    `code` is the human-readable rendering used by `DataBundle.get_code()`.
    """

    label: str
    code: str
    fn: Optional[StepFunction] = None
    bindings: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None
    keep: Optional[Tuple[str, ...]] = None

    @property
    def replayable(self) -> bool:
        return self.fn is not None or self.source is not None


def _copy_datasets(datasets: Mapping[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
    return {name: df.copy(deep=True) for name, df in datasets.items()}


def _check_datasets(datasets: Mapping[str, Any]) -> Dict[str, pd.DataFrame]:
    if not isinstance(datasets, Mapping):
        raise BundleError(f"Datasets must be a mapping of name -> DataFrame, got {type(datasets).__name__}")

    checked: Dict[str, pd.DataFrame] = {}
    for name, df in datasets.items():
        if not isinstance(name, str) or not name:
            raise BundleError(f"Dataset names must be non-empty strings, got {name!r}")
        if not isinstance(df, pd.DataFrame):
            raise BundleError(f"Dataset '{name}' must be a pandas DataFrame, got {type(df).__name__}")
        checked[name] = df
    return checked


def _apply_step(step: ProvenanceStep, datasets: Dict[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
    """Run one step against `datasets` and return the resulting mapping."""
    working = _copy_datasets(datasets)

    if step.fn is not None:
        produced = step.fn(working, **step.bindings)
        if not isinstance(produced, Mapping):
            raise BundleError(
                f"Step '{step.label}' must return a mapping of datasets, got {type(produced).__name__}"
            )
        result = dict(working)
        result.update(_check_datasets(produced))
    elif step.source is not None:
        namespace: Dict[str, Any] = {"pd": pd, "np": np}
        namespace.update(working)
        exec(compile(step.source, f"<{step.label}>", "exec"), namespace)
        result = {
            name: value
            for name, value in namespace.items()
            if isinstance(value, pd.DataFrame) and not name.startswith("_")
        }
    else:
        raise BundleError(f"Step '{step.label}' cannot be replayed")

    return result


class DataBundle:
    """
    Named collection of DataFrames plus the log of steps that produced them.

    Bundles are values: every transformation returns a new bundle and the
    provenance log only ever grows. `replay()` re-derives the datasets from
    the initial ones, so the state is always reproducible.
    """

    def __init__(
        self,
        datasets: Mapping[str, pd.DataFrame],
        code: Optional[str] = None,
        *,
        _initial: Optional[Mapping[str, pd.DataFrame]] = None,
        _steps: Tuple[ProvenanceStep, ...] = (),
    ) -> None:
        self._datasets: Dict[str, pd.DataFrame] = _check_datasets(datasets)
        self._initial: Dict[str, pd.DataFrame] = (
            dict(_initial) if _initial is not None else _copy_datasets(self._datasets)
        )
        if code is not None and not _steps:
            _steps = (ProvenanceStep(label="data", code=code),)
        self._steps: Tuple[ProvenanceStep, ...] = tuple(_steps)

    # ------------------------------------------------------------------
    # Mapping-like access
    # ------------------------------------------------------------------
    @property
    def names(self) -> List[str]:
        return list(self._datasets)

    @property
    def datasets(self) -> Dict[str, pd.DataFrame]:
        return dict(self._datasets)

    @property
    def steps(self) -> Tuple[ProvenanceStep, ...]:
        return self._steps

    def __getitem__(self, name: str) -> pd.DataFrame:
        try:
            return self._datasets[name]
        except KeyError:
            raise KeyError(f"Dataset '{name}' not found in bundle (available: {self.names})")

    def get(self, name: str, default: Any = None) -> Any:
        return self._datasets.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._datasets

    def __iter__(self) -> Iterator[str]:
        return iter(self._datasets)

    def __len__(self) -> int:
        return len(self._datasets)

    def __repr__(self) -> str:
        return f"DataBundle(names={self.names}, steps={len(self._steps)})"

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------
    def _derive(self, datasets: Mapping[str, pd.DataFrame], step: ProvenanceStep) -> "DataBundle":
        return DataBundle(datasets, _initial=self._initial, _steps=self._steps + (step,))

    def eval_step(
        self,
        label: str,
        fn: StepFunction,
        code: Optional[str] = None,
        **bindings: Any,
    ) -> "DataBundle":
        """
        Apply `fn(datasets, **bindings)` and record it in the provenance log.

        :param label: short name of the step, shown in the generated script
        :param fn: receives copies of the datasets, returns datasets to add or replace
        :param code: human-readable code for the script; generated if omitted
        :param bindings: named values the step needs (column names, thresholds, ...)
        :return: a new DataBundle
        """
        if code is None:
            fn_name = getattr(fn, "__name__", "step")
            args = ", ".join(["datasets"] + [f"{k}={v!r}" for k, v in bindings.items()])
            code = f"datasets.update({fn_name}({args}))"
        step = ProvenanceStep(label=label, code=code, fn=fn, bindings=dict(bindings))
        return self._derive(_apply_step(step, self._datasets), step)

    def eval_code(self, code: str, label: Optional[str] = None) -> "DataBundle":
        """
        Execute Python source with each dataset bound to a variable of the
        same name. Every DataFrame variable left afterwards is a dataset.
        """
        step = ProvenanceStep(label=label or "code", code=code.strip(), source=code)
        return self._derive(_apply_step(step, self._datasets), step)

    def subset(self, datanames: Iterable[str]) -> "DataBundle":
        """
        Restrict the bundle to `datanames`. Unknown names raise BundleError.
        """
        keep = tuple(datanames)
        missing = [n for n in keep if n not in self._datasets]
        if missing:
            raise BundleError(f"Datasets {missing} not in bundle (available: {self.names})")
        if list(keep) == self.names:
            return self

        step = ProvenanceStep(
            label="subset",
            code=f"# keep datasets: {', '.join(keep)}",
            keep=keep,
        )
        return self._derive({n: self._datasets[n] for n in keep}, step)

    # ------------------------------------------------------------------
    # Provenance
    # ------------------------------------------------------------------
    def get_code(self) -> str:
        lines: List[str] = []
        for step in self._steps:
            lines.append(f"# {step.label}")
            lines.append(step.code)
        return "\n".join(lines)

    def replay(self) -> "DataBundle":
        """
        Re-derive the bundle from its initial datasets and provenance log.
        """
        datasets = _copy_datasets(self._initial)
        for step in self._steps:
            if step.keep is not None and step.fn is None and step.source is None:
                datasets = {n: datasets[n] for n in step.keep if n in datasets}
            elif step.replayable:
                datasets = _apply_step(step, datasets)
        return DataBundle(datasets, _initial=self._initial, _steps=self._steps)

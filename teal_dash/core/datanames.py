from __future__ import annotations

from typing import Any, Iterable, Mapping, Tuple, Union

from .exceptions import DatanamesError

ALL = "all"

Datanames = Union[str, Tuple[str, ...], None]


def normalise_datanames(datanames: Any) -> Datanames:
    """
    Accept "all", a single dataset name, an iterable of names, or None.

    :return: "all", a tuple of unique names, or None (no filter panel)

    Raises:
        DatanamesError: for anything else
    """
    if datanames is None:
        return None
    if isinstance(datanames, str):
        if not datanames.strip():
            raise DatanamesError("datanames must not be an empty string")
        return ALL if datanames == ALL else (datanames,)
    if isinstance(datanames, Mapping) or not isinstance(datanames, Iterable):
        raise DatanamesError(f"datanames must be 'all', a list of names or None, got {datanames!r}")

    names = list(datanames)
    if not all(isinstance(n, str) and n for n in names):
        raise DatanamesError(f"datanames must contain non-empty strings, got {names!r}")
    if ALL in names:
        if len(names) > 1:
            raise DatanamesError("'all' cannot be combined with explicit dataset names")
        return ALL
    if not names:
        return None
    return tuple(dict.fromkeys(names))


def extend_datanames(datanames: Datanames, extra: Iterable[Datanames]) -> Datanames:
    """
    Add the datasets a module's transformators declare to the module's own.

    None stays None (the module has no filter panel); "all" on either side
    wins over explicit names.
    """
    if datanames is None or datanames == ALL:
        return datanames
    names = list(datanames)
    for item in extra:
        if item is None:
            continue
        if item == ALL:
            return ALL
        names.extend(item)
    return tuple(dict.fromkeys(names))

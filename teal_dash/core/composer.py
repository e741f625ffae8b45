from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .bundle import DataBundle
from .exceptions import BundleError, DatanamesError, DefinitionError, FilterMappingError
from .filter_slices import GLOBAL_FILTERS, FilterSlices, filter_slices
from .module import ALL, Module, ModuleGroup, check_unique_labels, modules
from .namespace import Namespace
from .transformator import Transformator, validate_transformators

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "teal_dash app"


@dataclass
class TreeNode:
    """
    One position in the composed module tree.

    kind is "group" or "module"; `ns` is computed once during composition.
    """

    kind: str
    label: str
    ns: Namespace
    item: Union[Module, ModuleGroup]
    children: List["TreeNode"] = field(default_factory=list)
    depth: int = 0

    @property
    def is_group(self) -> bool:
        return self.kind == "group"

    @property
    def ns_id(self) -> str:
        return self.ns.id

    def walk(self) -> Iterator["TreeNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class AppDefinition:
    """
    Everything fixed at app-definition time. Shared by all sessions, never
    mutated by them: `start_session` hands each session its own copies.
    """

    data: DataBundle
    root: ModuleGroup
    filter: FilterSlices
    transformators: List[Transformator]
    tree: TreeNode
    title: str = DEFAULT_TITLE

    @property
    def leaves(self) -> List[TreeNode]:
        return [n for n in self.tree.walk() if not n.is_group]

    @property
    def module_labels(self) -> List[str]:
        return [n.label for n in self.leaves]

    def find(self, ns_id: str) -> TreeNode:
        for node in self.tree.walk():
            if node.ns_id == ns_id:
                return node
        raise KeyError(f"No module or group with namespace '{ns_id}'")

    def start_session(self, session_id: Optional[str] = None) -> "Session":
        from .session import Session

        return Session(self, session_id=session_id)


def _as_bundle(data: Any) -> DataBundle:
    if isinstance(data, DataBundle):
        return data
    if isinstance(data, Mapping):
        return DataBundle(data)
    if isinstance(data, pd.DataFrame):
        raise BundleError("Pass datasets as a dict of name -> DataFrame (e.g. {'iris': df})")
    raise BundleError(f"data must be a DataBundle or a dict of DataFrames, got {type(data).__name__}")


def _as_root(tree: Any) -> ModuleGroup:
    if isinstance(tree, ModuleGroup):
        return tree
    if isinstance(tree, Module):
        return modules(tree)
    if isinstance(tree, (list, tuple)):
        return modules(*tree)
    raise DefinitionError(f"modules must be a Module, ModuleGroup or list of them, got {type(tree).__name__}")


def _build_tree(item: Union[Module, ModuleGroup], ns: Namespace, depth: int) -> TreeNode:
    if isinstance(item, Module):
        return TreeNode(kind="module", label=item.label, ns=ns, item=item, depth=depth)

    check_unique_labels(item.children, parent=item.label)
    node = TreeNode(kind="group", label=item.label, ns=ns, item=item, depth=depth)
    node.children = [_build_tree(child, ns.child(child.label), depth + 1) for child in item.children]
    return node


def _missing(datanames: Any, bundle: DataBundle) -> List[str]:
    if datanames is None or datanames == ALL:
        return []
    return [n for n in datanames if n not in bundle]


def _check_datanames(
    leaves: Sequence[TreeNode],
    bundle: DataBundle,
    app_transformators: Sequence[Transformator] = (),
) -> None:
    for leaf in leaves:
        module: Module = leaf.item  # type: ignore[assignment]
        for transformator in [*app_transformators, *module.transformators]:
            missing = _missing(transformator.datanames, bundle)
            if missing:
                raise DatanamesError(
                    f"Transformator '{transformator.label}' in module '{module.label}' requests "
                    f"datasets {missing} not present in data (available: {bundle.names})"
                )
        missing = _missing(module.datanames, bundle)
        if missing:
            raise DatanamesError(
                f"Module '{module.label}' requests datasets {missing} not present in data "
                f"(available: {bundle.names})"
            )


def _check_filter(spec: FilterSlices, leaves: Sequence[TreeNode], bundle: DataBundle) -> None:
    ids = spec.ids
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise DefinitionError(f"Duplicate filter slice ids: {', '.join(duplicates)}")

    labels = {leaf.label for leaf in leaves}
    unknown_keys = [k for k in spec.mapping if k != GLOBAL_FILTERS and k not in labels]
    if unknown_keys:
        raise FilterMappingError(
            f"Filter mapping keys {unknown_keys} don't match any module label "
            f"(modules: {sorted(labels)}, or '{GLOBAL_FILTERS}')"
        )

    failed = [i for values in spec.mapping.values() for i in values if i not in ids]
    if failed:
        raise FilterMappingError(
            "Filters in mapping don't match any available filter.\n "
            f"{', '.join(failed)} not in {', '.join(ids)}"
        )

    for filter_slice in spec.slices:
        if filter_slice.dataname not in bundle:
            logger.warning(
                "Filter refers to a dataset that is not in data; it will be ignored",
                extra={"slice": filter_slice.id, "dataname": filter_slice.dataname},
            )


def compose(
    data: Any,
    modules: Any,
    filter: Optional[FilterSlices] = None,
    transformators: Optional[Sequence[Transformator]] = None,
    title: str = DEFAULT_TITLE,
) -> AppDefinition:
    """
    Validate an app definition and compute the namespace of every module.

    :param data: DataBundle or dict of name -> DataFrame
    :param modules: Module, ModuleGroup, or list of them (wrapped in a root group)
    :param filter: FilterSlices; defaults to no filters
    :param transformators: app-level transformators, run in every module before
        the module's own ones
    :param title: browser/app title

    Raises:
        DefinitionError (and subclasses): on any invalid definition, before
        any session starts
    """
    bundle = _as_bundle(data)
    root = _as_root(modules)
    spec = filter if filter is not None else filter_slices()
    if not isinstance(spec, FilterSlices):
        raise DefinitionError(f"filter must be FilterSlices, got {type(spec).__name__}")
    app_transformators = validate_transformators(transformators)

    tree = _build_tree(root, Namespace().child(root.label), 0)
    leaves = [n for n in tree.walk() if not n.is_group]

    _check_datanames(leaves, bundle, app_transformators)
    _check_filter(spec, leaves, bundle)

    logger.info(
        "app_composed",
        extra={
            "n_modules": len(leaves),
            "datasets": bundle.names,
            "n_filters": len(spec),
            "module_specific": spec.module_specific,
        },
    )
    return AppDefinition(
        data=bundle,
        root=root,
        filter=spec,
        transformators=app_transformators,
        tree=tree,
        title=title,
    )
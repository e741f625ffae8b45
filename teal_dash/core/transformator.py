from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .bundle import DataBundle
from .datanames import ALL, normalise_datanames
from .exceptions import DatanamesError, DuplicateLabelError, TransformatorError
from .inputs import InputScope
from .namespace import slugify
from .reactive import Node

logger = logging.getLogger(__name__)

UiFactory = Callable[..., Any]
ServerFactory = Callable[..., Node]


@dataclass
class Transformator:
    """
    A UI + server pair mapping one data bundle to another.

    - label: unique within its list, also the namespace segment of its UI
    - server: server(id, data, inputs, **server_args) -> Node[DataBundle]
        * id: unique namespace id of this instance
        * data: reactive node holding the upstream DataBundle
        * inputs: InputScope with this instance's UI inputs
    - ui: optional ui(id, **ui_args) -> Dash component; every input it renders
      must use `input_id(id, name)` so it reaches `inputs[name]`
    - datanames: datasets the transformator reads, "all" or explicit names.
      A module's own transformators add theirs to the module's datanames,
      so the module's filter panel covers them.
    """

    label: str
    server: ServerFactory
    ui: Optional[UiFactory] = None
    datanames: Any = ALL
    server_args: Dict[str, Any] = field(default_factory=dict)
    ui_args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise TransformatorError(f"Transformator label must be a non-empty string, got {self.label!r}")
        if not callable(self.server):
            raise TransformatorError(f"Transformator '{self.label}' needs a callable server")
        if self.ui is not None and not callable(self.ui):
            raise TransformatorError(f"Transformator '{self.label}' ui must be callable or None")
        try:
            self.datanames = normalise_datanames(self.datanames)
        except DatanamesError as e:
            raise TransformatorError(f"Transformator '{self.label}': {e}") from e

    def build_ui(self, ns_id: str) -> Any:
        if self.ui is None:
            return None
        return self.ui(ns_id, **self.ui_args)

    def make(self, ns_id: str, data: Node, inputs: InputScope) -> Node:
        """
        Instantiate the server in namespace `ns_id`.

        Raises:
            TransformatorError: if the server does not return a reactive node
        """
        result = self.server(ns_id, data, inputs, **self.server_args)
        if not isinstance(result, Node):
            raise TransformatorError(
                f"Transformator '{self.label}' server must return a reactive node, got {type(result).__name__}"
            )
        return result

    @classmethod
    def from_function(
        cls,
        label: str,
        fn: Callable[..., DataBundle],
        *,
        ui: Optional[UiFactory] = None,
        params: Sequence[str] = (),
        datanames: Any = ALL,
        **ui_args: Any,
    ) -> "Transformator":
        """
        Build a transformator from a plain function `fn(bundle, **params)`.

        `params` name the UI inputs the function needs; the host binds them
        by name from this instance's InputScope.
        """
        params = tuple(params)

        def server(ns_id: str, data: Node, inputs: InputScope) -> Node:
            return data.graph.computed(
                f"{ns_id}:transform",
                fn,
                deps=[data],
                kwdeps={name: inputs[name] for name in params},
            )

        return cls(label=label, server=server, ui=ui, datanames=datanames, ui_args=dict(ui_args))


def validate_transformators(items: Optional[Iterable[Transformator]]) -> List[Transformator]:
    """
    Check a transformator list: Transformator objects with unique labels.

    Raises:
        TransformatorError: if an element is not a Transformator
        DuplicateLabelError: if two transformators share a label
    """
    if items is None:
        return []
    if isinstance(items, Transformator):
        items = [items]
    if not isinstance(items, (list, tuple)):
        raise TransformatorError(f"Transformators must be a list, got {type(items).__name__}")

    seen: Dict[str, Transformator] = {}
    for item in items:
        if not isinstance(item, Transformator):
            raise TransformatorError(f"Expected Transformator objects, got {type(item).__name__}")
        if item.label in seen:
            raise DuplicateLabelError(f"Transformator label '{item.label}' is used more than once")
        seen[item.label] = item

    slugs = [slugify(t.label) for t in items]
    clashing = sorted({s for s in slugs if slugs.count(s) > 1})
    if clashing:
        raise DuplicateLabelError(f"Transformator labels map to the same namespace: {', '.join(clashing)}")
    return list(items)

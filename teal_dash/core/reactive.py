from __future__ import annotations

import heapq
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .exceptions import NotReady, ReentrancyError

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class NodeStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


def req(*values: Any) -> None:
    """
    Raise NotReady unless every value is "truthy enough".

    None, empty strings and empty collections count as missing. Zero and
    False are valid values.
    """
    for value in values:
        if value is None or value is MISSING:
            raise NotReady()
        if isinstance(value, (str, list, tuple, set, dict)) and len(value) == 0:
            raise NotReady()


def _same(a: Any, b: Any) -> bool:
    if a is b:
        return True
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        # DataFrames and arrays compare element-wise
        return False


class Node:
    """
    One value in a session's recomputation graph.

    A node keeps its last good value: errors and readiness gaps change
    `status`, never `value`.
    """

    def __init__(self, graph: "ReactiveGraph", name: str, index: int):
        self.graph = graph
        self.name = name
        self.index = index
        self.value: Any = MISSING
        self.status = NodeStatus.PENDING
        self.error: Optional[BaseException] = None
        # name of the node whose computation raised `error`
        self.error_origin: Optional[str] = None
        self.version = 0
        self.eval_count = 0
        self.dependents: List["Computed"] = []

    @property
    def has_value(self) -> bool:
        return self.value is not MISSING

    @property
    def ready(self) -> bool:
        return self.status is NodeStatus.READY

    @property
    def upstream_failed(self) -> bool:
        """True when the node is in ERROR because a dependency failed."""
        return self.status is NodeStatus.ERROR and self.error_origin != self.name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} {self.status.value} v{self.version}>"


class Source(Node):
    """A value set from outside the graph (UI inputs, datasets, filter state)."""

    def set(self, value: Any) -> bool:
        """
        Set a new value. Returns False when the value is unchanged.

        Outside a batch the graph is flushed immediately.
        """
        if self.has_value and _same(self.value, value):
            return False

        self.graph._record(self)
        self.value = value
        self.status = NodeStatus.PENDING if value is MISSING else NodeStatus.READY
        self.version += 1
        self.graph._invalidate_dependents(self)
        if not self.graph.in_batch:
            self.graph.flush()
        return True


class Computed(Node):
    """A value derived from other nodes with `fn(*deps, **kwdeps)`."""

    def __init__(
        self,
        graph: "ReactiveGraph",
        name: str,
        index: int,
        fn: Callable[..., Any],
        deps: Sequence[Node],
        kwdeps: Mapping[str, Node],
    ):
        super().__init__(graph, name, index)
        self.fn = fn
        self.deps = list(deps)
        self.kwdeps = dict(kwdeps)

    def evaluate(self) -> bool:
        """
        Recompute the node. Returns True when dependents must be invalidated.

        A node that never produced a value passes its status on: it turns
        ERROR (carrying the upstream error) when a dependency failed before
        producing a value, and PENDING while a dependency is not ready.
        """
        inputs = self.deps + list(self.kwdeps.values())
        # errored deps still expose their last good value
        blocked = [dep for dep in inputs if not dep.has_value or dep.status is NodeStatus.PENDING]
        if blocked:
            failed = next((dep for dep in blocked if dep.status is NodeStatus.ERROR), None)
            if failed is not None:
                return self._settle(NodeStatus.ERROR, failed.error, failed.error_origin)
            return self._settle(NodeStatus.PENDING)

        self.eval_count += 1
        args = [dep.value for dep in self.deps]
        kwargs = {key: dep.value for key, dep in self.kwdeps.items()}

        try:
            result = self.fn(*args, **kwargs)
        except NotReady:
            return self._settle(NodeStatus.PENDING)
        except Exception as exc:
            logger.warning(
                "Reactive computation failed; keeping last good value",
                exc_info=exc,
                extra={"node": self.name, "graph": self.graph.name},
            )
            return self._settle(NodeStatus.ERROR, exc, self.name)

        self.value = result
        self.status = NodeStatus.READY
        self.error = None
        self.error_origin = None
        self.version += 1
        return True

    def _settle(
        self,
        status: NodeStatus,
        error: Optional[BaseException] = None,
        origin: Optional[str] = None,
    ) -> bool:
        changed = (status, error) != (self.status, self.error)
        self.status = status
        self.error = error
        self.error_origin = origin
        # dependents of a node with a value keep running on that value
        return changed and not self.has_value


class ReactiveGraph:
    """
    Dependency-tracked recomputation graph for a single session.

    Design Notes:
    - Nodes may only depend on nodes created before them, so creation order
      is a topological order.
    - Changes mark dependents dirty; `flush` recomputes dirty nodes in order,
      each at most once.
    - "Trigger on success": a node that fails or is not ready keeps its last
      good value and does not invalidate its dependents.
    """

    def __init__(self, name: str = "graph"):
        self.name = name
        self._nodes: List[Node] = []
        self._dirty: Dict[int, Computed] = {}
        self._batch_depth = 0
        # source index -> (value, status, version) before the current batch
        self._journal: Optional[Dict[int, Tuple[Any, NodeStatus, int]]] = None
        self._flushing = False
        self.last_evaluated: List[str] = []

    # ------------------------------------------------------------------
    # Node construction
    # ------------------------------------------------------------------
    def value(self, name: str, initial: Any = MISSING) -> Source:
        node = Source(self, name, len(self._nodes))
        self._nodes.append(node)
        if initial is not MISSING:
            node.value = initial
            node.status = NodeStatus.READY
            node.version = 1
        return node

    def computed(
        self,
        name: str,
        fn: Callable[..., Any],
        deps: Sequence[Node] = (),
        kwdeps: Optional[Mapping[str, Node]] = None,
    ) -> Computed:
        kwdeps = kwdeps or {}
        for dep in list(deps) + list(kwdeps.values()):
            if dep.graph is not self:
                raise ValueError(f"Node '{dep.name}' belongs to another graph")

        node = Computed(self, name, len(self._nodes), fn, deps, kwdeps)
        self._nodes.append(node)
        for dep in list(deps) + list(kwdeps.values()):
            dep.dependents.append(node)

        self._dirty[node.index] = node
        if not self.in_batch:
            self.flush()
        return node

    def isolate(self, node: Node) -> Any:
        """Read a node's value without registering a dependency."""
        return node.value

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    @property
    def in_batch(self) -> bool:
        return self._batch_depth > 0

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    @contextmanager
    def batch(self) -> Iterator["ReactiveGraph"]:
        """
        Group several changes so they are propagated in a single flush.

        If the body of the outermost batch raises, every source set inside
        it is restored and nothing is flushed, so a half-applied change
        never leaks into a later flush.
        """
        outermost = self._batch_depth == 0
        if outermost:
            self._journal = {}
            dirty_before = dict(self._dirty)
            n_nodes = len(self._nodes)

        self._batch_depth += 1
        try:
            yield self
        except Exception:
            self._batch_depth -= 1
            if outermost:
                self._rollback(dirty_before, n_nodes)
            raise

        self._batch_depth -= 1
        if outermost:
            self._journal = None
            self.flush()

    def _record(self, source: Source) -> None:
        if self._journal is not None and source.index not in self._journal:
            self._journal[source.index] = (source.value, source.status, source.version)

    def _rollback(self, dirty_before: Dict[int, Computed], n_nodes: int) -> None:
        journal, self._journal = self._journal or {}, None
        for index, (value, status, version) in journal.items():
            source = self._nodes[index]
            source.value = value
            source.status = status
            source.version = version
        # nodes created inside the batch still need their first evaluation
        created = {i: n for i, n in self._dirty.items() if i >= n_nodes}
        self._dirty = {**dirty_before, **created}
        logger.info("batch_rolled_back", extra={"graph": self.name, "n_restored": len(journal)})

    def _invalidate_dependents(self, node: Node) -> None:
        for dependent in node.dependents:
            self._dirty[dependent.index] = dependent

    def flush(self) -> List[str]:
        """
        Recompute every dirty node in topological order.

        :return: names of the nodes that were evaluated, in order
        """
        if self._flushing:
            raise ReentrancyError(f"Graph '{self.name}' is already flushing")

        evaluated: List[str] = []
        self._flushing = True
        try:
            heap = list(self._dirty)
            heapq.heapify(heap)
            while heap:
                index = heapq.heappop(heap)
                node = self._dirty.pop(index, None)
                if node is None:
                    continue
                evaluated.append(node.name)
                if node.evaluate():
                    for dependent in node.dependents:
                        if dependent.index not in self._dirty:
                            self._dirty[dependent.index] = dependent
                            heapq.heappush(heap, dependent.index)
        finally:
            self._flushing = False

        self.last_evaluated = evaluated
        if evaluated:
            logger.debug("flush", extra={"graph": self.name, "evaluated": evaluated})
        return evaluated

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from dash import html

from .bundle import DataBundle
from .exceptions import ContractError
from .inputs import InputScope
from .namespace import Namespace, stage_status_id
from .reactive import Node, NodeStatus, ReactiveGraph
from .transformator import Transformator, validate_transformators

logger = logging.getLogger(__name__)

InputsFactory = Callable[[str], InputScope]


@dataclass
class StageState:
    """
    Observable state of one transformator instance in a pipeline.

    `result` is the node returned by the transformator, `guard` the runner's
    node that checks the contract and feeds the next stage. `upstream` is the
    node the stage consumes; an error passed down from it leaves the stage
    PENDING rather than failed.
    """

    label: str
    ns_id: str
    result: Optional[Node] = None
    guard: Optional[Node] = None
    setup_error: Optional[BaseException] = None
    upstream: Optional[Node] = None

    @property
    def _nodes(self) -> List[Node]:
        return [n for n in (self.result, self.guard) if n is not None]

    def _inherited(self, node: Node) -> bool:
        upstream = self.upstream
        return (
            upstream is not None
            and upstream.status is NodeStatus.ERROR
            and node.error is upstream.error
        )

    def _failed(self) -> List[Node]:
        return [
            n for n in self._nodes
            if n.status is NodeStatus.ERROR and not self._inherited(n)
        ]

    @property
    def status(self) -> NodeStatus:
        if self.setup_error is not None:
            return NodeStatus.ERROR
        if self._failed():
            return NodeStatus.ERROR
        if any(n.status is not NodeStatus.READY for n in self._nodes):
            return NodeStatus.PENDING
        return NodeStatus.READY

    @property
    def error(self) -> Optional[BaseException]:
        if self.setup_error is not None:
            return self.setup_error
        failed = self._failed()
        return failed[0].error if failed else None

    @property
    def error_message(self) -> Optional[str]:
        err = self.error
        if err is None:
            return None
        return str(err) or type(err).__name__


@dataclass
class PipelineResult:
    output: Node
    stages: List[StageState] = field(default_factory=list)
    ui: List[Any] = field(default_factory=list)


def _contract_guard(graph: ReactiveGraph, upstream: Node, label: str) -> Callable[[Any], DataBundle]:
    def check(bundle: Any) -> DataBundle:
        if not isinstance(bundle, DataBundle):
            raise ContractError(
                f"Transformator '{label}' must produce a DataBundle, got {type(bundle).__name__}"
            )
        before = graph.isolate(upstream)
        if isinstance(before, DataBundle):
            dropped = [name for name in before.names if name not in bundle]
            if dropped:
                raise ContractError(
                    f"Transformator '{label}' dropped datasets: {', '.join(dropped)}"
                )
        return bundle

    return check


def _setup_failed(exc: BaseException) -> Callable[[Any], DataBundle]:
    def unavailable(_bundle: Any) -> DataBundle:
        raise exc

    return unavailable


def build_pipeline_ui(ns: Namespace, transformators: Sequence[Transformator]) -> List[Any]:
    """
    One namespaced UI region per transformator, in list order. Each region
    carries a status slot where stage errors are rendered.
    """
    regions = []
    for transformator in transformators:
        stage_ns = ns.child(transformator.label)
        regions.append(
            html.Div(
                [
                    html.H6(transformator.label, className="teal-transformator-title"),
                    transformator.build_ui(stage_ns.id),
                    html.Div(id=stage_status_id(stage_ns.id)),
                ],
                className="teal-transformator mb-3",
            )
        )
    return regions


def run_transformators(
    graph: ReactiveGraph,
    ns: Namespace,
    data: Node,
    transformators: Sequence[Transformator],
    inputs_factory: InputsFactory,
    *,
    build_ui: bool = False,
) -> PipelineResult:
    """
    Chain `transformators` on top of `data`.

    Stage i+1 consumes the guarded output of stage i. A failing stage keeps
    its last good output, so later stages are not re-run until it succeeds
    again ("trigger on success"). A stage that fails before ever producing
    a bundle passes its error down: later stages stay PENDING and the
    pipeline output carries the error.
    """
    transformators = validate_transformators(list(transformators))
    stages: List[StageState] = []
    current = data

    for transformator in transformators:
        stage_ns = ns.child(transformator.label)
        stage = StageState(label=transformator.label, ns_id=stage_ns.id, upstream=current)
        stages.append(stage)

        try:
            result = transformator.make(stage_ns.id, current, inputs_factory(stage_ns.id))
        except Exception as exc:
            logger.exception(
                "Transformator server failed to start",
                extra={"transformator": transformator.label, "ns": stage_ns.id},
            )
            stage.setup_error = exc
            # downstream nodes fail with the setup error
            current = graph.computed(f"{stage_ns.id}:unavailable", _setup_failed(exc), deps=[current])
            continue

        stage.result = result
        stage.guard = graph.computed(
            f"{stage_ns.id}:guard",
            _contract_guard(graph, current, transformator.label),
            deps=[result],
        )
        current = stage.guard

    ui = build_pipeline_ui(ns, transformators) if build_ui else []
    return PipelineResult(output=current, stages=stages, ui=ui)

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from dash import html

from .bundle import DataBundle
from .datanames import ALL, extend_datanames, normalise_datanames
from .exceptions import DefinitionError, DuplicateLabelError
from .filter_registry import PanelSnapshot, apply_filters
from .inputs import InputScope
from .namespace import Namespace, output_id, slugify, stage_status_id
from .pipeline import InputsFactory, StageState, build_pipeline_ui, run_transformators
from .reactive import Node, ReactiveGraph
from .transformator import Transformator, validate_transformators

logger = logging.getLogger(__name__)

ROOT_LABEL = "root"
OWN_TRANSFORM_SEGMENT = "transform"
APP_TRANSFORM_SEGMENT = "app_transform"
DATA_SEGMENT = "data"


def _accepts(fn: Callable[..., Any], name: str) -> bool:
    try:
        params = inspect.signature(fn).parameters
    except (TypeError, ValueError):
        return True
    if name in params:
        return True
    return any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())


@dataclass
class Module:
    """
    A composable unit of UI + server logic over the shared data bundle.

    - label: unique among siblings, used for tabs, filter mapping and namespace
    - server: server(id, data=..., inputs=..., **server_args) returning a
      reactive node (the "main" output), a dict of output name -> node, or None.
      `data` and `inputs` are only passed when the server accepts them.
    - ui: ui(id, **ui_args) -> Dash component; outputs are rendered into
      `output_id(id, name)` placeholders. Defaults to a single "main" output.
    - datanames: "all", explicit dataset names, or None (no filter panel);
      extended with the datanames its own transformators declare
    - transformators: module-owned pre-processing, run after app-level ones
    """

    label: str
    server: Optional[Callable[..., Any]] = None
    ui: Optional[Callable[..., Any]] = None
    datanames: Any = ALL
    transformators: List[Transformator] = field(default_factory=list)
    server_args: Dict[str, Any] = field(default_factory=dict)
    ui_args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise DefinitionError(f"Module label must be a non-empty string, got {self.label!r}")
        if self.label == "global_filters":
            raise DefinitionError("Module label 'global_filters' is reserved")
        if self.server is not None and not callable(self.server):
            raise DefinitionError(f"Module '{self.label}' server must be callable")
        if self.ui is not None and not callable(self.ui):
            raise DefinitionError(f"Module '{self.label}' ui must be callable")
        self.transformators = validate_transformators(self.transformators)
        self.datanames = extend_datanames(
            normalise_datanames(self.datanames),
            [t.datanames for t in self.transformators],
        )

    @property
    def has_filter_panel(self) -> bool:
        return self.datanames is not None

    def visible_datanames(self, bundle: DataBundle) -> List[str]:
        if self.datanames is None or self.datanames == ALL:
            return bundle.names
        return list(self.datanames)

    # ------------------------------------------------------------------
    # UI
    # ------------------------------------------------------------------
    def build_ui(self, ns: Namespace, app_transformators: Sequence[Transformator] = ()) -> Any:
        """
        Module content: a status slot for the module's data view, app-level
        transformator regions, then the module's own transformator regions,
        then the module UI.
        """
        if self.ui is not None:
            body = self.ui(ns.id, **self.ui_args)
        else:
            body = html.Div(id=output_id(ns.id))

        return html.Div(
            [
                html.Div(id=stage_status_id(ns.child(DATA_SEGMENT).id)),
                *build_pipeline_ui(ns.child(APP_TRANSFORM_SEGMENT), app_transformators),
                *build_pipeline_ui(ns.child(OWN_TRANSFORM_SEGMENT), self.transformators),
                body,
            ],
            className="teal-module",
        )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------
    def instantiate(
        self,
        graph: ReactiveGraph,
        ns: Namespace,
        data: Node,
        inputs_factory: InputsFactory,
        filter_panel: Optional[Node] = None,
        transformators: Sequence[Transformator] = (),
    ) -> "ModuleInstance":
        """
        Realise the module in one session.

        The module's server only ever sees the output of the pipeline
        [app-level transformators..., own transformators...] applied to the
        shared bundle restricted to `datanames` and filtered by `filter_panel`.
        """
        deps = [data] if filter_panel is None else [data, filter_panel]

        def visible(bundle: DataBundle, panel: PanelSnapshot = ()) -> DataBundle:
            names = self.visible_datanames(bundle)
            view = bundle.subset(names)
            if panel:
                view = apply_filters(view, panel, names)
            return view

        view = graph.computed(f"{ns.id}:data", visible, deps=deps)
        view_stage = StageState(label="Filters", ns_id=ns.child(DATA_SEGMENT).id, result=view)

        external = run_transformators(
            graph, ns.child(APP_TRANSFORM_SEGMENT), view, transformators, inputs_factory
        )
        own = run_transformators(
            graph, ns.child(OWN_TRANSFORM_SEGMENT), external.output, self.transformators, inputs_factory
        )

        outputs = self._start_server(ns.id, own.output, inputs_factory(ns.id))
        logger.info(
            "module_instantiated",
            extra={
                "module": self.label,
                "ns": ns.id,
                "n_transformators": len(external.stages) + len(own.stages),
                "outputs": sorted(outputs),
            },
        )
        return ModuleInstance(
            module=self,
            ns_id=ns.id,
            view=view,
            data=own.output,
            stages=external.stages + own.stages,
            outputs=outputs,
            view_stage=view_stage,
        )

    def _start_server(self, ns_id: str, data: Node, inputs: InputScope) -> Dict[str, Node]:
        if self.server is None:
            return {}

        kwargs = dict(self.server_args)
        if _accepts(self.server, "data"):
            kwargs["data"] = data
        if _accepts(self.server, "inputs"):
            kwargs["inputs"] = inputs

        result = self.server(ns_id, **kwargs)
        if result is None:
            return {}
        if isinstance(result, Node):
            return {"main": result}
        if isinstance(result, Mapping) and all(isinstance(v, Node) for v in result.values()):
            return {str(k): v for k, v in result.items()}
        raise DefinitionError(
            f"Module '{self.label}' server must return a reactive node, a dict of nodes or None, "
            f"got {type(result).__name__}"
        )


@dataclass
class ModuleInstance:
    """One module realised in one session."""

    module: Module
    ns_id: str
    view: Node
    data: Node
    stages: List[StageState]
    outputs: Dict[str, Node]
    # status of subsetting and filtering the shared bundle
    view_stage: Optional[StageState] = None

    @property
    def label(self) -> str:
        return self.module.label


@dataclass
class ModuleGroup:
    """
    A module whose content is a list of modules and/or groups.
    """

    label: str
    children: List[Union[Module, "ModuleGroup"]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise DefinitionError(f"Group label must be a non-empty string, got {self.label!r}")
        if isinstance(self.children, (Module, ModuleGroup)):
            self.children = [self.children]
        self.children = list(self.children)
        if not self.children:
            raise DefinitionError(f"Group '{self.label}' has no modules")
        for child in self.children:
            if not isinstance(child, (Module, ModuleGroup)):
                raise DefinitionError(
                    f"Group '{self.label}' may only contain Module or ModuleGroup, got {type(child).__name__}"
                )
        check_unique_labels(self.children, parent=self.label)


def check_unique_labels(children: Sequence[Union[Module, ModuleGroup]], parent: str) -> None:
    """
    Raises:
        DuplicateLabelError: if two siblings share a label or a namespace slug
    """
    labels = [c.label for c in children]
    duplicates = sorted({l for l in labels if labels.count(l) > 1})
    if duplicates:
        raise DuplicateLabelError(
            f"Modules in '{parent}' must have unique labels; duplicated: {', '.join(duplicates)}"
        )
    slugs = [slugify(l) for l in labels]
    clashing = sorted({s for s in slugs if slugs.count(s) > 1})
    if clashing:
        raise DuplicateLabelError(
            f"Module labels in '{parent}' map to the same namespace: {', '.join(clashing)}"
        )


def modules(*children: Union[Module, ModuleGroup], label: str = ROOT_LABEL) -> ModuleGroup:
    """Group modules (or nested groups) under `label`."""
    return ModuleGroup(label=label, children=list(children))

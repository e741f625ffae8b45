from __future__ import annotations

import logging
import re
import threading
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .bundle import DataBundle
from .exceptions import SessionBusyError
from .filter_registry import FilterRegistry
from .filter_slices import FilterSlice, deep_copy_filter
from .inputs import InputScope
from .module import ModuleInstance
from .pipeline import StageState
from .reactive import Node, ReactiveGraph, Source

if TYPE_CHECKING:
    from .composer import AppDefinition

logger = logging.getLogger(__name__)

# "iris Species (2)" -> "iris Species"
_NUMBERED_ID = re.compile(r" \(\d+\)$")


class Session:
    """
    One user's realisation of an AppDefinition.

    Owns its reactive graph, its copy of the filter specification and one
    instance of every module. Nothing mutable is shared with other sessions.

    Updates are serialised: a trigger arriving while another one is being
    processed raises SessionBusyError instead of interleaving.
    """

    def __init__(self, definition: "AppDefinition", session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.definition = definition
        self.graph = ReactiveGraph(name=f"session-{self.id}")
        self._lock = threading.Lock()
        self._scopes: Dict[str, InputScope] = {}
        # render bookkeeping owned by the UI layer
        self.view_state: Dict[str, Any] = {}
        self.closed = False

        panel_modules = {
            leaf.ns_id: leaf.label
            for leaf in definition.leaves
            if leaf.item.has_filter_panel
        }
        self.filters = FilterRegistry(deep_copy_filter(definition.filter), panel_modules)

        self.modules: Dict[str, ModuleInstance] = {}
        with self.graph.batch():
            self.data: Source = self.graph.value("data", definition.data)
            self.filter_panels: Dict[str, Source] = {
                key: self.graph.value(f"filters:{key}", self.filters.snapshot(key))
                for key in self.filters.panels
            }
            for leaf in definition.leaves:
                module = leaf.item
                panel = None
                if module.has_filter_panel:
                    panel = self.filter_panels[self.filters.panel_key(leaf.ns_id)]
                self.modules[leaf.ns_id] = module.instantiate(
                    self.graph,
                    leaf.ns,
                    self.data,
                    self.inputs,
                    filter_panel=panel,
                    transformators=definition.transformators,
                )

        logger.info("session_started", extra={"session_id": self.id, "n_modules": len(self.modules)})

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def inputs(self, ns_id: str) -> InputScope:
        scope = self._scopes.get(ns_id)
        if scope is None:
            scope = InputScope(self.graph, ns_id)
            self._scopes[ns_id] = scope
        return scope

    def module(self, ns_id: str) -> ModuleInstance:
        try:
            return self.modules[ns_id]
        except KeyError:
            raise KeyError(f"No module instance with namespace '{ns_id}'")

    def output(self, ns_id: str, name: str = "main") -> Node:
        instance = self.module(ns_id)
        try:
            return instance.outputs[name]
        except KeyError:
            raise KeyError(f"Module '{instance.label}' has no output '{name}'")

    def stage_states(self) -> Dict[str, StageState]:
        states = {}
        for instance in self.modules.values():
            if instance.view_stage is not None:
                states[instance.view_stage.ns_id] = instance.view_stage
            for stage in instance.stages:
                states[stage.ns_id] = stage
        return states

    def code(self, ns_id: str) -> str:
        """Provenance script of the bundle module `ns_id` currently sees."""
        bundle = self.module(ns_id).data.value
        if not isinstance(bundle, DataBundle):
            return ""
        return bundle.get_code()

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError(f"Session '{self.id}' is still processing a previous change")
        try:
            yield
        finally:
            self._lock.release()

    def _refresh_panel(self, key: str) -> None:
        self.filter_panels[key].set(self.filters.snapshot(key))

    def _restore_slice(self, slice_id: str) -> bool:
        """
        Re-register a value slice added by an earlier session for this
        browser tab, from its "<dataname> <varname>" id.
        """
        if not self.filters.spec.allow_add:
            return False
        base_id = _NUMBERED_ID.sub("", slice_id)
        for dataname in self.definition.data.names:
            prefix = f"{dataname} "
            if not base_id.startswith(prefix):
                continue
            varname = base_id[len(prefix):]
            if varname in self.definition.data[dataname].columns:
                self.filters.register_slice(dataname, varname, slice_id)
                return True
        return False

    def _known_slices(self, slice_ids: Iterable[str]) -> List[str]:
        known = []
        for slice_id in slice_ids:
            if self.filters.spec.get(slice_id) is None and not self._restore_slice(slice_id):
                logger.warning(
                    "unknown_filter_dropped",
                    extra={"session_id": self.id, "slice": slice_id},
                )
                continue
            known.append(slice_id)
        return known

    def update(
        self,
        inputs: Optional[Mapping[str, Mapping[str, Any]]] = None,
        filter_active: Optional[Mapping[str, List[str]]] = None,
        filter_selected: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> List[str]:
        """
        Apply one batch of changes and propagate them once.

        Filter ids this session does not know are re-registered when they
        name a dataset column, and dropped otherwise. Panel keys are checked
        before anything is applied; if applying still fails, the graph rolls
        the change back.

        :param inputs: ns id -> {input name: value}
        :param filter_active: panel key -> active slice ids
        :param filter_selected: panel key -> {slice id: selection}; an empty
            selection means "no filter"
        :return: names of the reactive nodes that were recomputed
        """
        with self._exclusive():
            for key in {*(filter_active or {}), *(filter_selected or {})}:
                self.filters.panel(key)

            active = {
                key: self._known_slices(ids or [])
                for key, ids in (filter_active or {}).items()
            }
            selected = {
                key: {
                    slice_id: value
                    for slice_id, value in selections.items()
                    if self._known_slices([slice_id])
                }
                for key, selections in (filter_selected or {}).items()
            }

            with self.graph.batch():
                for ns_id, values in (inputs or {}).items():
                    scope = self.inputs(ns_id)
                    for name, value in values.items():
                        scope.set(name, value)

                for key, ids in active.items():
                    self.filters.set_active(key, ids)

                for key, selections in selected.items():
                    for slice_id, value in selections.items():
                        self.filters.set_selected(key, slice_id, value or None)

                for key in {*active, *selected}:
                    self._refresh_panel(key)

            return self.graph.last_evaluated

    def set_inputs(self, values: Mapping[str, Mapping[str, Any]]) -> List[str]:
        return self.update(inputs=values)

    def set_filter_active(self, key: str, slice_ids: List[str]) -> List[str]:
        return self.update(filter_active={key: slice_ids})

    def set_filter_selected(self, key: str, slice_id: str, selected: Any) -> List[str]:
        return self.update(filter_selected={key: {slice_id: selected}})

    def add_filter(self, key: str, dataname: str, varname: str) -> FilterSlice:
        with self._exclusive():
            filter_slice = self.filters.add_slice(key, dataname, varname)
            self._refresh_panel(key)
        logger.info(
            "filter_added",
            extra={"session_id": self.id, "panel": key, "slice": filter_slice.id},
        )
        return filter_slice

    def set_data(self, bundle: DataBundle) -> None:
        with self._exclusive():
            self.data.set(bundle)

    def close(self) -> None:
        self.closed = True
        logger.info("session_closed", extra={"session_id": self.id})

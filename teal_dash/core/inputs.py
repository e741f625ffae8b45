from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping

from .reactive import MISSING, ReactiveGraph, Source


class InputScope(Mapping[str, Source]):
    """
    The UI inputs of one namespace, exposed as reactive sources.

    Sources are created on first access, so a server can declare the inputs
    it depends on before the browser has sent any value. Until a value
    arrives the source has no value and dependent nodes stay pending.
    """

    def __init__(self, graph: ReactiveGraph, ns_id: str):
        self.graph = graph
        self.ns_id = ns_id
        self._sources: Dict[str, Source] = {}

    def __getitem__(self, name: str) -> Source:
        source = self._sources.get(name)
        if source is None:
            source = self.graph.value(f"{self.ns_id}:input:{name}")
            self._sources[name] = source
        return source

    def __iter__(self) -> Iterator[str]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def set(self, name: str, value: Any) -> bool:
        return self[name].set(value)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def current(self) -> Dict[str, Any]:
        return {
            name: source.value
            for name, source in self._sources.items()
            if source.value is not MISSING
        }

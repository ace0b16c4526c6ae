"""Flatten the chunk import graph into per-entry dependency lists."""
from __future__ import annotations

from typing import Dict, Iterable, List, MutableMapping, Set, Tuple

from .builtins import PLATFORM_LABEL, is_builtin
from .engine import Chunk


DependencyCache = MutableMapping[Tuple[str, str], List[str]]


class DependencyResolver:
    """Resolve the external dependencies an entry chunk pulls in.

    Imports of builtin modules collapse to ``[platform]``; imports naming
    another chunk of the same output are followed and their dependencies
    merged; anything else is recorded verbatim. Results are memoized in
    ``cache`` under ``(scope, file_name)`` so one cache can serve every
    format of a build. Only walks that saw their whole reachable graph are
    memoized, so the answer for a chunk inside a cycle does not depend on
    which chunk of the cycle was resolved first.
    """

    def __init__(
        self,
        chunks: Iterable[Chunk],
        *,
        scope: str = "",
        cache: DependencyCache | None = None,
    ) -> None:
        self._chunks: Dict[str, Chunk] = {chunk.file_name: chunk for chunk in chunks}
        self._scope = scope
        self._cache: DependencyCache = cache if cache is not None else {}

    def resolve(self, chunk: Chunk) -> List[str]:
        deps, _ = self._collect(chunk, set())
        return sorted(deps)

    def _collect(self, chunk: Chunk, visiting: Set[str]) -> Tuple[Set[str], Set[str]]:
        """Return the dependencies of ``chunk`` and the on-stack chunks it skipped."""

        key = (self._scope, chunk.file_name)
        cached = self._cache.get(key)
        if cached is not None:
            return set(cached), set()

        visiting.add(chunk.file_name)
        deps: Set[str] = set()
        skipped: Set[str] = set()
        for module_id in chunk.imports:
            if is_builtin(module_id):
                deps.add(PLATFORM_LABEL)
                continue
            dependency = self._chunks.get(module_id)
            if dependency is None:
                deps.add(module_id)
                continue
            # Chunks already on the stack are part of a cycle; skip them.
            if dependency.file_name in visiting:
                skipped.add(dependency.file_name)
                continue
            child_deps, child_skipped = self._collect(dependency, visiting)
            deps.update(child_deps)
            skipped.update(child_skipped)
        visiting.discard(chunk.file_name)

        skipped.discard(chunk.file_name)
        if not skipped:
            self._cache[key] = sorted(deps)
        return deps, skipped


__all__ = ["DependencyCache", "DependencyResolver"]

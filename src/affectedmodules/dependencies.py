from __future__ import annotations

import logging
from typing import Iterable, Mapping

from .ownership import Module, ModulePath

logger = logging.getLogger(__name__)


def build_reverse_dependencies(modules: Iterable[Module]) -> dict[ModulePath, frozenset[ModulePath]]:
    """Map each dependency target to the modules that declare it."""
    result: dict[ModulePath, set[ModulePath]] = {}
    for m in modules:
        for dep in m.dependencies:
            result.setdefault(dep, set()).add(m.path)
    return {k: frozenset(v) for k, v in result.items()}


class DependencyTracker:
    """Answers "what depends on X" from a reverse dependency map."""

    def __init__(self, reverse: Mapping[ModulePath, frozenset[ModulePath]]):
        self._reverse = dict(reverse)

    @classmethod
    def build(cls, modules: Iterable[Module]) -> DependencyTracker:
        modules = list(modules)
        tracker = cls(build_reverse_dependencies(modules))
        logger.debug(
            "dependency tracker built from %d modules, %d dependency targets",
            len(modules),
            len(tracker._reverse),
        )
        return tracker

    def dependents_of(self, module: ModulePath) -> frozenset[ModulePath]:
        return self._reverse.get(module, frozenset())

    def find_all_dependents(self, module: ModulePath) -> set[ModulePath]:
        seen: set[ModulePath] = set()
        stack = [module]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._reverse.get(current, ()))

        # A module is never its own dependent, even inside a cycle.
        seen.discard(module)
        logger.debug("dependents of %s: %s", module, sorted(str(m) for m in seen))
        return seen

    def find_cycles(self) -> list[list[ModulePath]]:
        """Dependency cycles, each reported once starting from its smallest member."""
        found: set[tuple[ModulePath, ...]] = set()
        nodes = sorted(set(self._reverse) | {d for deps in self._reverse.values() for d in deps})

        for start in nodes:
            # Only extend through larger members so each cycle is found from its minimum.
            stack: list[list[ModulePath]] = [[start]]
            while stack:
                trail = stack.pop()
                for nxt in sorted(self._reverse.get(trail[-1], ())):
                    if nxt == start:
                        found.add(tuple(trail))
                    elif nxt > start and nxt not in trail:
                        stack.append(trail + [nxt])

        return [list(c) for c in sorted(found)]

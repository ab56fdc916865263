from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Iterable

from .config import AffectedModuleConfiguration
from .dependencies import DependencyTracker
from .errors import UsageError
from .ownership import ModuleGraph, ModulePath
from .paths import normalize_paths, path_sections, read_submodule_paths, relative_sections, starts_with_sections

logger = logging.getLogger(__name__)


class ProjectSubset(str, Enum):
    """Which slice of the affected modules a caller asks for.

    CHANGED      -- modules that own a changed file.
    DEPENDENT    -- modules that depend, directly or not, on a changed module.
    ALL_AFFECTED -- the union of the two; a query mode only.
    NONE         -- per-module answer for a module that is not affected.
    """

    CHANGED = "changed"
    DEPENDENT = "dependent"
    ALL_AFFECTED = "all"
    NONE = "none"


@dataclass(frozen=True)
class ImpactReport:
    subset: ProjectSubset
    changed_files: list[str] = field(default_factory=list)
    changed_modules: list[ModulePath] = field(default_factory=list)
    dependent_modules: list[ModulePath] = field(default_factory=list)
    affected_modules: list[ModulePath] = field(default_factory=list)
    unknown_files: list[str] = field(default_factory=list)
    global_files: list[str] = field(default_factory=list)
    build_all: bool = False

    def total_files(self) -> int:
        return len(self.changed_files)


@dataclass(frozen=True)
class _Resolution:
    changed: set[ModulePath]
    unknown_files: list[str] = field(default_factory=list)
    global_files: list[str] = field(default_factory=list)


class AffectedModuleDetector:
    """Decides which modules a change set affects.

    Every derived set is computed on first access and kept for the lifetime
    of the detector; its inputs never change after construction.
    """

    def __init__(
        self,
        graph: ModuleGraph,
        tracker: DependencyTracker,
        config: AffectedModuleConfiguration,
        changed_files: Iterable[str],
        subset: ProjectSubset = ProjectSubset.ALL_AFFECTED,
        modules: Iterable[str] | None = None,
        vcs_root: Path | None = None,
    ):
        if subset is ProjectSubset.NONE:
            raise UsageError("NONE is a per-module result, not a query subset")
        self.graph = graph
        self.tracker = tracker
        self.config = config
        self.subset = subset
        self.modules = set(modules) if modules is not None else None
        self.vcs_root = Path(vcs_root) if vcs_root is not None else graph.vcs_root
        self._changed_files = normalize_paths(changed_files)
        logger.info("modules provided: %s", ",".join(sorted(self.modules)) if self.modules is not None else None)

    @cached_property
    def all_modules(self) -> set[ModulePath]:
        return self.graph.all_modules

    @cached_property
    def _resolution(self) -> _Resolution:
        global_prefixes = [path_sections(p) for p in self.config.global_paths()]
        for f in self._changed_files:
            if global_prefixes and self._affects_all_modules(f, global_prefixes):
                logger.info("%s affects all modules", f)
                return _Resolution(changed=set(self.all_modules), global_files=[f])

        submodules = self._submodule_paths()
        changed: set[ModulePath] = set()
        unknown: list[str] = []
        for f in self._changed_files:
            if f in submodules:
                owned = self.graph.modules_under(f)
                if owned:
                    logger.info("submodule %s changed, adding %s", f, sorted(str(m) for m in owned))
                    changed |= owned
                    continue

            owner = self.graph.find_owning_module(f)
            if owner is None:
                logger.info("Couldn't find containing module for file %s. Adding to unknown files.", f)
                unknown.append(f)
            else:
                logger.info("For file %s containing module is %s. Adding to changed modules.", f, owner)
                changed.add(owner)
        return _Resolution(changed=changed, unknown_files=unknown)

    @property
    def changed_modules(self) -> set[ModulePath]:
        """Modules owning a changed file (every module after a global change)."""
        return self._resolution.changed

    @cached_property
    def dependent_modules(self) -> set[ModulePath]:
        """Everything depending on a changed module.

        May overlap `changed_modules`; `get_subset` gives CHANGED priority.
        """
        out: set[ModulePath] = set()
        for m in self.changed_modules:
            out |= self.tracker.find_all_dependents(m)
        return out

    @property
    def unknown_files(self) -> list[str]:
        return self._resolution.unknown_files

    @cached_property
    def build_all(self) -> bool:
        return (
            self.config.build_all_when_no_modules_changed
            and not self.changed_modules
            and not self.unknown_files
        )

    @cached_property
    def affected_modules(self) -> set[ModulePath]:
        # Literal changes only, for fine-grained test impact reporting.
        if self.subset is ProjectSubset.CHANGED:
            return set(self.changed_modules)

        logger.info(
            "unknown files: %s, changed modules: %s, build all: %s",
            self.unknown_files,
            sorted(str(m) for m in self.changed_modules),
            self.build_all,
        )
        if self.build_all:
            logger.info("Building all modules because no changed files were detected")
            return set(self.all_modules)

        if self.subset is ProjectSubset.ALL_AFFECTED:
            return self.changed_modules | self.dependent_modules
        return set(self.dependent_modules)

    def _affects_all_modules(self, file_path: str, prefixes: list[list[str]]) -> bool:
        sections = relative_sections(file_path, self.config.base_dir, self.vcs_root, partial=False)
        return any(starts_with_sections(sections, prefix) for prefix in prefixes)

    def _submodule_paths(self) -> set[str]:
        if self.vcs_root is None:
            return set()
        return set(read_submodule_paths(self.vcs_root))

    def is_module_provided(self, module: ModulePath) -> bool:
        if self.modules is None:
            return True
        return module.path in self.modules

    def is_excluded(self, module: ModulePath) -> bool:
        return self.config.is_excluded(module.path, module.name)

    def should_include(self, module: ModulePath) -> bool:
        include = (
            module in self.affected_modules
            and self.is_module_provided(module)
            and not self.is_excluded(module)
        )
        logger.debug("checking whether to include %s: %s", module, include)
        return include

    def has_affected_modules(self) -> bool:
        return bool(self.affected_modules)

    def get_subset(self, module: ModulePath) -> ProjectSubset:
        if module in self.changed_modules:
            return ProjectSubset.CHANGED
        if module in self.dependent_modules:
            return ProjectSubset.DEPENDENT
        return ProjectSubset.NONE

    def included_modules(self) -> list[ModulePath]:
        return sorted(m for m in self.affected_modules if self.should_include(m))

    def report(self) -> ImpactReport:
        affected = self.included_modules()
        return ImpactReport(
            subset=self.subset,
            changed_files=sorted(set(self._changed_files)),
            changed_modules=sorted(self.changed_modules),
            dependent_modules=sorted(self.dependent_modules - self.changed_modules),
            affected_modules=affected,
            unknown_files=sorted(set(self.unknown_files)),
            global_files=sorted(set(self._resolution.global_files)),
            build_all=self.subset is not ProjectSubset.CHANGED and self.build_all,
        )


class AcceptAll:
    """Stand-in used when detection is disabled: everything is affected."""

    subset = ProjectSubset.ALL_AFFECTED

    def __init__(self, graph: ModuleGraph):
        self.graph = graph

    @property
    def affected_modules(self) -> set[ModulePath]:
        return self.graph.all_modules

    def is_module_provided(self, module: ModulePath) -> bool:
        return True

    def should_include(self, module: ModulePath) -> bool:
        return True

    def has_affected_modules(self) -> bool:
        return True

    def get_subset(self, module: ModulePath) -> ProjectSubset:
        return ProjectSubset.CHANGED

    def included_modules(self) -> list[ModulePath]:
        return sorted(self.affected_modules)

    def report(self) -> ImpactReport:
        modules = self.included_modules()
        return ImpactReport(
            subset=ProjectSubset.ALL_AFFECTED,
            changed_modules=modules,
            affected_modules=modules,
            build_all=True,
        )

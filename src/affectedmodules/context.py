"""Per-run handle to the detector.

Consumers receive a DetectorContext instead of looking the detector up in
process-wide state. Asking for the detector before `configure` has stored one
fails with DetectorNotReadyError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

from .config import AffectedModuleConfiguration
from .dependencies import DependencyTracker
from .errors import DetectorNotReadyError
from .gitutils import GitClient
from .impact import AcceptAll, AffectedModuleDetector, ProjectSubset
from .ownership import Module, ModuleGraph, ModulePath

logger = logging.getLogger(__name__)

Detector = Union[AffectedModuleDetector, AcceptAll]


class DetectorContext:
    def __init__(self) -> None:
        self._detector: Detector | None = None

    @property
    def is_ready(self) -> bool:
        return self._detector is not None

    def set(self, detector: Detector) -> None:
        self._detector = detector

    def get(self) -> Detector:
        if self._detector is None:
            raise DetectorNotReadyError(
                "Tried to get the affected module detector too early. "
                "It is only available once every module has been registered."
            )
        return self._detector

    def should_include(self, module: str | ModulePath) -> bool:
        return self.get().should_include(_as_module_path(module))

    def get_subset(self, module: str | ModulePath) -> ProjectSubset:
        return self.get().get_subset(_as_module_path(module))

    def has_affected_modules(self) -> bool:
        return self.get().has_affected_modules()


def _as_module_path(module: str | ModulePath) -> ModulePath:
    return module if isinstance(module, ModulePath) else ModulePath(module)


def configure(
    root_dir: Path,
    modules: Iterable[Module],
    config: AffectedModuleConfiguration,
    *,
    subset: ProjectSubset = ProjectSubset.ALL_AFFECTED,
    allow_list: Iterable[str] | None = None,
    enabled: bool = True,
    git_client: GitClient | None = None,
    changed_files: Iterable[str] | None = None,
) -> DetectorContext:
    """Build the graph, tracker and detector for one root and wrap them.

    `changed_files` skips git entirely (e.g. a list read from stdin).
    """
    modules = list(modules)
    context = DetectorContext()

    git = git_client or GitClient(
        root_dir,
        commit_range=config.commit_range(),
        ignored_files=config.ignored_files,
    )
    vcs_root = git.get_root()
    graph = ModuleGraph.build(modules, root_dir=root_dir, vcs_root=vcs_root)

    if not enabled:
        logger.info("affected module detection disabled, accepting all modules")
        context.set(AcceptAll(graph))
        return context

    if changed_files is None:
        changed_files = git.find_changed_files(top=config.top, include_uncommitted=config.include_uncommitted)
    else:
        changed_files = git.filter_ignored(changed_files)

    detector = AffectedModuleDetector(
        graph=graph,
        tracker=DependencyTracker.build(modules),
        config=config,
        changed_files=changed_files,
        subset=subset,
        modules=allow_list,
        vcs_root=vcs_root,
    )
    logger.info("using real detector with %s", subset.name)
    context.set(detector)
    return context

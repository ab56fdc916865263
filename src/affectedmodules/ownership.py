from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from .paths import directory_sections, relative_sections

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ModulePath:
    """Hierarchical module identifier such as ':app:core'."""

    path: str

    def __str__(self) -> str:
        return self.path

    @property
    def name(self) -> str:
        parts = [p for p in self.path.replace("/", ":").split(":") if p]
        return parts[-1] if parts else self.path


@dataclass(frozen=True)
class Module:
    path: ModulePath
    directory: Path
    dependencies: tuple[ModulePath, ...] = ()


@dataclass
class _Node:
    module: ModulePath | None = None
    # Every module declared at this directory; `module` is the one owning its files.
    members: set[ModulePath] = field(default_factory=set)
    children: dict[str, _Node] = field(default_factory=dict)

    def child(self, section: str) -> _Node:
        node = self.children.get(section)
        if node is None:
            node = _Node()
            self.children[section] = node
        return node

    def walk(self) -> Iterator[_Node]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(node.children.values())


class ModuleGraph:
    """Prefix tree over module directories for fast file -> module lookup.

    Built once per root; lookups return the deepest module whose directory
    contains the file.
    """

    def __init__(self, root: _Node, root_dir: Path, vcs_root: Path | None = None):
        self._root = root
        self._all = frozenset(p for n in root.walk() for p in n.members)
        self.root_dir = Path(root_dir)
        self.vcs_root = Path(vcs_root) if vcs_root is not None else None

    @classmethod
    def build(cls, modules: Iterable[Module], root_dir: Path, vcs_root: Path | None = None) -> ModuleGraph:
        root = _Node()
        for m in modules:
            node = root
            for section in directory_sections(m.directory, root_dir):
                node = node.child(section)
            node.module = m.path
            node.members.add(m.path)
        return cls(root, root_dir=root_dir, vcs_root=vcs_root)

    def _sections(self, file_path: str) -> list[str]:
        return relative_sections(file_path, self.root_dir, self.vcs_root)

    def find_owning_module(self, file_path: str) -> ModulePath | None:
        node = self._root
        found = node.module
        for section in self._sections(file_path):
            child = node.children.get(section)
            if child is None:
                break
            node = child
            if node.module is not None:
                found = node.module
        logger.debug("search result for %s resulted in %s", file_path, found)
        return found

    def modules_under(self, directory: str) -> set[ModulePath]:
        """Every module whose directory is `directory` or below it."""
        node = self._root
        for section in self._sections(directory):
            child = node.children.get(section)
            if child is None:
                return set()
            node = child
        return {p for n in node.walk() for p in n.members}

    @property
    def all_modules(self) -> set[ModulePath]:
        """Every module passed to `build`, including ones sharing a directory."""
        return set(self._all)

    @property
    def root_module(self) -> ModulePath | None:
        return self._root.module


def module_path(value: str | ModulePath) -> ModulePath:
    return value if isinstance(value, ModulePath) else ModulePath(value)

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .commit_range import CommitRange, CompareFrom, commit_range_from
from .errors import ConfigError, ParseError
from .paths import normalize_repo_path

DEFAULT_LOG_FILENAME = "affected_module_detector.log"


@dataclass(frozen=True)
class AffectedModuleConfiguration:
    """Policy knobs for one resolution run.

    Invalid combinations are rejected at construction. The global-impact paths
    are checked against the filesystem each time they are read, since they
    are only meaningful while they exist.
    """

    base_dir: Path | None = None
    paths_affecting_all_modules: tuple[str, ...] = ()
    compare_from: CompareFrom = CompareFrom.PREVIOUS_COMMIT
    specified_branch: str | None = None
    specified_raw_commit_sha: str | None = None
    parent_branch: str | None = None
    excluded_modules: frozenset[str] = frozenset()
    include_uncommitted: bool = True
    top: str = "HEAD"
    build_all_when_no_modules_changed: bool = True
    ignored_files: tuple[str, ...] = ()
    log_folder: Path | None = None
    log_filename: str = DEFAULT_LOG_FILENAME

    _excluded_patterns: tuple[re.Pattern[str], ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "compare_from", CompareFrom.parse(self.compare_from))
        object.__setattr__(self, "paths_affecting_all_modules", tuple(self.paths_affecting_all_modules))
        object.__setattr__(self, "excluded_modules", frozenset(self.excluded_modules))
        object.__setattr__(self, "ignored_files", tuple(self.ignored_files))
        if self.base_dir is not None:
            object.__setattr__(self, "base_dir", Path(self.base_dir))

        if self.paths_affecting_all_modules and self.base_dir is None:
            raise ConfigError("base_dir must be set to use paths_affecting_all_modules")

        if self.top != "HEAD" and self.include_uncommitted:
            raise ConfigError("Set include_uncommitted to false to set a custom top")

        # Fails fast on a strategy without its parameter.
        self.commit_range()

        for raw in self.ignored_files:
            _compile(raw, key="ignored_files")
        patterns = tuple(_compile(raw, key="excluded_modules") for raw in sorted(self.excluded_modules))
        object.__setattr__(self, "_excluded_patterns", patterns)

    def global_paths(self) -> list[str]:
        """The global-impact paths, each verified to exist under base_dir."""
        if not self.paths_affecting_all_modules:
            return []
        if self.base_dir is None:
            raise ConfigError("base_dir must be set to use paths_affecting_all_modules")
        out: list[str] = []
        for p in self.paths_affecting_all_modules:
            if not (self.base_dir / p).exists():
                raise ConfigError(f"Could not find expected path in paths_affecting_all_modules: {p}")
            out.append(normalize_repo_path(p))
        return out

    def commit_range(self) -> CommitRange:
        return commit_range_from(
            self.compare_from,
            specified_branch=self.specified_branch,
            specified_raw_commit_sha=self.specified_raw_commit_sha,
            parent_branch=self.parent_branch,
        )

    def is_excluded(self, module: str, name: str | None = None) -> bool:
        if module in self.excluded_modules or (name is not None and name in self.excluded_modules):
            return True
        return any(rx.fullmatch(module) for rx in self._excluded_patterns)

    @property
    def log_file(self) -> Path | None:
        if self.log_folder is None:
            return None
        return self.log_folder / self.log_filename


def _compile(raw: str, *, key: str) -> re.Pattern[str]:
    try:
        return re.compile(raw)
    except re.error as e:
        raise ConfigError(f"{key}: invalid regular expression {raw!r}: {e}") from e


# YAML keys accepted in camelCase (as written in build scripts) or snake_case.
_KEY_ALIASES = {
    "baseDir": "base_dir",
    "pathsAffectingAllModules": "paths_affecting_all_modules",
    "compareFrom": "compare_from",
    "specifiedBranch": "specified_branch",
    "specifiedRawCommitSha": "specified_raw_commit_sha",
    "parentBranch": "parent_branch",
    "excludedModules": "excluded_modules",
    "includeUncommitted": "include_uncommitted",
    "buildAllWhenNoProjectsChanged": "build_all_when_no_modules_changed",
    "buildAllWhenNoModulesChanged": "build_all_when_no_modules_changed",
    "ignoredFiles": "ignored_files",
    "logFolder": "log_folder",
    "logFilename": "log_filename",
}

_STR_LIST_KEYS = ("paths_affecting_all_modules", "excluded_modules", "ignored_files")
_BOOL_KEYS = ("include_uncommitted", "build_all_when_no_modules_changed")
_STR_KEYS = (
    "compare_from",
    "specified_branch",
    "specified_raw_commit_sha",
    "parent_branch",
    "top",
    "log_filename",
)
_PATH_KEYS = ("base_dir", "log_folder")


def _ensure_str_list(value: Any, *, source: str, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ParseError(f"{source}: '{field_name}' must be a list of strings")
    return value


def parse_config_obj(data: Any, *, source: str, base: Path | None = None) -> AffectedModuleConfiguration:
    """Build a configuration from a parsed YAML document.

    Accepts either a top-level mapping or one nested under
    `affectedModuleDetector`. Relative directories resolve against `base`.
    """
    if data is None:
        return AffectedModuleConfiguration()

    if not isinstance(data, Mapping):
        raise ParseError(f"{source}: expected a mapping")

    if "affectedModuleDetector" in data and isinstance(data.get("affectedModuleDetector"), Mapping):
        data = data["affectedModuleDetector"]

    kwargs: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = _KEY_ALIASES.get(raw_key, raw_key)
        if key in _STR_LIST_KEYS:
            kwargs[key] = _ensure_str_list(value, source=source, field_name=raw_key)
        elif key in _BOOL_KEYS:
            if not isinstance(value, bool):
                raise ParseError(f"{source}: '{raw_key}' must be true or false")
            kwargs[key] = value
        elif key in _STR_KEYS:
            if value is not None and not isinstance(value, str):
                raise ParseError(f"{source}: '{raw_key}' must be a string")
            if value is not None:
                kwargs[key] = value
        elif key in _PATH_KEYS:
            if value is None:
                continue
            if not isinstance(value, str):
                raise ParseError(f"{source}: '{raw_key}' must be a path string")
            p = Path(value)
            if not p.is_absolute() and base is not None:
                p = base / p
            kwargs[key] = p
        else:
            raise ParseError(f"{source}: unknown configuration key '{raw_key}'")

    return AffectedModuleConfiguration(**kwargs)


def load_config(path: Path) -> AffectedModuleConfiguration:
    if not path.exists():
        return AffectedModuleConfiguration()
    try:
        obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ParseError(f"Failed to parse config file {path}: {e}") from e
    return parse_config_obj(obj, source=str(path), base=path.parent)

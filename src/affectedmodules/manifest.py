from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ParseError
from .ownership import Module, ModulePath


def _parse_dependencies(value: Any, *, source: str, name: str) -> tuple[ModulePath, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(x, str) and x.strip() for x in value):
        raise ParseError(f"{source}: module '{name}': dependencies must be a list of module paths")
    # Order kept, duplicates dropped.
    return tuple(ModulePath(d.strip()) for d in dict.fromkeys(value))


def parse_manifest_obj(data: Any, *, source: str, root_dir: Path) -> list[Module]:
    """Turn a parsed manifest into modules.

    Accepted shapes:
    - {modules: {":app": {dir: "app", dependencies: [":core"]}}}
    - {":app": {...}, ":core": {...}}
    A module without `dir` lives in the directory named after its path
    (":libs:net" -> libs/net).
    """
    if data is None:
        return []

    if not isinstance(data, Mapping):
        raise ParseError(f"{source}: expected a mapping")

    if "modules" in data and isinstance(data.get("modules"), Mapping):
        modules_map = data["modules"]
    else:
        modules_map = data

    modules: list[Module] = []
    for name, raw in modules_map.items():
        if not isinstance(name, str) or not name.strip():
            raise ParseError(f"{source}: module keys must be non-empty strings")
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ParseError(f"{source}: module '{name}' must be a mapping")

        directory = raw.get("dir", raw.get("directory"))
        if directory is None:
            directory = "/".join(p for p in name.split(":") if p)
        if not isinstance(directory, str):
            raise ParseError(f"{source}: module '{name}': dir must be a string")

        deps_raw = raw.get("dependencies", raw.get("deps"))
        modules.append(
            Module(
                path=ModulePath(name.strip()),
                directory=root_dir / directory,
                dependencies=_parse_dependencies(deps_raw, source=source, name=name),
            )
        )

    return modules


def load_manifest(path: Path, root_dir: Path | None = None) -> list[Module]:
    if not path.exists():
        raise ParseError(f"module manifest not found: {path}")
    try:
        obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ParseError(f"Failed to parse module manifest {path}: {e}") from e
    return parse_manifest_obj(obj, source=str(path), root_dir=root_dir or path.parent)

from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath
from typing import Iterable, Sequence

_SUBMODULE_PATH_RE = re.compile(r"^\s*path\s*=\s*(.+?)\s*$")


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_repo_path(path: str, repo_root: Path | None = None) -> str:
    """Normalize a file path for ownership lookups.

    - Converts backslashes to slashes
    - If absolute and repo_root is provided, makes it relative to repo_root
    - Strips leading './' (repeatable) and a single leading '/'
    """
    p = to_posix(normalize_line_endings(path)).strip()

    # Trim surrounding quotes (git quotes paths with unusual characters)
    if len(p) >= 2 and ((p.startswith('"') and p.endswith('"')) or (p.startswith("'") and p.endswith("'"))):
        p = p[1:-1]

    if repo_root is not None:
        pp = Path(p)
        if pp.is_absolute():
            try:
                p = to_posix(str(pp.relative_to(repo_root)))
            except ValueError:
                # Outside the repo; keep the original.
                pass

    while p.startswith("./"):
        p = p[2:]
    if p.startswith("/"):
        p = p[1:]

    return str(PurePosixPath(p)) if p else ""


def normalize_paths(paths: Iterable[str], repo_root: Path | None = None) -> list[str]:
    out: list[str] = []
    for p in paths:
        if not p or not p.strip():
            continue
        norm = normalize_repo_path(p, repo_root=repo_root)
        if norm and norm != ".":
            out.append(norm)
    return out


def path_sections(path: str) -> list[str]:
    return [seg for seg in to_posix(path).split("/") if seg and seg != "."]


def directory_sections(directory: Path, root_dir: Path) -> list[str]:
    """Sections of `directory` relative to `root_dir`.

    Directories that are not below `root_dir` produce '..' segments; those are
    dropped so sibling trees of a nested root still land in the same trie.
    """
    rel = os.path.relpath(os.path.abspath(directory), os.path.abspath(root_dir))
    return [seg for seg in path_sections(rel) if seg != ".."]


def relative_sections(
    path: str, root_dir: Path | None, vcs_root: Path | None, *, partial: bool = True
) -> list[str]:
    """Sections of a VCS-root-relative `path`, rebased onto `root_dir`.

    Leading sections matching the location of `root_dir` inside `vcs_root` are
    dropped one at a time and the first mismatch stops the rebasing. That
    partial rebase lets files of sibling trees reach modules declared outside
    the root (see `directory_sections`). With `partial=False` the path is
    rebased only when it lies fully below `root_dir`, and returned unchanged
    otherwise.
    """
    sections = path_sections(path)
    if root_dir is None or vcs_root is None:
        return sections

    root_sections = directory_sections(root_dir, vcs_root)
    if not partial:
        if starts_with_sections(sections, root_sections):
            return sections[len(root_sections) :]
        return sections

    for prefix in root_sections:
        if sections and sections[0] == prefix:
            sections.pop(0)
        else:
            break
    return sections


def starts_with_sections(sections: Sequence[str], prefix: Sequence[str]) -> bool:
    if not prefix or len(prefix) > len(sections):
        return False
    return list(sections[: len(prefix)]) == list(prefix)


def read_submodule_paths(vcs_root: Path) -> list[str]:
    """Paths of the submodules declared in `.gitmodules` (empty when absent)."""
    gitmodules = vcs_root / ".gitmodules"
    if not gitmodules.is_file():
        return []

    out: list[str] = []
    for line in gitmodules.read_text(encoding="utf-8").splitlines():
        m = _SUBMODULE_PATH_RE.match(line)
        if not m:
            continue
        norm = normalize_repo_path(m.group(1))
        if norm:
            out.append(norm)
    return out

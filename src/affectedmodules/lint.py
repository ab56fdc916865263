from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .dependencies import DependencyTracker
from .ownership import Module
from .paths import directory_sections


@dataclass(frozen=True)
class Issue:
    severity: str  # "ERROR" | "WARN"
    code: str
    message: str
    module: str | None = None
    hint: str | None = None


@dataclass(frozen=True)
class LintResult:
    issues: list[Issue]

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "ERROR" for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(i.severity == "WARN" for i in self.issues)


def lint_manifest(
    modules: list[Module],
    *,
    root_dir: Path,
    strict: bool = False,
    check_directories: bool = True,
) -> LintResult:
    """Lint the module manifest.

    Unknown dependency targets are errors: the reverse dependency closure
    would silently miss them. Everything else is a warning, promoted to an
    error in strict mode.
    """
    issues: list[Issue] = []
    warn = "WARN" if not strict else "ERROR"
    known = {m.path for m in modules}

    for m in modules:
        for dep in m.dependencies:
            if dep == m.path:
                issues.append(
                    Issue(
                        severity=warn,
                        code="SELF_DEPENDENCY",
                        message=f"Module '{m.path}' depends on itself.",
                        module=str(m.path),
                        hint="Remove the entry; it has no effect on the result.",
                    )
                )
            elif dep not in known:
                issues.append(
                    Issue(
                        severity="ERROR",
                        code="UNKNOWN_DEPENDENCY",
                        message=f"Module '{m.path}' depends on unknown module '{dep}'.",
                        module=str(m.path),
                        hint="Add it to the manifest (or fix the spelling).",
                    )
                )

    # Two modules in one directory: the last one wins the ownership lookup.
    seen: dict[tuple[str, ...], Module] = {}
    for m in modules:
        key = tuple(directory_sections(m.directory, root_dir))
        prev = seen.get(key)
        if prev is not None:
            issues.append(
                Issue(
                    severity=warn,
                    code="DUPLICATE_DIRECTORY",
                    message=(
                        f"Modules '{prev.path}' and '{m.path}' share the directory "
                        f"'{'/'.join(key) or '.'}'; '{m.path}' owns its files."
                    ),
                    module=str(m.path),
                )
            )
        seen[key] = m

    if check_directories:
        for m in modules:
            if not m.directory.is_dir():
                issues.append(
                    Issue(
                        severity=warn,
                        code="MISSING_DIRECTORY",
                        message=f"Directory for module '{m.path}' does not exist: {m.directory}",
                        module=str(m.path),
                        hint="Changes can never be attributed to this module.",
                    )
                )

    for cycle in DependencyTracker.build(modules).find_cycles():
        if len(cycle) == 1:
            continue  # already reported as SELF_DEPENDENCY
        chain = " <- ".join(str(c) for c in [*cycle, cycle[0]])
        issues.append(
            Issue(
                severity=warn,
                code="DEPENDENCY_CYCLE",
                message=f"Dependency cycle: {chain}",
                module=str(cycle[0]),
                hint="Cycles are tolerated, but every member becomes a dependent of every other.",
            )
        )

    return LintResult(issues=issues)

from __future__ import annotations

from .impact import ImpactReport, ProjectSubset
from .lint import LintResult

_SUBSET_TITLES = {
    ProjectSubset.CHANGED: "changed modules",
    ProjectSubset.DEPENDENT: "dependent modules",
    ProjectSubset.ALL_AFFECTED: "all affected modules",
}


def _file_list(lines: list[str], files: list[str], max_files: int, indent: str = "") -> None:
    shown = files[:max_files]
    for f in shown:
        lines.append(f"{indent}- `{f}`")
    if len(files) > len(shown):
        lines.append(f"{indent}- _…and {len(files) - len(shown)} more_")


def render_impact_markdown(
    report: ImpactReport,
    *,
    title: str = "Affected modules",
    include_files: bool = False,
    max_files: int = 50,
    include_unknown: bool = True,
) -> str:
    lines: list[str] = [f"## {title}", ""]
    lines.append(f"Subset: {_SUBSET_TITLES.get(report.subset, report.subset.value)}")
    lines.append("")

    if report.build_all:
        lines.append("_No module changes detected; building everything._")
        lines.append("")
    elif report.global_files:
        lines.append(f"_`{report.global_files[0]}` affects all modules._")
        lines.append("")

    lines.append(f"### Modules ({len(report.affected_modules)})")
    lines.append("")
    if not report.affected_modules:
        lines.append("_None_")
    changed = set(report.changed_modules)
    for m in report.affected_modules:
        label = "changed" if m in changed else "dependent"
        lines.append(f"- **{m}** ({label})")
    lines.append("")

    if include_files and report.changed_files:
        lines.append(f"### Changed files ({report.total_files()})")
        lines.append("")
        _file_list(lines, report.changed_files, max_files)
        lines.append("")

    if include_unknown and report.unknown_files:
        lines.append(f"### Files outside any module ({len(report.unknown_files)})")
        lines.append("")
        _file_list(lines, report.unknown_files, max_files)
        lines.append("")

    if not report.changed_files and not report.build_all:
        lines.append("_No changed files detected._")

    return "\n".join(lines)


def render_lint_markdown(result: LintResult, *, title: str = "Lint") -> str:
    if not result.issues:
        return f"### {title}\n\n✅ No lint issues found.\n"

    lines: list[str] = [f"### {title}", ""]
    for iss in result.issues:
        hint = f" _(hint: {iss.hint})_" if iss.hint else ""
        icon = "❌" if iss.severity == "ERROR" else "⚠️"
        lines.append(f"- {icon} **{iss.code}**: {iss.message}{hint}")
    lines.append("")
    return "\n".join(lines)

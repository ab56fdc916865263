from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import AffectedModuleConfiguration, load_config
from .context import configure
from .dependencies import DependencyTracker
from .errors import ConfigError, GitError, ParseError, UsageError
from .gitutils import find_vcs_root
from .impact import ProjectSubset
from .lint import lint_manifest
from .logging_config import setup_logging
from .manifest import load_manifest
from .markdown import render_impact_markdown, render_lint_markdown
from .ownership import Module, ModuleGraph, ModulePath
from .paths import normalize_repo_path
from .version import __version__

_SUBSETS = {
    "changed": ProjectSubset.CHANGED,
    "dependent": ProjectSubset.DEPENDENT,
    "all": ProjectSubset.ALL_AFFECTED,
}


def _root_dir(args_root_dir: str | None) -> Path:
    if args_root_dir:
        return Path(args_root_dir).resolve()
    return Path.cwd()


def _load(root_dir: Path, manifest_file: str, config_file: str) -> tuple[list[Module], AffectedModuleConfiguration]:
    modules = load_manifest(root_dir / manifest_file, root_dir=root_dir)
    config = load_config(root_dir / config_file)
    return modules, config


def _split_modules(value: str | None) -> set[str] | None:
    if value is None:
        return None
    return {m.strip() for m in value.split(",") if m.strip()}


def cmd_affected(args: argparse.Namespace) -> int:
    root_dir = _root_dir(args.root_dir)
    modules, config = _load(root_dir, args.manifest, args.config)

    changed = None
    if args.stdin:
        changed = [line.strip() for line in sys.stdin.read().splitlines() if line.strip()]

    context = configure(
        root_dir,
        modules,
        config,
        subset=_SUBSETS[args.subset],
        allow_list=_split_modules(args.modules),
        enabled=not args.disable,
        changed_files=changed,
    )
    report = context.get().report()

    if args.format == "json":
        payload = {
            "subset": args.subset,
            "affected_modules": [str(m) for m in report.affected_modules],
            "changed_modules": [str(m) for m in report.changed_modules],
            "dependent_modules": [str(m) for m in report.dependent_modules],
            "unknown_files": report.unknown_files,
            "changed_files": report.changed_files,
            "build_all": report.build_all,
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    elif args.format == "list":
        for m in report.affected_modules:
            print(m)
    else:
        print(
            render_impact_markdown(
                report,
                include_files=args.show_files,
                max_files=args.max_files,
            )
        )

    if args.fail_on_unknown and report.unknown_files:
        return 3
    return 0


def cmd_owner(args: argparse.Namespace) -> int:
    root_dir = _root_dir(args.root_dir)
    modules, _ = _load(root_dir, args.manifest, args.config)

    vcs_root = find_vcs_root(root_dir)
    graph = ModuleGraph.build(modules, root_dir=root_dir, vcs_root=vcs_root)
    path = normalize_repo_path(args.path, repo_root=vcs_root)
    owner = graph.find_owning_module(path)

    if args.format == "json":
        print(json.dumps({"path": path, "module": str(owner) if owner else None, "version": __version__}, indent=2))
    else:
        print(f"{path}: {owner if owner else '(no module)'}")
    return 0


def cmd_dependents(args: argparse.Namespace) -> int:
    root_dir = _root_dir(args.root_dir)
    modules, _ = _load(root_dir, args.manifest, args.config)

    target = ModulePath(args.module)
    if target not in {m.path for m in modules}:
        raise UsageError(f"unknown module: {args.module}")

    tracker = DependencyTracker.build(modules)
    dependents = sorted(tracker.find_all_dependents(target))
    direct = tracker.dependents_of(target)

    if args.format == "json":
        payload = {
            "module": args.module,
            "dependents": [str(m) for m in dependents],
            "direct": sorted(str(m) for m in direct),
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    else:
        if not dependents:
            print(f"{target}: no dependents")
        for m in dependents:
            print(f"{m}{'' if m in direct else '  (transitive)'}")
    return 0


def cmd_lint(args: argparse.Namespace) -> int:
    root_dir = _root_dir(args.root_dir)
    modules, _ = _load(root_dir, args.manifest, args.config)

    res = lint_manifest(modules, root_dir=root_dir, strict=False)

    if args.format == "json":
        payload = {
            "issues": [
                {
                    "severity": i.severity,
                    "code": i.code,
                    "message": i.message,
                    "module": i.module,
                    "hint": i.hint,
                }
                for i in res.issues
            ],
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    else:
        print(render_lint_markdown(res, title="Lint"))

    if res.has_errors:
        return 2
    if args.strict and res.has_warnings:
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="affected-modules",
        description="Find the modules of a multi-module project affected by a git diff",
    )
    p.add_argument("--manifest", default="modules.yaml", help="Module manifest (relative to the root dir)")
    p.add_argument("--config", default="affected-modules.yaml", help="Detector configuration (relative to the root dir)")
    p.add_argument("--root-dir", default=None, help="Project root directory (default: current directory)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    p.add_argument("--log-file", default=None, help="Append the decision log to this file")
    p.add_argument("--version", action="version", version=f"affectedmodules {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("affected", aliases=["impacted"], help="List modules affected by the current changes")
    a.add_argument("--subset", choices=sorted(_SUBSETS), default="all", help="Which affected modules to report")
    a.add_argument("--modules", default=None, help="Comma separated allow-list of module paths")
    a.add_argument("--stdin", action="store_true", help="Read changed files (one per line) from stdin instead of git")
    a.add_argument("--format", choices=["text", "json", "list"], default="text")
    a.add_argument("--show-files", action="store_true", help="List changed files in text output")
    a.add_argument("--max-files", type=int, default=50, help="Max files to show in text output")
    a.add_argument("--fail-on-unknown", action="store_true", help="Exit 3 if a changed file is outside every module")
    a.add_argument("--disable", action="store_true", help="Skip detection and treat every module as affected")
    a.set_defaults(func=cmd_affected)

    o = sub.add_parser("owner", aliases=["who-owns"], help="Find the module owning a path")
    o.add_argument("path", help="Path to a file (relative to the repository root, or absolute)")
    o.add_argument("--format", choices=["text", "json"], default="text")
    o.set_defaults(func=cmd_owner)

    d = sub.add_parser("dependents", help="List every module depending on a module")
    d.add_argument("module", help="Module path, e.g. :core")
    d.add_argument("--format", choices=["text", "json"], default="text")
    d.set_defaults(func=cmd_dependents)

    l = sub.add_parser("lint", help="Lint the module manifest")
    l.add_argument("--format", choices=["text", "json"], default="text")
    l.add_argument("--strict", action="store_true", help="Exit non-zero on warnings")
    l.set_defaults(func=cmd_lint)

    return p


def _log_file(args: argparse.Namespace) -> Path | None:
    if args.log_file:
        return Path(args.log_file)
    # Fall back to the configured log folder, if the config is readable.
    try:
        return load_config(_root_dir(args.root_dir) / args.config).log_file
    except (ConfigError, ParseError):
        return None


def main(argv: list[str] | None = None) -> None:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        if args.verbose and args.quiet:
            raise UsageError("--verbose and --quiet are mutually exclusive")
        setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=_log_file(args))
        rc = args.func(args)
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        rc = 2
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        rc = 2
    except ParseError as e:
        print(f"parse error: {e}", file=sys.stderr)
        rc = 2
    except GitError as e:
        print(f"git error: {e}", file=sys.stderr)
        rc = 2
    except KeyboardInterrupt:
        rc = 130

    raise SystemExit(rc)

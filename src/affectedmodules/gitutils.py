from __future__ import annotations

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import Iterable, Protocol

from .commit_range import CommitRange, PreviousCommit
from .errors import GitError
from .paths import normalize_line_endings, to_posix

logger = logging.getLogger(__name__)

# -M95 keeps large renames as a single entry instead of a delete + add pair.
CHANGED_FILES_CMD_PREFIX = "git --no-pager diff --name-only -M95"

DEFAULT_TIMEOUT_S = 300


class CommandRunner(Protocol):
    """Runs version control commands; the only way the core touches a process."""

    def execute(self, command: str) -> str:
        ...

    def execute_and_parse(self, command: str) -> list[str]:
        ...

    def execute_and_parse_first(self, command: str) -> str:
        ...


def parse_lines(output: str) -> list[str]:
    return [line for line in normalize_line_endings(output).split("\n") if line]


def first_token(command: str, lines: list[str]) -> str:
    tokens = lines[0].split() if lines else []
    if not tokens:
        raise GitError(f"No value from command: {command}")
    return tokens[0]


class SubprocessCommandRunner:
    """CommandRunner backed by `subprocess.run` in a fixed working directory."""

    def __init__(self, working_dir: Path, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.working_dir = Path(working_dir)
        self.timeout_s = timeout_s

    def execute(self, command: str) -> str:
        args = shlex.split(command)
        logger.debug("running command %s in %s", command, self.working_dir)
        try:
            cp = subprocess.run(
                args,
                cwd=str(self.working_dir),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_s,
                check=True,
            )
        except FileNotFoundError as e:
            raise GitError(f"{args[0]} not found on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise GitError(f"{command} timed out after {self.timeout_s}s") from e
        except subprocess.CalledProcessError as e:
            msg = (e.stderr or "").strip() or (e.stdout or "").strip() or str(e)
            raise GitError(f"{command} failed: {msg}") from e

        if cp.stderr.strip():
            logger.warning("%s wrote to stderr: %s", command, cp.stderr.strip())
        logger.debug("response: %s", cp.stdout.strip())
        return cp.stdout

    def execute_and_parse(self, command: str) -> list[str]:
        return parse_lines(self.execute(command))

    def execute_and_parse_first(self, command: str) -> str:
        return first_token(command, self.execute_and_parse(command))


def find_vcs_root(start: Path, marker: str = ".git") -> Path:
    """Walk up from `start` to the directory holding `marker`; `start` if none."""
    start = Path(start)
    for candidate in (start, *start.parents):
        if (candidate / marker).exists():
            return candidate
    return start


class GitClient:
    """Lists files changed between two revisions of a git working tree."""

    def __init__(
        self,
        working_dir: Path,
        runner: CommandRunner | None = None,
        commit_range: CommitRange | None = None,
        ignored_files: Iterable[str] = (),
    ):
        self.working_dir = Path(working_dir)
        self._runner = runner
        self.commit_range = commit_range or PreviousCommit()
        self._ignored = [re.compile(p) for p in ignored_files]

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = SubprocessCommandRunner(self.get_root())
        return self._runner

    def get_root(self) -> Path:
        return find_vcs_root(self.working_dir)

    def changed_files_command(self, sha: str, top: str = "HEAD", include_uncommitted: bool = True) -> str:
        if include_uncommitted:
            return f"{CHANGED_FILES_CMD_PREFIX} {sha}"
        return f"{CHANGED_FILES_CMD_PREFIX} {top}..{sha}"

    def find_changed_files(self, top: str = "HEAD", include_uncommitted: bool = True) -> list[str]:
        sha = self.commit_range.get(self.runner)
        logger.info("comparing against %s (%s)", sha, self.commit_range.name)

        command = self.changed_files_command(sha, top=top, include_uncommitted=include_uncommitted)
        files = [to_posix(line.strip()) for line in self.runner.execute_and_parse(command)]
        return self.filter_ignored(files)

    def filter_ignored(self, files: Iterable[str]) -> list[str]:
        out: list[str] = []
        for f in files:
            if not f:
                continue
            if any(rx.fullmatch(f) for rx in self._ignored):
                logger.debug("ignoring %s", f)
                continue
            out.append(f)
        return out

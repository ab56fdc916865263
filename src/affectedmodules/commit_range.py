"""Strategies choosing the revision a change set is diffed against.

Every strategy is a small frozen record whose `get` asks a CommandRunner for
the revision. Selection by name happens once, in `commit_range_from`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from .errors import MissingParameterError, ParentBranchNotFoundError, UnsupportedPolicyError

if TYPE_CHECKING:
    from .gitutils import CommandRunner

CURRENT_BRANCH_CMD = "git rev-parse --abbrev-ref HEAD"
PREV_COMMIT_CMD = "git --no-pager rev-parse HEAD~1"
SHOW_ALL_BRANCHES_CMD = "git show-branch -a"


class CompareFrom(str, Enum):
    PREVIOUS_COMMIT = "PreviousCommit"
    FORK_COMMIT = "ForkCommit"
    SPECIFIED_BRANCH_COMMIT = "SpecifiedBranchCommit"
    SPECIFIED_BRANCH_COMMIT_MERGE_BASE = "SpecifiedBranchCommitMergeBase"
    SPECIFIED_RAW_COMMIT_SHA = "SpecifiedRawCommitSha"

    @classmethod
    def parse(cls, value: str | CompareFrom) -> CompareFrom:
        if isinstance(value, CompareFrom):
            return value
        for member in cls:
            if member.value == value:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise UnsupportedPolicyError(f"compare_from must be one of the following: {allowed} (got {value!r})")


@dataclass(frozen=True)
class PreviousCommit:
    name = CompareFrom.PREVIOUS_COMMIT

    def get(self, runner: CommandRunner) -> str:
        return runner.execute_and_parse_first(PREV_COMMIT_CMD)


def parse_parent_branch(show_branch_lines: list[str], current_branch: str) -> str | None:
    """Best-effort parent branch from `git show-branch -a` output.

    Picks the first line marked with '*' that does not mention the current
    branch and strips the '[name~N^M]' decoration. The output format depends on
    the git version; pass an explicit parent branch when this guesses wrong.
    """
    for line in show_branch_lines:
        if current_branch in line or "*" not in line:
            continue
        name = line.split("[", 1)[1] if "[" in line else line
        for stop in ("]", "~", "^"):
            name = name.split(stop, 1)[0]
        name = name.strip()
        if name:
            return name
    return None


@dataclass(frozen=True)
class ForkCommit:
    parent_branch: str | None = None

    name = CompareFrom.FORK_COMMIT

    def get(self, runner: CommandRunner) -> str:
        current = runner.execute_and_parse_first(CURRENT_BRANCH_CMD)
        parent = self.parent_branch
        if not parent:
            parent = parse_parent_branch(runner.execute_and_parse(SHOW_ALL_BRANCHES_CMD), current)
        if not parent:
            raise ParentBranchNotFoundError("Parent branch not found")
        return runner.execute_and_parse_first(f"git merge-base {current} {parent}")


@dataclass(frozen=True)
class SpecifiedBranchCommit:
    branch: str

    name = CompareFrom.SPECIFIED_BRANCH_COMMIT

    def get(self, runner: CommandRunner) -> str:
        return runner.execute_and_parse_first(f"git rev-parse {self.branch}")


@dataclass(frozen=True)
class SpecifiedBranchCommitMergeBase:
    branch: str

    name = CompareFrom.SPECIFIED_BRANCH_COMMIT_MERGE_BASE

    def get(self, runner: CommandRunner) -> str:
        current = runner.execute_and_parse_first(CURRENT_BRANCH_CMD)
        return runner.execute_and_parse_first(f"git merge-base {current} {self.branch}")


@dataclass(frozen=True)
class SpecifiedRawCommitSha:
    sha: str

    name = CompareFrom.SPECIFIED_RAW_COMMIT_SHA

    def get(self, runner: CommandRunner) -> str:
        return self.sha


CommitRange = Union[
    PreviousCommit,
    ForkCommit,
    SpecifiedBranchCommit,
    SpecifiedBranchCommitMergeBase,
    SpecifiedRawCommitSha,
]


def commit_range_from(
    compare_from: str | CompareFrom,
    specified_branch: str | None = None,
    specified_raw_commit_sha: str | None = None,
    parent_branch: str | None = None,
) -> CommitRange:
    kind = CompareFrom.parse(compare_from)

    if kind is CompareFrom.PREVIOUS_COMMIT:
        return PreviousCommit()
    if kind is CompareFrom.FORK_COMMIT:
        return ForkCommit(parent_branch=parent_branch or None)
    if kind in (CompareFrom.SPECIFIED_BRANCH_COMMIT, CompareFrom.SPECIFIED_BRANCH_COMMIT_MERGE_BASE):
        if not specified_branch:
            raise MissingParameterError("Specify a branch using the configuration specified_branch")
        if kind is CompareFrom.SPECIFIED_BRANCH_COMMIT:
            return SpecifiedBranchCommit(specified_branch)
        return SpecifiedBranchCommitMergeBase(specified_branch)
    if not specified_raw_commit_sha:
        raise MissingParameterError(
            "Provide a commit SHA for specified_raw_commit_sha when using the SpecifiedRawCommitSha strategy"
        )
    return SpecifiedRawCommitSha(specified_raw_commit_sha)

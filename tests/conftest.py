from __future__ import annotations

import pytest

from affectedmodules.gitutils import first_token, parse_lines


class ScriptedCommandRunner:
    """CommandRunner answering from a command -> output table."""

    def __init__(self, replies: dict[str, str] | None = None):
        self.replies = dict(replies or {})
        self.calls: list[str] = []

    def add_reply(self, command: str, output: str) -> None:
        self.replies[command] = output

    def execute(self, command: str) -> str:
        self.calls.append(command)
        return self.replies.get(command, "")

    def execute_and_parse(self, command: str) -> list[str]:
        return parse_lines(self.execute(command))

    def execute_and_parse_first(self, command: str) -> str:
        return first_token(command, self.execute_and_parse(command))


@pytest.fixture
def runner() -> ScriptedCommandRunner:
    return ScriptedCommandRunner()

from __future__ import annotations


class AffectedModulesError(Exception):
    """Base exception for affectedmodules."""


class ConfigError(AffectedModulesError):
    """Configuration is missing or invalid."""


class UnsupportedPolicyError(ConfigError):
    """Unknown commit range strategy name."""


class MissingParameterError(ConfigError):
    """A commit range strategy was selected without its required parameter."""


class ParseError(AffectedModulesError):
    """Failed to parse a manifest or config file."""


class GitError(AffectedModulesError):
    """Git invocation failed."""


class ParentBranchNotFoundError(GitError):
    """No parent branch could be derived from the branch listing."""


class UsageError(AffectedModulesError):
    """Invalid CLI usage (user error)."""


class DetectorNotReadyError(AffectedModulesError):
    """The detector was queried before it was configured."""

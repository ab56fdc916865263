"""Find the modules of a multi-module project affected by a set of changes."""

from .version import __version__

__all__ = ["__version__"]

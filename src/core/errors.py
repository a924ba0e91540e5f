"""Exception types raised by the autolink core.

Message processing never lets these escape; they are caught at the rewriter
and logged. Only validation-mode compilation surfaces ``CompileError`` to
the caller.
"""

from __future__ import annotations

from typing import Optional


class AutolinkError(Exception):
    """Base class for autolink errors."""


class CompileError(AutolinkError, ValueError):
    """A rule could not be turned into a matcher."""

    def __init__(self, message: str, rule_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.rule_name = rule_name

    def __str__(self) -> str:
        message = super().__str__()
        if self.rule_name:
            return f"{self.rule_name}: {message}"
        return message


class ResolutionError(AutolinkError, LookupError):
    """A channel, team or user lookup failed."""


class ConsistencyError(AutolinkError):
    """Parsed node text no longer matches the live message slice."""

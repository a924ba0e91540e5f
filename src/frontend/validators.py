"""Validation helpers for config editing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.compiler import DEFAULT_SUFFIX_CHARS, compile_rule
from core.errors import CompileError
from core.rules import Rule, scope_entry_error


@dataclass
class ScopeInfo:
    entries: list[str] = field(default_factory=list)
    error: str | None = None


def parse_scope_lines(raw_value: str) -> ScopeInfo:
    """One ``team`` or ``team/channel`` per line; blank lines are ignored."""

    entries = [line.strip() for line in raw_value.splitlines() if line.strip()]
    for entry in entries:
        error = scope_entry_error(entry)
        if error:
            return ScopeInfo(entries, error)
    return ScopeInfo(entries)


def check_rule(raw_rule: dict[str, Any], suffix_chars: str = DEFAULT_SUFFIX_CHARS) -> str | None:
    """Return a user-facing error for a rule that cannot be compiled."""

    rule = Rule.from_config(raw_rule)
    if not rule.pattern and not rule.template:
        return None
    try:
        compile_rule(rule, validate=True, suffix_chars=suffix_chars)
    except CompileError as exc:
        return exc.message
    return None


def parse_admin_ids(raw_value: str) -> list[str]:
    """Comma-separated ids, as stored in config.json."""

    return [item.strip() for item in raw_value.split(",") if item.strip()]

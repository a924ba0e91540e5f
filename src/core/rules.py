"""Autolink rule model (core domain).

A rule is a plain value: compiling it never mutates it, see
``core.compiler`` for the derived matcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

# Field names accepted by ``Rule.from_config`` and written by ``to_config``.
CONFIG_FIELDS = (
    "name",
    "disabled",
    "pattern",
    "template",
    "scope",
    "word_match",
    "disable_non_word_prefix",
    "disable_non_word_suffix",
    "process_bot_posts",
)


@dataclass(frozen=True)
class Rule:
    """A named pattern-to-template rewrite directive."""

    name: str = ""
    pattern: str = ""
    template: str = ""
    disabled: bool = False
    scope: Tuple[str, ...] = field(default_factory=tuple)
    word_match: bool = False
    disable_non_word_prefix: bool = False
    disable_non_word_suffix: bool = False
    process_bot_posts: bool = False

    @property
    def display_name(self) -> str:
        """Name if set, otherwise the raw pattern."""

        if self.name:
            return self.name
        return self.pattern

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> "Rule":
        """Build a rule from a JSON-compatible dict, ignoring unknown keys."""

        scope = raw.get("scope") or []
        if isinstance(scope, str):
            scope = [scope]
        return cls(
            name=str(raw.get("name", "") or ""),
            pattern=str(raw.get("pattern", "") or ""),
            template=str(raw.get("template", "") or ""),
            disabled=bool(raw.get("disabled", False)),
            scope=tuple(str(entry) for entry in scope),
            word_match=bool(raw.get("word_match", False)),
            disable_non_word_prefix=bool(raw.get("disable_non_word_prefix", False)),
            disable_non_word_suffix=bool(raw.get("disable_non_word_suffix", False)),
            process_bot_posts=bool(raw.get("process_bot_posts", False)),
        )

    def to_config(self) -> dict[str, Any]:
        """Return the JSON-compatible representation stored in config.json."""

        return {
            "name": self.name,
            "disabled": self.disabled,
            "pattern": self.pattern,
            "template": self.template,
            "scope": list(self.scope),
            "word_match": self.word_match,
            "disable_non_word_prefix": self.disable_non_word_prefix,
            "disable_non_word_suffix": self.disable_non_word_suffix,
            "process_bot_posts": self.process_bot_posts,
        }

    def to_markdown(self, index: int = 0) -> str:
        """Render the rule as a markdown list item.

        ``index`` is the 1-based position shown by ``/autolink list``; zero
        omits the number.
        """

        text = "- "
        if index > 0:
            text += f"{index}: "
        if self.name:
            text += f"~~{self.name}~~" if self.disabled else self.name
        if self.disabled:
            text += " **Disabled**"
        text += "\n"

        text += f"  - Pattern: `{self.pattern}`\n"
        text += f"  - Template: `{self.template}`\n"
        if self.disable_non_word_prefix:
            text += "  - DisableNonWordPrefix: `true`\n"
        if self.disable_non_word_suffix:
            text += "  - DisableNonWordSuffix: `true`\n"
        if self.scope:
            text += f"  - Scope: `{', '.join(self.scope)}`\n"
        if self.word_match:
            text += "  - WordMatch: `true`\n"
        if self.process_bot_posts:
            text += "  - ProcessBotPosts: `true`\n"
        return text


def rules_from_config(raw_rules: Iterable[dict[str, Any]]) -> List[Rule]:
    """Normalize raw rule dicts, keeping their order."""

    return [Rule.from_config(raw) for raw in raw_rules if isinstance(raw, dict)]


def split_scope_entry(entry: str) -> Optional[Tuple[str, ...]]:
    """Split ``team`` or ``team/channel`` into segments.

    Returns None for entries with more than two segments.
    """

    parts = tuple(entry.split("/"))
    if len(parts) > 2:
        return None
    return parts


def scope_entry_error(entry: str) -> Optional[str]:
    """Return why ``entry`` is not a usable scope, or None when it is."""

    parts = split_scope_entry(entry)
    if parts is None:
        return f"{entry!r} is not a valid scope, use team or team/channel"
    if not all(parts):
        return f"{entry!r} is not a valid scope, team and channel must not be empty"
    return None


def sorted_by_display_name(rules: Iterable[Rule]) -> List[Rule]:
    """Return a new list ordered alphabetically by display name."""

    return sorted(rules, key=lambda rule: rule.display_name)

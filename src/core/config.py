"""Core configuration and the published rule snapshot.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import threading
from typing import Any, FrozenSet, Iterable, Optional, Tuple

from core.compiler import DEFAULT_SUFFIX_CHARS, CompiledRule, compile_rules
from core.rules import Rule, rules_from_config

LOGGER = logging.getLogger(__name__)


def parse_admin_user_ids(raw: Any) -> FrozenSet[str]:
    """Accept a comma-separated string or a list of user ids."""

    if not raw:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(str(item).strip() for item in raw if str(item).strip())


@dataclass(frozen=True)
class AutolinkConfig:
    """Autolink settings plus the ordered rule list."""

    rules: Tuple[Rule, ...] = field(default_factory=tuple)
    enable_admin_command: bool = False
    enable_on_update: bool = False
    admin_user_ids: FrozenSet[str] = field(default_factory=frozenset)
    non_word_suffix_chars: str = DEFAULT_SUFFIX_CHARS

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AutolinkConfig":
        suffix_chars = raw.get("non_word_suffix_chars")
        if suffix_chars is None:
            suffix_chars = DEFAULT_SUFFIX_CHARS
        return cls(
            rules=tuple(rules_from_config(raw.get("rules", []) or [])),
            enable_admin_command=bool(raw.get("enable_admin_command", False)),
            enable_on_update=bool(raw.get("enable_on_update", False)),
            admin_user_ids=parse_admin_user_ids(raw.get("admin_user_ids")),
            non_word_suffix_chars=str(suffix_chars),
        )


@dataclass(frozen=True)
class RuleSnapshot:
    """One consistent view of the config and its compiled rules."""

    config: AutolinkConfig
    compiled: Tuple[CompiledRule, ...]


class RuleRegistry:
    """Single-writer holder of the current rule snapshot.

    Writers build a complete new snapshot and swap the reference under a
    lock; readers take ``snapshot()`` once per message and never see a
    partially updated list.
    """

    def __init__(self, config: Optional[AutolinkConfig] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = self._build(config or AutolinkConfig())

    @staticmethod
    def _build(config: AutolinkConfig) -> RuleSnapshot:
        compiled = compile_rules(config.rules, suffix_chars=config.non_word_suffix_chars)
        active = sum(1 for item in compiled if item.active)
        LOGGER.info("%s rules are loaded (%s active)", len(compiled), active)
        return RuleSnapshot(config=config, compiled=compiled)

    def snapshot(self) -> RuleSnapshot:
        return self._snapshot

    def publish(self, config: AutolinkConfig) -> RuleSnapshot:
        """Compile and publish a whole new config."""

        with self._lock:
            self._snapshot = self._build(config)
            return self._snapshot

    def update_rules(self, rules: Iterable[Rule]) -> RuleSnapshot:
        """Replace only the rule list, keeping the other settings."""

        with self._lock:
            config = replace(self._snapshot.config, rules=tuple(rules))
            self._snapshot = self._build(config)
            return self._snapshot

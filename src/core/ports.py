"""Ports (interfaces) used by the core.

Ports define the minimal contracts for lookups and rule storage so that the
core can be reused with different hosts and backends.
"""

from __future__ import annotations

from typing import List, Protocol

from core.models import ChannelInfo, UserInfo
from core.rules import Rule


class ChannelResolver(Protocol):
    """Channel and team name lookup, used for scope matching."""

    def resolve(self, channel_id: str) -> ChannelInfo:
        """Raise ``ResolutionError`` when the channel cannot be resolved."""
        ...


class UserResolver(Protocol):
    """Author lookup, used for bot suppression and admin checks."""

    def get_user(self, user_id: str) -> UserInfo:
        """Raise ``ResolutionError`` when the user cannot be resolved."""
        ...


class RuleStore(Protocol):
    """Persistence of the ordered rule list."""

    def get_rules(self) -> List[Rule]:
        ...

    def save_rules(self, rules: List[Rule]) -> None:
        ...

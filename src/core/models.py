"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True)
class Post:
    """Minimal message shape the rewriter reads and returns."""

    message: str
    channel_id: str = ""
    user_id: str = ""
    hashtags: str = ""


@dataclass(frozen=True)
class ChannelInfo:
    """Resolved names used for scope matching."""

    channel_name: str
    team_name: str


@dataclass(frozen=True)
class UserInfo:
    """Author details needed for bot suppression and admin checks."""

    user_id: str
    is_bot: bool = False
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_system_admin(self) -> bool:
        return "system_admin" in self.roles

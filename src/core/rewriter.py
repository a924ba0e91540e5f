"""Markdown-aware message rewriting (core domain).

The rewriter walks a message with ``core.markdown_inspect``, applies the
compiled rules to every plain-text run and bare autolink, and splices the
results back into the message. Existing links and images are never entered,
and lookups against the host happen only when a rule actually needs them.
"""

from __future__ import annotations

from dataclasses import replace as replace_fields
import logging
from typing import Optional, Sequence, Tuple

from core.compiler import CompiledRule
from core.errors import ConsistencyError, ResolutionError
from core.hashtags import parse_hashtags
from core.markdown_inspect import LINK_NODES, Autolink, Node, Text, walk
from core.models import ChannelInfo, Post
from core.ports import ChannelResolver, UserResolver
from core.rules import split_scope_entry
from core.substitution import replace

LOGGER = logging.getLogger(__name__)


def in_scope(team: str, channel: str, scope: Sequence[str]) -> bool:
    """Return True when a rule with ``scope`` applies to team/channel."""

    if not scope:
        return True
    if not team:
        return False

    team = team.lower()
    channel = (channel or "").lower()
    for entry in scope:
        parts = split_scope_entry(entry)
        if parts is None:
            LOGGER.warning("Ignoring malformed scope entry %r", entry)
            continue
        if len(parts) == 1:
            if parts[0] and parts[0].lower() == team:
                return True
        elif parts[0].lower() == team and parts[1].lower() == channel:
            return True
    return False


def _rewritable_text(node: Node) -> Optional[str]:
    if isinstance(node, Text):
        return node.text
    if isinstance(node, Autolink) and not node.bracketed:
        return node.text
    return None


def _live_slice(message: str, node: Node, expected: str, offset: int) -> Tuple[int, int]:
    start = node.range.start + offset
    end = node.range.end + offset
    actual = message[start:end]
    if actual != expected:
        raise ConsistencyError(f"Markdown text did not match range text, {expected!r} != {actual!r}")
    return start, end


class _MessageContext:
    """Per-message lookups, each performed at most once."""

    def __init__(self, post: Post, channels: Optional[ChannelResolver], users: Optional[UserResolver]) -> None:
        self.post = post
        self._channels = channels
        self._users = users
        self._channel: Optional[ChannelInfo] = None
        self._channel_resolved = False
        self._is_bot: Optional[bool] = None

    def channel(self) -> Optional[ChannelInfo]:
        if not self._channel_resolved:
            self._channel_resolved = True
            if self._channels is None:
                LOGGER.warning("No channel resolver configured; scoped rules are skipped")
            else:
                try:
                    self._channel = self._channels.resolve(self.post.channel_id)
                except ResolutionError as exc:
                    LOGGER.error("Failed to resolve channel %s: %s", self.post.channel_id, exc)
        return self._channel

    def author_is_bot(self) -> bool:
        if self._is_bot is None:
            self._is_bot = False
            if self._users is not None:
                try:
                    self._is_bot = self._users.get_user(self.post.user_id).is_bot
                except ResolutionError as exc:
                    LOGGER.error("Failed to check if message author %s is a bot: %s", self.post.user_id, exc)
        return self._is_bot

    def applies(self, compiled: CompiledRule) -> bool:
        scope = compiled.rule.scope
        if not scope:
            return True
        channel = self.channel()
        if channel is None:
            return False
        return in_scope(channel.team_name, channel.channel_name, scope)


class MessageRewriter:
    """Applies a compiled rule snapshot to posts."""

    def __init__(self, channels: Optional[ChannelResolver] = None, users: Optional[UserResolver] = None) -> None:
        self.channels = channels
        self.users = users

    def process(self, post: Post, rules: Sequence[CompiledRule]) -> Tuple[Post, bool]:
        """Return ``(post, changed)``; the input post is never mutated."""

        active = [compiled for compiled in rules if compiled.active]
        if not active or not post.message:
            return post, False

        context = _MessageContext(post, self.channels, self.users)
        applicable = [compiled for compiled in active if context.applies(compiled)]
        if not applicable:
            return post, False

        message = post.message
        offset = 0
        for node in walk(post.message, descend=lambda item: not isinstance(item, LINK_NODES)):
            original = _rewritable_text(node)
            if not original:
                continue
            try:
                start, end = _live_slice(message, node, original, offset)
            except ConsistencyError as exc:
                LOGGER.error("%s", exc)
                continue

            text = self._apply(applicable, original, context)
            if text == original:
                continue
            message = message[:start] + text + message[end:]
            offset += len(text) - len(original)

        if message == post.message:
            return post, False

        hashtags, _ = parse_hashtags(message)
        LOGGER.debug("Rewrote message in channel %s", post.channel_id)
        return replace_fields(post, message=message, hashtags=hashtags), True

    @staticmethod
    def _apply(rules: Sequence[CompiledRule], text: str, context: _MessageContext) -> str:
        for compiled in rules:
            candidate = replace(compiled, text)
            if candidate == text:
                continue
            if not compiled.rule.process_bot_posts and context.author_is_bot():
                LOGGER.debug("Skipping rule %s for bot author %s", compiled.rule.display_name, context.post.user_id)
                continue
            text = candidate
        return text


def process_message(
    post: Post,
    rules: Sequence[CompiledRule],
    channels: Optional[ChannelResolver] = None,
    users: Optional[UserResolver] = None,
) -> Tuple[Post, bool]:
    """Rewrite ``post`` with ``rules``; see ``MessageRewriter.process``."""

    return MessageRewriter(channels, users).process(post, rules)

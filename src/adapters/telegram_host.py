"""Telegram host adapter.

Rewrites the logged-in account's own outgoing messages in place. Telethon
lookups are async while the core rewriter is synchronous, so the resolvers
here are primed before each message and then answer from their caches.

Mapping onto the core vocabulary:
- team: the chat's public username, or its title when it has none
- channel: the forum topic title, empty outside forum topics
- channel id: ``"<chat_id>"`` or ``"<chat_id>#topic:<topic_id>"``
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telethon import events
from telethon.tl.custom import Message

from core.commands import COMMAND, AutolinkCommands
from core.config import RuleRegistry
from core.errors import ResolutionError
from core.models import ChannelInfo, Post, UserInfo
from core.rewriter import process_message

LOGGER = logging.getLogger(__name__)

SYSTEM_ADMIN_ROLE = "system_admin"

# Recent edits remembered to recognise our own MessageEdited events.
WRITTEN_LIMIT = 1000


def topic_id_from_message(message: Message) -> Optional[int]:
    reply_to = getattr(message, "reply_to", None)
    if not reply_to or not getattr(reply_to, "forum_topic", False):
        return None
    top_id = getattr(reply_to, "reply_to_top_id", None)
    if top_id:
        return top_id
    return getattr(reply_to, "reply_to_msg_id", None)


def channel_key(chat_id: int, topic_id: Optional[int] = None) -> str:
    if topic_id is None:
        return str(chat_id)
    return f"{chat_id}#topic:{topic_id}"


def team_name_from_chat(chat: Any) -> str:
    """Public username when present, otherwise the chat title or user name."""

    username = getattr(chat, "username", None)
    if isinstance(username, str) and username:
        return username
    title = getattr(chat, "title", None)
    if title:
        return str(title)
    first = getattr(chat, "first_name", None)
    last = getattr(chat, "last_name", None)
    return " ".join(part for part in [first, last] if part)


class TelegramChannelResolver:
    """ChannelResolver backed by Telethon entities, with a channel-key cache."""

    def __init__(self, client) -> None:
        self._client = client
        self._cache: dict[str, ChannelInfo] = {}

    async def _topic_title(self, chat: Any, topic_id: int) -> str:
        # The first message of a topic is the service message that created it.
        created = await self._client.get_messages(chat, ids=topic_id)
        action = getattr(created, "action", None)
        return str(getattr(action, "title", "") or "")

    async def prime(self, message: Message) -> str:
        """Resolve the message's chat and topic; return its channel key."""

        topic_id = topic_id_from_message(message)
        key = channel_key(message.chat_id, topic_id)
        if key in self._cache:
            return key
        try:
            chat = await message.get_chat()
            channel_name = ""
            if topic_id is not None:
                channel_name = await self._topic_title(chat, topic_id)
        except Exception:
            LOGGER.exception("Failed to resolve chat %s", key)
            return key
        self._cache[key] = ChannelInfo(channel_name=channel_name, team_name=team_name_from_chat(chat))
        return key

    def resolve(self, channel_id: str) -> ChannelInfo:
        try:
            return self._cache[channel_id]
        except KeyError:
            raise ResolutionError(f"channel {channel_id} is not resolved") from None


class TelegramUserResolver:
    """UserResolver backed by Telethon entities.

    The logged-in account is the only system admin.
    """

    def __init__(self, client, owner_id: Optional[int] = None) -> None:
        self._client = client
        self.owner_id = owner_id
        self._cache: dict[str, UserInfo] = {}

    async def prime(self, user_id: Optional[int]) -> None:
        key = str(user_id)
        if user_id is None or key in self._cache:
            return
        try:
            entity = await self._client.get_entity(user_id)
        except Exception:
            LOGGER.exception("Failed to resolve user %s", key)
            return
        roles = frozenset({SYSTEM_ADMIN_ROLE}) if user_id == self.owner_id else frozenset()
        self._cache[key] = UserInfo(user_id=key, is_bot=bool(getattr(entity, "bot", False)), roles=roles)

    def get_user(self, user_id: str) -> UserInfo:
        try:
            return self._cache[user_id]
        except KeyError:
            raise ResolutionError(f"user {user_id} is not resolved") from None


class TelegramAutolinker:
    """Applies the published rules to outgoing messages and edits them."""

    def __init__(
        self,
        client,
        registry: RuleRegistry,
        commands: AutolinkCommands,
        channels: TelegramChannelResolver,
        users: TelegramUserResolver,
    ) -> None:
        self._client = client
        self._registry = registry
        self._commands = commands
        self._channels = channels
        self._users = users
        # Text we wrote per message, so our own edit events are ignored.
        self._written: dict[tuple[int, int], str] = {}

    def register(self) -> None:
        self._client.add_event_handler(self._on_new_message, events.NewMessage(outgoing=True))
        self._client.add_event_handler(self._on_edited_message, events.MessageEdited(outgoing=True))

    async def _on_new_message(self, event) -> None:
        try:
            await self.handle(event.message)
        except Exception:
            LOGGER.exception("Error while processing message")

    async def _on_edited_message(self, event) -> None:
        try:
            await self.handle(event.message, edited=True)
        except Exception:
            LOGGER.exception("Error while processing edited message")

    async def build_post(self, message: Message, need_channel: bool) -> Post:
        if need_channel:
            key = await self._channels.prime(message)
        else:
            key = channel_key(message.chat_id, topic_id_from_message(message))
        await self._users.prime(message.sender_id)
        return Post(message=message.text or "", channel_id=key, user_id=str(message.sender_id))

    async def handle(self, message: Message, edited: bool = False) -> bool:
        """Rewrite one message; return True when it was edited."""

        snapshot = self._registry.snapshot()
        text = message.text or ""
        if not text.strip():
            return False

        if text.split(maxsplit=1)[0] == COMMAND:
            if edited or not snapshot.config.enable_admin_command:
                return False
            await self._users.prime(message.sender_id)
            reply = self._commands.execute(text, str(message.sender_id))
            await self._client.send_message("me", reply, parse_mode="md")
            return False

        if edited:
            if not snapshot.config.enable_on_update:
                return False
            if self._written.get((message.chat_id, message.id)) == text:
                return False

        need_channel = any(compiled.active and compiled.rule.scope for compiled in snapshot.compiled)
        post = await self.build_post(message, need_channel)
        new_post, changed = process_message(post, snapshot.compiled, self._channels, self._users)
        if not changed:
            return False

        edited_message = await message.edit(new_post.message, parse_mode="md")
        written = getattr(edited_message, "text", None) or new_post.message
        self._written[(message.chat_id, message.id)] = written
        if len(self._written) > WRITTEN_LIMIT:
            self._written.pop(next(iter(self._written)))
        LOGGER.info("Rewrote message %s in chat %s", message.id, message.chat_id)
        return True

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from adapters.telegram_host import (
    TelegramAutolinker,
    TelegramChannelResolver,
    TelegramUserResolver,
    channel_key,
    team_name_from_chat,
    topic_id_from_message,
)
from core.commands import AutolinkCommands
from core.config import AutolinkConfig, RuleRegistry
from core.errors import ResolutionError
from core.rules import Rule

OWNER_ID = 42
MATTERMOST = Rule(pattern="(Mattermost)", template="[Mattermost](https://mattermost.com)")


class DummyChat:
    def __init__(self, username: "str | None" = None, title: "str | None" = None) -> None:
        self.username = username
        self.title = title


class DummyUser:
    def __init__(self, first_name: str, last_name: "str | None" = None, bot: bool = False) -> None:
        self.first_name = first_name
        self.last_name = last_name
        self.bot = bot


class DummyReply:
    def __init__(self, forum_topic: bool, reply_to_top_id: "int | None", reply_to_msg_id: "int | None") -> None:
        self.forum_topic = forum_topic
        self.reply_to_top_id = reply_to_top_id
        self.reply_to_msg_id = reply_to_msg_id


class DummyAction:
    def __init__(self, title: str) -> None:
        self.title = title


class DummyServiceMessage:
    def __init__(self, title: str) -> None:
        self.action = DummyAction(title)


class DummyMessage:
    def __init__(
        self,
        *,
        text: str,
        chat_id: int = -1001,
        message_id: int = 1,
        sender_id: int = OWNER_ID,
        chat: Optional[DummyChat] = None,
        reply_to=None,
    ) -> None:
        self.text = text
        self.chat_id = chat_id
        self.id = message_id
        self.sender_id = sender_id
        self.reply_to = reply_to
        self._chat = chat or DummyChat(username="team")
        self.edits: list[tuple[str, str]] = []

    async def get_chat(self) -> DummyChat:
        return self._chat

    async def edit(self, text: str, parse_mode: str = "") -> "DummyMessage":
        self.edits.append((text, parse_mode))
        self.text = text
        return self


class DummyClient:
    def __init__(self, topics: Optional[dict[int, str]] = None, bots: frozenset = frozenset()) -> None:
        self.topics = topics or {}
        self.bots = bots
        self.sent: list[tuple[object, str, str]] = []
        self.handlers: list[tuple[object, object]] = []
        self.entity_calls = 0

    async def get_messages(self, chat, ids: int) -> DummyServiceMessage:
        return DummyServiceMessage(self.topics[ids])

    async def get_entity(self, user_id: int) -> DummyUser:
        self.entity_calls += 1
        return DummyUser("user", bot=user_id in self.bots)

    async def send_message(self, entity, message: str, parse_mode: str = "") -> None:
        self.sent.append((entity, message, parse_mode))

    def add_event_handler(self, callback, event) -> None:
        self.handlers.append((callback, event))


class MemoryStore:
    def __init__(self) -> None:
        self.saved: list[Rule] = []

    def get_rules(self) -> list[Rule]:
        return list(self.saved)

    def save_rules(self, rules: list[Rule]) -> None:
        self.saved = list(rules)


def _autolinker(client: DummyClient, config: AutolinkConfig) -> TelegramAutolinker:
    registry = RuleRegistry(config)
    users = TelegramUserResolver(client, owner_id=OWNER_ID)
    commands = AutolinkCommands(registry, MemoryStore(), users)
    return TelegramAutolinker(client, registry, commands, TelegramChannelResolver(client), users)


def test_topic_id_and_channel_key() -> None:
    topic = DummyMessage(text="x", reply_to=DummyReply(True, 555, 600))
    fallback = DummyMessage(text="x", reply_to=DummyReply(True, None, 777))
    plain_reply = DummyMessage(text="x", reply_to=DummyReply(False, 555, 600))

    assert topic_id_from_message(topic) == 555
    assert topic_id_from_message(fallback) == 777
    assert topic_id_from_message(plain_reply) is None
    assert channel_key(-1001, None) == "-1001"
    assert channel_key(-1001, 555) == "-1001#topic:555"


def test_team_name_from_chat() -> None:
    assert team_name_from_chat(DummyChat(username="team", title="Team Chat")) == "team"
    assert team_name_from_chat(DummyChat(title="Team Chat")) == "Team Chat"
    assert team_name_from_chat(DummyUser("Ada", "Lovelace")) == "Ada Lovelace"


def test_outgoing_message_is_rewritten() -> None:
    client = DummyClient()
    autolinker = _autolinker(client, AutolinkConfig(rules=(MATTERMOST,)))
    message = DummyMessage(text="Welcome to Mattermost!")

    changed = asyncio.run(autolinker.handle(message))

    assert changed
    assert message.edits == [("Welcome to [Mattermost](https://mattermost.com)!", "md")]


def test_unchanged_message_is_not_edited() -> None:
    autolinker = _autolinker(DummyClient(), AutolinkConfig(rules=(MATTERMOST,)))
    message = DummyMessage(text="Welcome to FooBarism!")

    assert not asyncio.run(autolinker.handle(message))
    assert message.edits == []


def test_bot_sender_is_skipped() -> None:
    client = DummyClient(bots=frozenset({7}))
    autolinker = _autolinker(client, AutolinkConfig(rules=(MATTERMOST,)))
    message = DummyMessage(text="Welcome to Mattermost!", sender_id=7)

    assert not asyncio.run(autolinker.handle(message))


def test_edits_follow_enable_on_update() -> None:
    message = DummyMessage(text="Mattermost rocks")

    disabled = _autolinker(DummyClient(), AutolinkConfig(rules=(MATTERMOST,)))
    assert not asyncio.run(disabled.handle(message, edited=True))

    enabled = _autolinker(DummyClient(), AutolinkConfig(rules=(MATTERMOST,), enable_on_update=True))
    assert asyncio.run(enabled.handle(message, edited=True))
    # The edit event caused by our own rewrite is ignored.
    assert not asyncio.run(enabled.handle(message, edited=True))
    assert len(message.edits) == 1


def test_scoped_rule_uses_topic_title() -> None:
    client = DummyClient(topics={10: "off-topic"})
    rule = Rule(pattern="(example)", template="test", scope=("team/off-topic",))
    autolinker = _autolinker(client, AutolinkConfig(rules=(rule,)))
    in_topic = DummyMessage(text="an example", reply_to=DummyReply(True, 10, 11))
    outside = DummyMessage(text="an example", message_id=2)

    assert asyncio.run(autolinker.handle(in_topic))
    assert in_topic.edits[0][0] == "an test"
    assert not asyncio.run(autolinker.handle(outside))


def test_channel_resolver_requires_priming() -> None:
    resolver = TelegramChannelResolver(DummyClient())

    with pytest.raises(ResolutionError):
        resolver.resolve("-1001")

    key = asyncio.run(resolver.prime(DummyMessage(text="x", chat=DummyChat(title="Group"))))
    assert resolver.resolve(key).team_name == "Group"
    assert resolver.resolve(key).channel_name == ""


def test_user_resolver_caches_and_marks_owner() -> None:
    client = DummyClient()
    resolver = TelegramUserResolver(client, owner_id=OWNER_ID)

    asyncio.run(resolver.prime(OWNER_ID))
    asyncio.run(resolver.prime(OWNER_ID))
    asyncio.run(resolver.prime(5))

    assert client.entity_calls == 2
    assert resolver.get_user(str(OWNER_ID)).is_system_admin
    assert not resolver.get_user("5").is_system_admin


def test_admin_command_replies_to_saved_messages() -> None:
    client = DummyClient()
    autolinker = _autolinker(client, AutolinkConfig(enable_admin_command=True))
    message = DummyMessage(text="/autolink add Jira")

    assert not asyncio.run(autolinker.handle(message))
    assert client.sent[0][0] == "me"
    assert client.sent[0][1].startswith("- 1: Jira\n")
    assert client.sent[0][2] == "md"
    assert message.edits == []


def test_admin_command_is_ignored_when_disabled() -> None:
    client = DummyClient()
    autolinker = _autolinker(client, AutolinkConfig())

    asyncio.run(autolinker.handle(DummyMessage(text="/autolink list")))

    assert client.sent == []


def test_register_adds_handlers() -> None:
    client = DummyClient()
    _autolinker(client, AutolinkConfig()).register()

    assert len(client.handlers) == 2

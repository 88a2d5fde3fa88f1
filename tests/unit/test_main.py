"""
Unit tests for the ``vectorbot`` CLI entry point.

Tests:
- Command replies and the messages they ignore
- Reply routing back to the originating conversation
- Argument defaults and YAML loading
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from fixtures.bot import ALICE_PUBKEY, BOT_PUBKEY, make_event
from vectorbot.__main__ import DEFAULT_CONFIG, _load_yaml_dict, command_reply, parse_args, respond
from vectorbot.models.constants import MessageOrigin
from vectorbot.models.message import BotMessage, MessageTags


def _message(
    content: str,
    *,
    sender: str = ALICE_PUBKEY,
    group_id: str | None = None,
    directed: bool = True,
    display_name: str | None = None,
) -> BotMessage:
    is_group = group_id is not None
    tags = MessageTags(
        pubkey=sender,
        conversation_id=group_id or sender,
        origin=MessageOrigin.GROUP if is_group else MessageOrigin.DM,
        kind=9 if is_group else 14,
        raw_event=make_event(9 if is_group else 1059, content),
        group_id=group_id,
        is_group=is_group,
        directed_to_bot=directed,
        display_name=display_name,
    )
    return BotMessage(
        sender=sender, tags=tags, content=content, self_authored=sender == BOT_PUBKEY
    )


class TestCommandReply:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("!ping", "pong"),
            ("  !PING  ", "pong"),
            ("!echo hello world", "hello world"),
            ("!echo", None),
            ("hello", None),
            ("!unknown", None),
        ],
    )
    def test_direct_commands(self, content: str, expected: str | None) -> None:
        assert command_reply(_message(content)) == expected

    def test_hello_uses_display_name(self) -> None:
        assert command_reply(_message("!hello", display_name="Alice")) == "Hello, Alice!"

    def test_hello_falls_back_to_pubkey_prefix(self) -> None:
        assert command_reply(_message("!hello")) == f"Hello, {ALICE_PUBKEY[:8]}!"

    def test_self_authored_ignored(self) -> None:
        assert command_reply(_message("!ping", sender=BOT_PUBKEY)) is None

    def test_undirected_group_message_ignored(self) -> None:
        assert command_reply(_message("!ping", group_id="g1", directed=False)) is None

    def test_directed_group_message_answered(self) -> None:
        assert command_reply(_message("!ping", group_id="g1")) == "pong"


class TestRespond:
    async def test_direct_reply(self) -> None:
        client = MagicMock(send_message=AsyncMock(), send_group_message=AsyncMock())

        await respond(client, _message("!ping"))

        client.send_message.assert_awaited_once_with(ALICE_PUBKEY, "pong")
        client.send_group_message.assert_not_awaited()

    async def test_group_reply(self) -> None:
        client = MagicMock(send_message=AsyncMock(), send_group_message=AsyncMock())

        await respond(client, _message("!ping", group_id="g1"))

        client.send_group_message.assert_awaited_once_with("g1", "pong")
        client.send_message.assert_not_awaited()

    async def test_no_reply(self) -> None:
        client = MagicMock(send_message=AsyncMock(), send_group_message=AsyncMock())

        await respond(client, _message("just chatting"))

        client.send_message.assert_not_awaited()


class TestArgs:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.argv", ["vectorbot"])
        args = parse_args()
        assert args.config == DEFAULT_CONFIG
        assert args.log_level == "INFO"

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "sys.argv", ["vectorbot", "--config", "bot.yaml", "--log-level", "DEBUG"]
        )
        args = parse_args()
        assert args.config == Path("bot.yaml")
        assert args.log_level == "DEBUG"


class TestLoadYamlDict:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml_dict(tmp_path / "absent.yaml") == {}

    def test_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bot.yaml"
        path.write_text("relays:\n  - wss://relay.example\n")
        assert _load_yaml_dict(path) == {"relays": ["wss://relay.example"]}

from __future__ import annotations

import pytest

from overlay_notifier.message_adapter import (
    ChatMessage,
    avatar_url,
    channel_context,
    compose_body,
    display_name,
    should_notify,
    to_request,
)
from overlay_notifier.preferences import Preferences

SELF_ID = "1"


def _guild_message(**overrides) -> ChatMessage:
    values = dict(
        author_id="2",
        author_name="bob",
        content="hello there",
        guild_id="9",
        guild_name="Guild",
        channel_name="general",
        member_nick="Bobby",
    )
    values.update(overrides)
    return ChatMessage(**values)


def test_from_mapping_reads_gateway_shapes():
    message = ChatMessage.from_mapping(
        {
            "author": {"id": "2", "username": "bob", "avatar": "abc"},
            "member": {"nick": "Bobby"},
            "content": "hi <@1>",
            "mentions": [{"id": "1"}],
            "attachments": [{}, {}],
        },
        channel={"type": 0, "guild_id": 9, "name": "general"},
        guild={"name": "Guild"},
    )
    assert message.author_id == "2"
    assert message.guild_id == "9"
    assert message.mention_ids == ("1",)
    assert message.attachment_count == 2
    assert message.is_guild_message and not message.is_dm


@pytest.mark.parametrize(
    "message, expected",
    [
        (ChatMessage(author_id=SELF_ID, channel_type=1), False),
        (ChatMessage(author_id="2", channel_type=1), True),
        (ChatMessage(author_id="2", channel_type=3), True),
        (_guild_message(), False),
        (_guild_message(content="ping <@1>"), True),
        (_guild_message(content="ping <@!1>"), True),
        (_guild_message(mention_ids=("1",)), True),
        (_guild_message(mention_everyone=True), True),
    ],
)
def test_should_notify_default_categories(message, expected):
    assert should_notify(message, SELF_ID, Preferences()) is expected


def test_guild_messages_notify_when_enabled():
    prefs = Preferences()
    prefs.notify_guild_messages = True
    assert should_notify(_guild_message(), SELF_ID, prefs) is True


def test_unknown_self_id_never_notifies():
    assert should_notify(ChatMessage(author_id="2", channel_type=1), "", Preferences()) is False


def test_display_name_prefers_guild_nick():
    assert display_name(_guild_message()) == "Bobby"
    assert display_name(ChatMessage(author_id="2", author_name="bob", member_nick="Bobby")) == "bob"
    assert display_name(ChatMessage(author_id="2")) == "Unknown"


def test_channel_context_labels():
    assert channel_context(ChatMessage(author_id="2", channel_type=1)) == "Direct Message"
    assert channel_context(ChatMessage(author_id="2", channel_type=3, channel_name="crew")) == "Group DM · #crew"
    assert channel_context(_guild_message()) == "Guild · #general"


def test_compose_body_prefixes_channel_context():
    prefs = Preferences()
    assert compose_body(_guild_message(content="**hi**"), prefs) == "Guild · #general — hi"
    prefs.include_channel_name = False
    assert compose_body(_guild_message(content="**hi**"), prefs) == "hi"


def test_compose_body_describes_contentless_messages():
    prefs = Preferences()
    prefs.include_channel_name = False
    assert compose_body(_guild_message(content="", attachment_count=2), prefs) == "[2 attachments]"
    assert compose_body(_guild_message(content="", sticker_names=("wave",)), prefs) == "[sticker] wave"
    assert compose_body(_guild_message(content="", embeds=({"title": "*News*"},)), prefs) == "[embed] News"


def test_avatar_url_variants():
    assert avatar_url(ChatMessage(author_id="7", author_avatar="abc")) == (
        "https://cdn.discordapp.com/avatars/7/abc.png?size=128"
    )
    assert avatar_url(ChatMessage(author_id="7", author_discriminator="0006")) == (
        "https://cdn.discordapp.com/embed/avatars/1.png"
    )
    assert avatar_url(ChatMessage(author_id="12")) == "https://cdn.discordapp.com/embed/avatars/2.png"
    assert avatar_url(ChatMessage(author_id="")) is None


def test_to_request_uses_preferences():
    prefs = Preferences()
    prefs.timeout_ms = 7000
    request = to_request(_guild_message(author_avatar="abc"), prefs)
    assert request.title == "Bobby"
    assert request.timeout_ms == 7000
    assert request.icon_url.endswith("/avatars/2/abc.png?size=128")

    prefs.avatar_icon = False
    assert to_request(_guild_message(), prefs).icon_url is None

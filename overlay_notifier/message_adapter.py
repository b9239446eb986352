"""Turn chat messages into notification requests.

The chat client's subscription plumbing lives elsewhere. This module only
decides whether a message deserves a toast and what the toast says.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .dispatch import NotificationRequest
from .preferences import Preferences
from .sanitizer import normalise_lines, sanitize

CHANNEL_DM = 1
CHANNEL_GROUP_DM = 3
AVATAR_CDN = "https://cdn.discordapp.com"
DEFAULT_SENDER_TITLE = "Discord"


def _ids(values: Any) -> tuple[str, ...]:
    result = []
    for value in values or ():
        if isinstance(value, Mapping):
            value = value.get("id")
        if value is not None:
            result.append(str(value))
    return tuple(result)


@dataclass(frozen=True)
class ChatMessage:
    author_id: str
    author_name: str = ""
    content: str = ""
    channel_type: int = 0
    channel_name: str = ""
    guild_id: Optional[str] = None
    guild_name: str = ""
    member_nick: str = ""
    author_avatar: Optional[str] = None
    author_discriminator: Optional[str] = None
    mention_everyone: bool = False
    mention_ids: tuple[str, ...] = ()
    sticker_names: tuple[str, ...] = ()
    embeds: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    attachment_count: int = 0

    @classmethod
    def from_mapping(
        cls,
        message: Mapping[str, Any],
        channel: Optional[Mapping[str, Any]] = None,
        guild: Optional[Mapping[str, Any]] = None,
    ) -> "ChatMessage":
        """Build from gateway-style message/channel/guild dicts."""
        author = message.get("author") or {}
        member = message.get("member") or {}
        channel = channel or {}
        guild = guild or {}
        stickers = tuple(
            str(item.get("name") or "").strip() for item in (message.get("sticker_items") or ()) if isinstance(item, Mapping)
        )
        embeds = tuple(item for item in (message.get("embeds") or ()) if isinstance(item, Mapping))
        guild_id = channel.get("guild_id")
        try:
            channel_type = int(channel.get("type") or 0)
        except (TypeError, ValueError):
            channel_type = 0
        return cls(
            author_id=str(author.get("id") or ""),
            author_name=str(author.get("username") or ""),
            content=str(message.get("content") or ""),
            channel_type=channel_type,
            channel_name=str(channel.get("name") or ""),
            guild_id=str(guild_id) if guild_id is not None else None,
            guild_name=str(guild.get("name") or ""),
            member_nick=str(member.get("nick") or ""),
            author_avatar=author.get("avatar") or None,
            author_discriminator=author.get("discriminator") or None,
            mention_everyone=bool(message.get("mention_everyone")),
            mention_ids=_ids(message.get("mentions")),
            sticker_names=stickers,
            embeds=embeds,
            attachment_count=len(message.get("attachments") or ()),
        )

    @property
    def is_dm(self) -> bool:
        return self.channel_type in (CHANNEL_DM, CHANNEL_GROUP_DM)

    @property
    def is_guild_message(self) -> bool:
        return self.guild_id is not None


def is_mention(message: ChatMessage, self_id: str) -> bool:
    if message.mention_everyone:
        return True
    if self_id and (f"<@{self_id}>" in message.content or f"<@!{self_id}>" in message.content):
        return True
    return bool(self_id) and self_id in message.mention_ids


def should_notify(message: ChatMessage, self_id: str, prefs: Preferences) -> bool:
    if not self_id or message.author_id == self_id:
        return False
    if message.is_dm and prefs.notify_dms:
        return True
    if prefs.notify_mentions and is_mention(message, self_id):
        return True
    return message.is_guild_message and prefs.notify_guild_messages


def display_name(message: ChatMessage) -> str:
    if message.is_guild_message and message.member_nick:
        return message.member_nick
    return message.author_name or "Unknown"


def channel_context(message: ChatMessage) -> str:
    if message.channel_type == CHANNEL_DM:
        return "Direct Message"
    if message.channel_type == CHANNEL_GROUP_DM:
        return f"Group DM · #{message.channel_name}" if message.channel_name else "Group DM"
    if message.is_guild_message:
        guild = message.guild_name or "Server"
        channel = f"#{message.channel_name}" if message.channel_name else "Channel"
        return f"{guild} · {channel}"
    return ""


def _fallback_content(message: ChatMessage) -> str:
    if message.sticker_names:
        return f"[sticker] {message.sticker_names[0]}".strip()
    if message.embeds:
        embed = message.embeds[0]
        summary = sanitize(str(embed.get("title") or embed.get("description") or ""))
        return f"[embed] {summary}".strip()
    if message.attachment_count:
        plural = "s" if message.attachment_count > 1 else ""
        return f"[{message.attachment_count} attachment{plural}]"
    return ""


def compose_body(message: ChatMessage, prefs: Preferences) -> str:
    content = sanitize(message.content) or _fallback_content(message)
    if prefs.include_channel_name:
        context = channel_context(message).strip()
        if context:
            content = f"{context} — {content.strip()}" if content else context
    return normalise_lines(content)


def avatar_url(message: ChatMessage) -> Optional[str]:
    if not message.author_id:
        return None
    if message.author_avatar:
        return f"{AVATAR_CDN}/avatars/{message.author_id}/{message.author_avatar}.png?size=128"
    discriminator = message.author_discriminator or ""
    if discriminator.isdigit():
        index = int(discriminator) % 5
    else:
        try:
            index = int(message.author_id) % 5
        except ValueError:
            index = 0
    return f"{AVATAR_CDN}/embed/avatars/{index}.png"


def to_request(message: ChatMessage, prefs: Preferences) -> NotificationRequest:
    return NotificationRequest(
        title=display_name(message) or DEFAULT_SENDER_TITLE,
        body=compose_body(message, prefs),
        timeout_ms=prefs.timeout_ms,
        icon_url=avatar_url(message) if prefs.avatar_icon else None,
    )

"""Normalization of discord.py messages into the relay's ChannelMessage shape."""

from __future__ import annotations

from typing import Any

import discord

from src.models import (
    DEFAULT_AVATAR_URL,
    ChannelMessage,
    EmbedField,
    MessageAttachment,
    MessageAuthor,
    MessageEmbed,
)


def _proxy_url(proxy: Any) -> str | None:
    # Embed.thumbnail / Embed.image are EmbedProxy objects; empty ones have no url.
    return getattr(proxy, "url", None) if proxy is not None else None


def to_embed(embed: discord.Embed) -> MessageEmbed:
    return MessageEmbed(
        title=embed.title,
        description=embed.description,
        fields=[EmbedField(name=f.name, value=f.value) for f in embed.fields],
        thumbnail=_proxy_url(embed.thumbnail),
        image=_proxy_url(embed.image),
    )


def to_channel_message(message: discord.Message) -> ChannelMessage:
    author = message.author
    avatar = getattr(author, "avatar", None)
    return ChannelMessage(
        id=str(message.id),
        content=message.content or "",
        author=MessageAuthor(
            username=author.name,
            avatar_url=avatar.url if avatar is not None else DEFAULT_AVATAR_URL,
        ),
        timestamp=message.created_at.isoformat(),
        embeds=[to_embed(e) for e in message.embeds],
        attachments=[
            MessageAttachment(
                url=a.url, filename=a.filename, content_type=a.content_type,
            )
            for a in message.attachments
        ],
    )

from __future__ import annotations

from typing import Iterable

import discord
import structlog
from discord.utils import escape_markdown

from .models import NewsItem

log = structlog.get_logger(__name__)

MAX_MESSAGE_LEN = 2000
MAX_HASHTAGS = 5


def format_hashtags(categories: Iterable[str]) -> str:
    tags = ["#" + c for c in categories if c]
    return " ".join(tags[:MAX_HASHTAGS])


def format_news_message(item: NewsItem) -> str:
    """Render a NewsItem as a Discord markdown message."""
    text = f"🔥 **{escape_markdown(item.title)}**\n\n"
    if item.description:
        text += f"{escape_markdown(item.description)}\n\n"
    text += f"🔗 <{item.link}>"

    hashtags = format_hashtags(item.categories)
    if hashtags:
        text += f"\n\n📌 {hashtags}"

    # Discord rejects messages above 2000 characters
    if len(text) > MAX_MESSAGE_LEN:
        text = text[: MAX_MESSAGE_LEN - 3] + "..."
    return text


class DiscordSink:
    """Sends news items to Discord channels by id."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def resolve(self, channel_id: int) -> discord.abc.Messageable:
        # Cache first; fetch_channel costs an API call
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        return channel  # type: ignore[return-value]

    async def deliver(self, item: NewsItem, recipient: int) -> None:
        channel = await self.resolve(recipient)
        await channel.send(format_news_message(item))
        log.debug("news_sent", recipient=recipient, link=item.link)

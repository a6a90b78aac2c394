import asyncio
import sys
from typing import Optional

import discord
import structlog

from rss_relay import ConfigError, FeedPoller, SubscriberStore
from rss_relay.config import Settings, load_settings, log_settings
from rss_relay.delivery import DiscordSink
from rss_relay.log import configure_logging

log = structlog.get_logger("discord_bot")

COMMAND_PREFIX = "!"

WELCOME_TEXT = (
    "Welcome to the CoinTelegraph News Bot! 🎉\n\n"
    "This channel will now receive the latest crypto news updates.\n"
    "Use !help to see available commands."
)
GOODBYE_TEXT = (
    "This channel has been unsubscribed from news updates.\n"
    "Use !start to subscribe again."
)
HELP_TEXT = (
    "Available commands:\n"
    "!start - Subscribe this channel to news updates\n"
    "!stop - Unsubscribe this channel from news updates\n"
    "!help - Show this help message"
)
UNKNOWN_TEXT = "Unknown command. Use !help to see available commands."

# How long close() waits for the poll loop to unwind
SHUTDOWN_GRACE = 3.0


def handle_command(content: str, channel_id: int, store: SubscriberStore) -> Optional[str]:
    """Apply a chat command and return the reply, or None if it is not a command."""
    if not content.startswith(COMMAND_PREFIX):
        return None
    parts = content[len(COMMAND_PREFIX):].split()
    command = parts[0].lower() if parts else ""

    if command == "start":
        store.add(channel_id)
        return WELCOME_TEXT
    if command == "stop":
        store.remove(channel_id)
        return GOODBYE_TEXT
    if command == "help":
        return HELP_TEXT
    return UNKNOWN_TEXT


class NewsBot(discord.Client):
    """Discord client that owns the feed poller as a background task."""

    def __init__(self, settings: Settings, store: SubscriberStore) -> None:
        intents = discord.Intents.default()
        intents.message_content = True  # needed to read !commands
        super().__init__(intents=intents)
        self.settings = settings
        self.store = store
        self.poller: Optional[FeedPoller] = None
        self._stop = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None

    async def setup_hook(self) -> None:
        self.poller = FeedPoller(
            self.settings.feed_url,
            DiscordSink(self),
            self.store,
            interval=self.settings.update_interval,
            fetch_timeout=self.settings.fetch_timeout,
            send_delay=self.settings.send_delay,
        )
        self._poll_task = asyncio.create_task(self.poller.run(self._stop), name="feed-poller")

    async def close(self) -> None:
        log.info("shutting_down")
        self._stop.set()
        if self._poll_task is not None:
            try:
                await asyncio.wait_for(self._poll_task, timeout=SHUTDOWN_GRACE)
            except asyncio.TimeoutError:
                log.warning("poller_shutdown_timeout")
            self._poll_task = None
        await super().close()

    async def on_ready(self) -> None:
        log.info("logged_in", user=str(self.user), subscribers=len(self.store))

    async def on_message(self, message: discord.Message) -> None:
        if message.author == self.user or message.author.bot:
            return
        reply = handle_command(message.content, message.channel.id, self.store)
        if reply is None:
            return
        try:
            await message.channel.send(reply)
        except discord.HTTPException as e:
            log.error("reply_failed", channel=message.channel.id, error=str(e))


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        log.error("startup_failed", error=str(e))
        return 1

    configure_logging(settings.log_level, settings.log_file)
    log_settings(settings)
    log.info("starting", feed_url=settings.feed_url)

    store = SubscriberStore(settings.data_dir)
    bot = NewsBot(settings, store)
    try:
        # Logging is already configured; keep discord.py from adding a handler
        bot.run(settings.discord_token, log_handler=None)
    except discord.LoginFailure as e:
        log.error("startup_failed", error=str(e))
        return 1
    log.info("shutdown_complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Chat commands accepted by the relay.

Commands arrive through the Telegram bot. Each recognized command maps
to one handler of ``CommandDispatcher``; the handler's return value is
sent back to the chat that issued the command.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from urllib.parse import urlparse

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from rss_relay.config import FeedConfig
from rss_relay.formatting import format_item
from rss_relay.journal import INT64_MAX, INT64_MIN, JournalError
from rss_relay.notifier import Notifier
from rss_relay.poller import PollCycle
from rss_relay.rss_parser import FeedError, FeedParser
from rss_relay.state import DuplicateError, StateStore

logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    """Recognized bot commands."""

    START = "start"
    PING = "ping"
    ADD_FEED = "add_feed"
    ADD_CHAT_ID = "add_chat_id"
    UPDATE_FEEDS = "update_feeds"
    GET_ITEM = "get_item"


Handler = Callable[[int, str], Awaitable[str | None]]


class CommandDispatcher:
    """
    Executes bot commands against the relay state.

    Validation failures are reported back to the requester and leave
    the state untouched.
    """

    def __init__(
        self,
        state: StateStore,
        parser: FeedParser,
        notifier: Notifier,
        poller: PollCycle,
        probe_destinations: bool = True,
    ):
        """
        Initialize the dispatcher.

        Parameters
        ----------
        state : StateStore
            Shared working state.
        parser : FeedParser
            Used to validate feeds before adding them.
        notifier : Notifier
            Used to probe new destinations and send single items.
        poller : PollCycle
            Poll cycle triggered by ``update_feeds``.
        probe_destinations : bool
            Probe a chat before subscribing it.
        """
        self.state = state
        self.parser = parser
        self.notifier = notifier
        self.poller = poller
        self.probe_destinations = probe_destinations
        self._handlers: dict[CommandKind, Handler] = {
            CommandKind.START: self._start,
            CommandKind.PING: self._ping,
            CommandKind.ADD_FEED: self._add_feed,
            CommandKind.ADD_CHAT_ID: self._add_chat_id,
            CommandKind.UPDATE_FEEDS: self._update_feeds,
            CommandKind.GET_ITEM: self._get_item,
        }

    async def dispatch(self, kind: CommandKind, chat_id: int, args: str = "") -> str | None:
        """
        Run a command.

        Parameters
        ----------
        kind : CommandKind
            The command to run.
        chat_id : int
            Chat that issued the command.
        args : str
            Raw command arguments.

        Returns
        -------
        str | None
            Reply for the requester, or None when nothing should be sent.
        """
        logger.info("Command /%s from %d", kind.value, chat_id)
        return await self._handlers[kind](chat_id, args.strip())

    async def _start(self, chat_id: int, args: str) -> str:
        return "Hi!"

    async def _ping(self, chat_id: int, args: str) -> str:
        return "pong"

    async def _add_feed(self, chat_id: int, args: str) -> str:
        url = args
        try:
            parsed_url = urlparse(url)
        except ValueError:
            return "Please send me an URL"
        if (
            parsed_url.scheme not in ("http", "https")
            or not parsed_url.netloc
            or any(c.isspace() for c in url)
        ):
            return "Please send me an URL"

        if self.state.has_feed(url):
            return "Feed is already watched"

        try:
            feed = await self.parser.fetch_feed(url)
        except FeedError as e:
            logger.warning("Rejected feed %s: %s", url, e)
            return f"Check that URL provides valid RSS/Atom feed: {e}"

        try:
            index = await self.state.add_feed(FeedConfig(url=url))
        except DuplicateError:
            return "Feed is already watched"
        except (OSError, JournalError) as e:
            logger.error("Failed to record feed %s: %s", url, e)
            return f"Failed to save feed: {e}"

        self.poller.latest[url] = feed
        return f"Done! New feed index: {index}"

    async def _add_chat_id(self, chat_id: int, args: str) -> str:
        try:
            destination = int(args)
        except ValueError:
            return "Not a number"
        if not INT64_MIN <= destination <= INT64_MAX:
            return "Not a number"

        if destination in self.state.destinations:
            return "Chat is already subscribed"

        if self.probe_destinations:
            try:
                await self.notifier.probe(destination)
            except Exception as e:
                logger.warning("Probe of chat %d failed: %s", destination, e)
                return f"Check that bot has access to this chat: {e}"

        try:
            await self.state.add_destination(destination)
        except DuplicateError:
            return "Chat is already subscribed"
        except (OSError, JournalError) as e:
            logger.error("Failed to record chat %d: %s", destination, e)
            return f"Failed to save chat: {e}"

        return "Done!"

    async def _update_feeds(self, chat_id: int, args: str) -> str:
        self.poller.trigger()
        return "Updating feeds"

    async def _get_item(self, chat_id: int, args: str) -> str | None:
        """Send item ``<item>`` of feed ``<feed>`` from its last fetch."""
        parts = args.split()
        if len(parts) < 2:
            return "Not a number"
        try:
            feed_index, item_index = int(parts[0]), int(parts[1])
        except ValueError:
            return "Check arguments"

        feeds = self.state.feeds
        if not 0 <= feed_index < len(feeds):
            return "Check arguments"

        feed = feeds[feed_index]
        parsed = self.poller.latest.get(feed.url)
        if parsed is None or not 0 <= item_index < len(parsed.items):
            return "Check arguments"

        text = format_item(parsed.title or feed.label, parsed.items[item_index], feed.tags)
        if not await self.notifier.send(chat_id, text):
            return "Failed to send item"
        return None


def build_application(
    token: str,
    dispatcher: CommandDispatcher,
    proxy_url: str | None = None,
) -> Application:
    """
    Build the Telegram application that receives commands.

    Parameters
    ----------
    token : str
        Telegram Bot API token.
    dispatcher : CommandDispatcher
        Executes the received commands.
    proxy_url : str | None
        Optional proxy URL for Bot API requests.

    Returns
    -------
    Application
        Application with one handler per command. Other commands are ignored.
    """
    builder = ApplicationBuilder().token(token)
    if proxy_url:
        builder = builder.proxy(proxy_url).get_updates_proxy(proxy_url)

    application = builder.build()
    for kind in CommandKind:
        application.add_handler(CommandHandler(kind.value, _make_callback(dispatcher, kind)))
    return application


def _make_callback(dispatcher: CommandDispatcher, kind: CommandKind):
    async def callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        chat = update.effective_chat
        if message is None or chat is None:
            return
        reply = await dispatcher.dispatch(kind, chat.id, " ".join(context.args or []))
        if reply:
            await message.reply_text(reply)

    return callback

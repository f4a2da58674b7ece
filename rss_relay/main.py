"""
Main entry point for RSS Relay.

Restores the durable state, then runs the poll loop and the Telegram
command handler side by side.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from urllib.parse import urlparse

import coloredlogs
from telegram.ext import Application

from rss_relay.commands import CommandDispatcher, build_application
from rss_relay.config import load_config
from rss_relay.journal import Journal
from rss_relay.poller import PollCycle
from rss_relay.rss_parser import FeedParser
from rss_relay.snapshot import SnapshotStore
from rss_relay.state import StateStore, restore_state
from rss_relay.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


def redact_proxy_url(proxy_url: str) -> str:
    """
    Redact credentials from a proxy URL for safe logging.

    Parameters
    ----------
    proxy_url : str
        The proxy URL potentially containing credentials.

    Returns
    -------
    str
        The proxy URL with password redacted.
    """
    try:
        parsed = urlparse(proxy_url)
        if parsed.password:
            netloc = parsed.hostname or ""
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            if parsed.username:
                netloc = f"{parsed.username}:****@{netloc}"
            return f"{parsed.scheme}://{netloc}{parsed.path}"
        return proxy_url
    except ValueError:
        return "<proxy url>"


class RSSRelay:
    """
    Main relay application.

    Owns the state store, the poll cycle and the command application.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the relay.

        Parameters
        ----------
        config_path : str | Path
            Path to the YAML configuration file.
        """
        self.config = load_config(config_path)
        self.state: StateStore | None = None
        self.parser: FeedParser | None = None
        self.notifier: TelegramNotifier | None = None
        self.poller: PollCycle | None = None
        self.application: Application | None = None
        self._tasks: list[asyncio.Task] = []

    def restore(self) -> StateStore:
        """
        Rebuild state from the snapshot and journal.

        Raises
        ------
        OSError
            If the fresh snapshot or journal cannot be written.
        """
        storage = self.config.storage
        self.state = restore_state(
            self.config,
            SnapshotStore(storage.snapshot_path),
            Journal(storage.journal_path),
        )
        return self.state

    async def start(self) -> None:
        """Start the relay and run until stopped."""
        logger.info("Starting RSS Relay")

        try:
            state = self.restore()
        except OSError as e:
            logger.error("Cannot persist state, refusing to start: %s", e)
            sys.exit(1)

        proxy_url = self.config.defaults.proxy
        if proxy_url:
            logger.info("Using proxy: %s", redact_proxy_url(proxy_url))

        self.parser = FeedParser(
            timeout=self.config.defaults.request_timeout,
            user_agent=self.config.defaults.user_agent,
            proxy_url=proxy_url,
        )
        self.notifier = TelegramNotifier(self.config.telegram, proxy_url=proxy_url)

        if not await self.notifier.test_connection():
            logger.error("Failed to connect to Telegram, exiting")
            await self.stop()
            sys.exit(1)

        self.poller = PollCycle(state, self.parser, self.notifier)
        dispatcher = CommandDispatcher(
            state,
            self.parser,
            self.notifier,
            self.poller,
            probe_destinations=self.config.telegram.probe_destinations,
        )

        self.application = build_application(
            self.config.telegram.bot_token, dispatcher, proxy_url=proxy_url
        )
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling()
        logger.info("Listening for commands")

        interval = self.config.defaults.poll_interval
        self._tasks.append(asyncio.create_task(self.poller.run_forever(interval)))
        logger.info(
            "RSS Relay started: %d feed(s), %d destination(s), polling every %ds",
            len(state.feeds),
            len(state.destinations),
            interval,
        )

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Relay tasks cancelled")

    async def stop(self) -> None:
        """Stop the relay gracefully."""
        logger.info("Stopping RSS Relay")

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self.poller:
            await self.poller.close()
        if self.application:
            if self.application.updater and self.application.updater.running:
                await self.application.updater.stop()
            if self.application.running:
                await self.application.stop()
            await self.application.shutdown()
            self.application = None
        if self.parser:
            await self.parser.close()
        if self.notifier:
            await self.notifier.close()
        if self.state:
            self.state.journal.close()

        logger.info("RSS Relay stopped")


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Relay new RSS/Atom items to Telegram chats",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    try:
        relay = RSSRelay(config_path)
    except Exception as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        for task in relay._tasks:
            task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(relay.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        loop.run_until_complete(relay.stop())
        loop.close()


if __name__ == "__main__":
    main()

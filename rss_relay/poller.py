"""
Periodic feed polling.

A poll cycle fetches every enabled feed, records fingerprints of items
not seen before and fans each new item out to every destination.
"""

import asyncio
import logging
from dataclasses import dataclass

from rss_relay.config import FeedConfig
from rss_relay.fingerprint import fingerprint
from rss_relay.formatting import format_item
from rss_relay.models import FeedItem, ParsedFeed
from rss_relay.notifier import Notifier
from rss_relay.rss_parser import FeedError, FeedParser
from rss_relay.state import StateStore

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Counters describing one poll cycle."""

    feeds_checked: int = 0
    feeds_failed: int = 0
    new_items: int = 0
    sent: int = 0
    failed: int = 0


class PollCycle:
    """
    Drives poll cycles over the state store's feeds.

    A cycle holds both state locks from start to end, so command
    mutations wait until it completes and cycles never overlap.
    """

    def __init__(self, state: StateStore, parser: FeedParser, notifier: Notifier):
        """
        Initialize the poll cycle.

        Parameters
        ----------
        state : StateStore
            Shared working state.
        parser : FeedParser
            Feed fetcher.
        notifier : Notifier
            Notification backend used for fan-out.
        """
        self.state = state
        self.parser = parser
        self.notifier = notifier
        self.latest: dict[str, ParsedFeed] = {}
        self._triggered: set[asyncio.Task] = set()

    async def run_once(self) -> CycleReport:
        """
        Run one complete poll cycle.

        Fetch and notification failures are logged and never abort
        the cycle.

        Returns
        -------
        CycleReport
            What the cycle did.
        """
        report = CycleReport()

        async with self.state.state_lock, self.state.write_lock:
            destinations = self.state.destinations
            for feed in self.state.feeds:
                if not feed.enabled:
                    continue
                report.feeds_checked += 1
                try:
                    await self._check_feed(feed, destinations, report)
                except Exception as e:
                    report.feeds_failed += 1
                    logger.error("Error checking feed '%s': %s", feed.label, e)

        logger.info(
            "Poll cycle done: %d feed(s) checked, %d failed, %d new item(s), "
            "%d sent, %d failed to send",
            report.feeds_checked,
            report.feeds_failed,
            report.new_items,
            report.sent,
            report.failed,
        )
        return report

    async def _check_feed(
        self,
        feed: FeedConfig,
        destinations: tuple[int, ...],
        report: CycleReport,
    ) -> None:
        """
        Fetch one feed and notify about its new items, oldest first.

        Parameters
        ----------
        feed : FeedConfig
            The feed to check.
        destinations : tuple[int, ...]
            Destinations to notify.
        report : CycleReport
            Counters updated in place.
        """
        try:
            parsed = await self.parser.fetch_feed(feed.url)
        except FeedError as e:
            report.feeds_failed += 1
            logger.warning("Skipping feed '%s': %s", feed.label, e)
            return

        self.latest[feed.url] = parsed
        title = parsed.title or feed.label

        for item in reversed(parsed.items):
            try:
                value = fingerprint(item, feed.hashing)
            except ValueError as e:
                logger.warning(
                    "Skipping item in '%s' with link %r: %s", feed.label, item.link, e
                )
                continue
            if not self.state.record_fingerprint(value):
                continue
            report.new_items += 1
            logger.debug("New item in '%s': %s", feed.label, item.title[:50])
            await self._fan_out(title, item, feed, destinations, report)

    async def _fan_out(
        self,
        title: str,
        item: FeedItem,
        feed: FeedConfig,
        destinations: tuple[int, ...],
        report: CycleReport,
    ) -> None:
        """Send one item to every destination independently."""
        text = format_item(title, item, feed.tags)

        for destination in destinations:
            try:
                sent = await self.notifier.send(destination, text)
            except Exception as e:
                logger.error("Failed to notify %d about '%s': %s", destination, item.title[:50], e)
                sent = False

            if sent:
                report.sent += 1
            else:
                report.failed += 1

    async def run_forever(self, interval: float) -> None:
        """
        Run poll cycles every ``interval`` seconds until cancelled.

        Parameters
        ----------
        interval : float
            Seconds between the end of one cycle and the next.
        """
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Poll cycle failed: %s", e)

            await asyncio.sleep(interval)

    def trigger(self) -> asyncio.Task:
        """
        Schedule an out-of-band poll cycle and return immediately.

        Returns
        -------
        asyncio.Task
            The scheduled cycle.
        """
        task = asyncio.create_task(self.run_once())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        logger.info("Out-of-band poll cycle scheduled")
        return task

    async def close(self) -> None:
        """Cancel triggered cycles that are still pending."""
        for task in list(self._triggered):
            task.cancel()
        if self._triggered:
            await asyncio.gather(*self._triggered, return_exceptions=True)

"""
Working state of the relay: watched feeds, destinations and seen items.

The state store owns the dedup index and the journal. Every mutation is
applied in memory and appended to the journal before it is acknowledged.
At startup the state is rebuilt from the snapshot and the previous run's
journal, written back as a fresh snapshot, and the journal is recreated.
"""

import asyncio
import logging

from rss_relay.config import AppConfig, FeedConfig
from rss_relay.dedup import DedupIndex
from rss_relay.journal import Journal, replay_journal
from rss_relay.models import (
    LogEntry,
    NewDestination,
    NewFeed,
    NewFingerprint,
    PersistedState,
    StoredFeed,
)
from rss_relay.snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class DuplicateError(Exception):
    """Raised when registering a feed or destination that already exists."""

    pass


class StateStore:
    """
    Lock-guarded feeds, destinations and dedup index.

    Two locks coordinate the poll cycle and the command handlers:
    ``state_lock`` guards the feed and destination lists, ``write_lock``
    guards the dedup index and journal appends. They are always acquired
    in that order.
    """

    def __init__(
        self,
        journal: Journal,
        feeds: list[FeedConfig] | None = None,
        destinations: list[int] | None = None,
        dedup: DedupIndex | None = None,
    ):
        """
        Initialize the store.

        Parameters
        ----------
        journal : Journal
            Journal receiving every runtime mutation.
        feeds : list[FeedConfig] | None
            Initial feeds in registration order.
        destinations : list[int] | None
            Initial destination chat ids in registration order.
        dedup : DedupIndex | None
            Initial dedup index.
        """
        self.journal = journal
        self._feeds: list[FeedConfig] = list(feeds or [])
        self._destinations: list[int] = list(destinations or [])
        self.dedup = dedup if dedup is not None else DedupIndex()
        self.state_lock = asyncio.Lock()
        self.write_lock = asyncio.Lock()

    @property
    def feeds(self) -> tuple[FeedConfig, ...]:
        """Watched feeds in registration order."""
        return tuple(self._feeds)

    @property
    def destinations(self) -> tuple[int, ...]:
        """Destination chat ids in registration order."""
        return tuple(self._destinations)

    def has_feed(self, url: str) -> bool:
        """Return True if a feed with this URL is registered."""
        return any(feed.url == url for feed in self._feeds)

    async def add_feed(self, feed: FeedConfig) -> int:
        """
        Register a feed and journal it.

        Parameters
        ----------
        feed : FeedConfig
            The feed to add.

        Returns
        -------
        int
            Index of the new feed.

        Raises
        ------
        DuplicateError
            If the URL is already watched.
        """
        async with self.state_lock, self.write_lock:
            if self.has_feed(feed.url):
                raise DuplicateError(f"Feed already watched: {feed.url}")
            self._feeds.append(feed)
            try:
                self.journal.append(NewFeed(feed.url))
            except Exception:
                self._feeds.pop()
                raise
            logger.info("Added feed %s", feed.url)
            return len(self._feeds) - 1

    async def add_destination(self, chat_id: int) -> None:
        """
        Register a destination chat and journal it.

        Parameters
        ----------
        chat_id : int
            Telegram chat id.

        Raises
        ------
        DuplicateError
            If the chat is already subscribed.
        """
        async with self.state_lock, self.write_lock:
            if chat_id in self._destinations:
                raise DuplicateError(f"Chat already subscribed: {chat_id}")
            self._destinations.append(chat_id)
            try:
                self.journal.append(NewDestination(chat_id))
            except Exception:
                self._destinations.pop()
                raise
            logger.info("Added destination %d", chat_id)

    def record_fingerprint(self, fp: int) -> bool:
        """
        Mark a fingerprint as seen, journaling it first.

        The caller must hold ``write_lock``.

        Parameters
        ----------
        fp : int
            Item fingerprint.

        Returns
        -------
        bool
            True if the fingerprint is new and has been recorded.
        """
        if self.dedup.contains(fp):
            return False
        self.journal.append(NewFingerprint(fp))
        self.dedup.insert(fp)
        return True

    def apply(self, entry: LogEntry) -> None:
        """Apply a replayed journal entry without journaling it again."""
        if isinstance(entry, NewFingerprint):
            self.dedup.insert(entry.value)
        elif isinstance(entry, NewFeed):
            if not self.has_feed(entry.url):
                self._feeds.append(FeedConfig(url=entry.url))
        elif isinstance(entry, NewDestination):
            if entry.chat_id not in self._destinations:
                self._destinations.append(entry.chat_id)

    def merge_config(self, config: AppConfig) -> None:
        """
        Merge configured feeds and destinations into the state.

        Configured options replace the stored descriptor of a feed with
        the same URL; unknown feeds and destinations are appended.
        """
        for feed in config.feeds:
            for index, existing in enumerate(self._feeds):
                if existing.url == feed.url:
                    self._feeds[index] = feed
                    break
            else:
                self._feeds.append(feed)

        for chat_id in config.destinations:
            if chat_id not in self._destinations:
                self._destinations.append(chat_id)

    def to_persisted(self) -> PersistedState:
        """Return the full state in snapshot form."""
        return PersistedState(
            hashes=list(self.dedup),
            urls=[StoredFeed(address=f.url, enabled=f.enabled) for f in self._feeds],
            ids=list(self._destinations),
        )

    @classmethod
    def from_persisted(cls, state: PersistedState, journal: Journal) -> "StateStore":
        """Build a store from a loaded snapshot."""
        return cls(
            journal=journal,
            feeds=[FeedConfig(url=f.address, enabled=f.enabled) for f in state.urls],
            destinations=list(state.ids),
            dedup=DedupIndex(state.hashes),
        )


def restore_state(
    config: AppConfig,
    snapshots: SnapshotStore,
    journal: Journal,
) -> StateStore:
    """
    Rebuild the working state at startup.

    Loads the snapshot, replays the previous journal on top of it, merges
    the configuration, writes a fresh snapshot and recreates the journal.

    Parameters
    ----------
    config : AppConfig
        Application configuration.
    snapshots : SnapshotStore
        Snapshot storage.
    journal : Journal
        Journal to replay and then reopen for appends.

    Returns
    -------
    StateStore
        The restored state, with the journal open.

    Raises
    ------
    OSError
        If the snapshot cannot be written or the journal recreated.
    """
    persisted = snapshots.load() or PersistedState()
    store = StateStore.from_persisted(persisted, journal)

    for entry in replay_journal(journal.path):
        store.apply(entry)

    store.merge_config(config)

    snapshots.save(store.to_persisted())
    journal.open()

    logger.info(
        "State restored: %d fingerprint(s), %d feed(s), %d destination(s)",
        len(store.dedup),
        len(store.feeds),
        len(store.destinations),
    )
    return store

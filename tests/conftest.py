"""
Shared fixtures for RSS Relay tests.

Provides common test fixtures for use across all test modules.
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from rss_relay.config import AppConfig, FeedConfig, TelegramConfig
from rss_relay.journal import Journal
from rss_relay.models import FeedItem, ParsedFeed
from rss_relay.state import StateStore


# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample config file."""
    return fixtures_dir / "sample_config.yaml"


@pytest.fixture
def sample_rss_content(fixtures_dir: Path) -> str:
    """Return contents of sample RSS feed (three items, newest first)."""
    return (fixtures_dir / "sample_rss.xml").read_text()


@pytest.fixture
def sample_atom_content(fixtures_dir: Path) -> str:
    """Return contents of sample Atom feed."""
    return (fixtures_dir / "sample_atom.xml").read_text()


@pytest.fixture
def sample_item() -> FeedItem:
    """
    Create a sample feed item for testing.

    Returns
    -------
    FeedItem
        A fully populated item.
    """
    return FeedItem(
        title="Test Entry Title",
        link="https://example.com/test-entry",
        content="This is the test entry content.",
        categories=["Technology", "Programming"],
    )


@pytest.fixture
def sample_parsed_feed() -> ParsedFeed:
    """
    Create a parsed feed with three items, newest first.

    Returns
    -------
    ParsedFeed
        Feed titled "Test Feed".
    """
    return ParsedFeed(
        title="Test Feed",
        items=[
            FeedItem(title="Item 3", link="https://example.com/3"),
            FeedItem(title="Item 2", link="https://example.com/2"),
            FeedItem(title="Item 1", link="https://example.com/1"),
        ],
    )


@pytest.fixture
def minimal_telegram_config() -> TelegramConfig:
    """Create a minimal valid Telegram configuration."""
    return TelegramConfig(bot_token="1234567890:ABCdefGHIjklMNOpqrsTUVwxyz")


@pytest.fixture
def minimal_feed_config() -> FeedConfig:
    """Create a minimal valid feed configuration."""
    return FeedConfig(url="https://example.com/feed.xml", name="Test Feed")


@pytest.fixture
def minimal_config_dict() -> dict[str, Any]:
    """
    Create a minimal valid configuration dictionary.

    Returns
    -------
    dict
        Configuration dictionary that can be used to create AppConfig.
    """
    return {
        "telegram": {
            "bot_token": "1234567890:ABCdefGHIjklMNOpqrsTUVwxyz",
        },
    }


@pytest.fixture
def minimal_app_config(
    minimal_telegram_config: TelegramConfig, tmp_path: Path
) -> AppConfig:
    """Create a minimal app configuration storing its state under tmp_path."""
    return AppConfig(
        telegram=minimal_telegram_config,
        storage={
            "snapshot_path": str(tmp_path / "db.json"),
            "journal_path": str(tmp_path / "evolution.txt"),
        },
    )


@pytest.fixture
def journal(tmp_path: Path) -> Generator[Journal, None, None]:
    """
    Create an open journal in a temporary directory.

    Yields
    ------
    Journal
        A journal accepting appends.
    """
    journal = Journal(tmp_path / "evolution.txt")
    journal.open()
    yield journal
    journal.close()


@pytest.fixture
def state_store(journal: Journal, minimal_feed_config: FeedConfig) -> StateStore:
    """Create a state store with one feed and one destination."""
    return StateStore(
        journal=journal,
        feeds=[minimal_feed_config],
        destinations=[-1001],
    )


@pytest.fixture
def mock_notifier() -> MagicMock:
    """
    Create a mock notifier.

    Returns
    -------
    MagicMock
        Notifier whose sends succeed.
    """
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value=True)
    notifier.probe = AsyncMock()
    notifier.test_connection = AsyncMock(return_value=True)
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def mock_parser(sample_parsed_feed: ParsedFeed) -> MagicMock:
    """
    Create a mock feed parser returning the sample parsed feed.

    Returns
    -------
    MagicMock
        Parser with an async fetch_feed.
    """
    parser = MagicMock()
    parser.fetch_feed = AsyncMock(return_value=sample_parsed_feed)
    parser.close = AsyncMock()
    return parser


@pytest.fixture
def mock_telegram_bot() -> MagicMock:
    """
    Create a mock Telegram bot.

    Returns
    -------
    MagicMock
        A mock Bot instance with common methods mocked.
    """
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock(message_id=42))
    bot.delete_message = AsyncMock(return_value=True)
    bot.get_me = AsyncMock(return_value=MagicMock(username="test_bot"))
    bot.shutdown = AsyncMock()
    return bot


@pytest.fixture
def sample_cp1251_content() -> bytes:
    """Return a windows-1251 encoded RSS feed with one Cyrillic item."""
    return (
        '<?xml version="1.0" encoding="windows-1251"?>\n'
        '<rss version="2.0"><channel>'
        "<title>Новости</title>"
        "<link>https://example.ru</link>"
        "<item><title>Первая новость</title>"
        "<link>https://example.ru/1</link>"
        "<category>Политика</category></item>"
        "</channel></rss>"
    ).encode("cp1251")

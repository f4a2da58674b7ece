"""
Data model shared by the relay components.

Feed items as produced by the parser, journal entries, and the
persisted snapshot schema.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field


@dataclass
class FeedItem:
    """
    Normalized RSS/Atom item.

    Attributes
    ----------
    title : str
        Item title.
    link : str
        Item URL.
    content : str
        Item content, falling back to the summary.
    categories : list[str]
        Item categories/tags.
    """

    title: str = ""
    link: str = ""
    content: str = ""
    categories: list[str] = field(default_factory=list)

    @classmethod
    def from_feedparser(cls, entry: Any) -> "FeedItem":
        """
        Create a FeedItem from a feedparser entry.

        Parameters
        ----------
        entry : Any
            A feedparser entry object.

        Returns
        -------
        FeedItem
            Normalized item instance.
        """
        content = ""
        if entry.get("content"):
            content = entry["content"][0].get("value", "")
        elif entry.get("summary"):
            content = entry["summary"]

        categories = [tag.get("term", "") for tag in entry.get("tags", []) if tag.get("term")]

        return cls(
            title=entry.get("title", ""),
            link=entry.get("link", ""),
            content=content,
            categories=categories,
        )


@dataclass
class ParsedFeed:
    """A fetched feed with its items in natural (newest-first) order."""

    title: str = ""
    items: list[FeedItem] = field(default_factory=list)


@dataclass(frozen=True)
class NewFingerprint:
    """Journal entry recording a newly seen item fingerprint."""

    value: int


@dataclass(frozen=True)
class NewFeed:
    """Journal entry recording a feed added at runtime."""

    url: str


@dataclass(frozen=True)
class NewDestination:
    """Journal entry recording a destination chat added at runtime."""

    chat_id: int


LogEntry = NewFingerprint | NewFeed | NewDestination


class StoredFeed(BaseModel):
    """Feed address and enabled flag as kept in the snapshot."""

    address: str
    enabled: bool = True


class PersistedState(BaseModel):
    """
    Full working state written to the snapshot file.

    Attributes
    ----------
    hashes : list[int]
        Every fingerprint in the dedup index.
    urls : list[StoredFeed]
        Watched feeds in registration order.
    ids : list[int]
        Destination chat ids in registration order.
    """

    hashes: list[int] = Field(default_factory=list)
    urls: list[StoredFeed] = Field(default_factory=list)
    ids: list[int] = Field(default_factory=list)

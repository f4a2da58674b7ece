"""
Append-only mutation journal.

Every state mutation made while the relay runs is written here as one
line and forced to disk before the mutation is acknowledged. At the next
startup the journal is replayed on top of the snapshot.

Line format::

    + h <uint64>   new fingerprint
    + u <url>      new feed (enabled)
    + i <int64>    new destination chat id
"""

import logging
import os
from pathlib import Path
from typing import TextIO

from rss_relay.models import LogEntry, NewDestination, NewFeed, NewFingerprint

logger = logging.getLogger(__name__)

UINT64_MAX = 2**64 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class JournalError(Exception):
    """Raised when a journal line cannot be encoded or decoded."""

    pass


def encode_entry(entry: LogEntry) -> str:
    """
    Encode a journal entry as a single line (without newline).

    Parameters
    ----------
    entry : LogEntry
        The entry to encode.

    Returns
    -------
    str
        Encoded line.

    Raises
    ------
    JournalError
        If the entry cannot be represented on one line.
    """
    if isinstance(entry, NewFingerprint):
        if not 0 <= entry.value <= UINT64_MAX:
            raise JournalError(f"Fingerprint out of range: {entry.value}")
        return f"+ h {entry.value}"
    if isinstance(entry, NewFeed):
        if not entry.url or any(c.isspace() for c in entry.url):
            raise JournalError(f"Feed URL must be a single token: {entry.url!r}")
        return f"+ u {entry.url}"
    if isinstance(entry, NewDestination):
        if not INT64_MIN <= entry.chat_id <= INT64_MAX:
            raise JournalError(f"Chat id out of range: {entry.chat_id}")
        return f"+ i {entry.chat_id}"
    raise JournalError(f"Unknown journal entry: {entry!r}")


def decode_entry(line: str) -> LogEntry:
    """
    Decode one journal line.

    Parameters
    ----------
    line : str
        A line read from the journal, trailing newline allowed.

    Returns
    -------
    LogEntry
        The decoded entry.

    Raises
    ------
    JournalError
        If the line is malformed.
    """
    fields = line.split()
    if not fields or fields[0] != "+":
        raise JournalError("line does not start with '+'")
    if len(fields) != 3:
        raise JournalError(f"expected 3 fields, got {len(fields)}")

    tag, value = fields[1], fields[2]
    try:
        if tag == "h":
            number = int(value)
            if not 0 <= number <= UINT64_MAX:
                raise ValueError("not a uint64")
            return NewFingerprint(number)
        if tag == "u":
            return NewFeed(value)
        if tag == "i":
            number = int(value)
            if not INT64_MIN <= number <= INT64_MAX:
                raise ValueError("not an int64")
            return NewDestination(number)
    except ValueError as e:
        raise JournalError(f"bad value {value!r} for tag '{tag}': {e}") from e

    raise JournalError(f"unknown tag '{tag}'")


def replay_journal(path: str | Path) -> list[LogEntry]:
    """
    Read every valid entry of a journal file, in file order.

    Malformed lines are logged and skipped, so a line truncated by a
    crash does not prevent the rest of the file from being replayed.

    Parameters
    ----------
    path : str | Path
        Journal file to read. A missing file yields no entries.

    Returns
    -------
    list[LogEntry]
        Decoded entries.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No journal at %s, nothing to replay", path)
        return []

    entries: list[LogEntry] = []
    with open(path, encoding="utf-8", errors="replace") as f:
        for number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                entries.append(decode_entry(line))
            except JournalError as e:
                logger.warning("Skipping journal line %d in %s: %s", number, path, e)

    logger.info("Replayed %d journal entr%s from %s",
                len(entries), "y" if len(entries) == 1 else "ies", path)
    return entries


class Journal:
    """
    Writer for the mutation journal.

    The file is recreated empty on open; each append is flushed and
    fsynced before returning.
    """

    def __init__(self, path: str | Path):
        """
        Initialize the journal with its file path.

        Parameters
        ----------
        path : str | Path
            Path to the journal file.
        """
        self.path = Path(path)
        self._file: TextIO | None = None

    def open(self) -> None:
        """
        Create (or truncate) the journal file.

        Raises
        ------
        OSError
            If the file cannot be created.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8")
        logger.info("Opened journal at %s", self.path)

    @property
    def is_open(self) -> bool:
        """Whether the journal accepts appends."""
        return self._file is not None and not self._file.closed

    def append(self, entry: LogEntry) -> None:
        """
        Append an entry and force it to stable storage.

        Parameters
        ----------
        entry : LogEntry
            The entry to record.

        Raises
        ------
        RuntimeError
            If the journal has not been opened.
        JournalError
            If the entry cannot be encoded.
        """
        if self._file is None:
            raise RuntimeError("Journal not opened")

        line = encode_entry(entry)
        self._file.write(line + "\n")
        self._file.flush()
        os.fsync(self._file.fileno())
        logger.debug("Journal append: %s", line)

    def close(self) -> None:
        """Close the journal file."""
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.debug("Journal closed")

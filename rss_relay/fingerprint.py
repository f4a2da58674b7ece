"""
Item fingerprinting for deduplication.

Fingerprints are 64-bit FNV-1a hashes of the normalized item link,
optionally followed by the item content.
"""

from urllib.parse import urlsplit, urlunsplit

from rss_relay.config import HashingOptions
from rss_relay.models import FeedItem

FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
UINT64_MASK = 0xFFFFFFFFFFFFFFFF


def fnv1a_64(data: bytes) -> int:
    """Return the 64-bit FNV-1a hash of ``data``."""
    value = FNV64_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * FNV64_PRIME) & UINT64_MASK
    return value


def normalize_link(link: str, include_query: bool = False) -> str:
    """
    Normalize an item link for hashing.

    The fragment is always dropped; the query string is dropped
    unless ``include_query`` is set.

    Parameters
    ----------
    link : str
        Raw item link.
    include_query : bool
        Keep the query string.

    Returns
    -------
    str
        Normalized link.
    """
    parts = urlsplit(link.strip())
    query = parts.query if include_query else ""
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


def fingerprint(item: FeedItem, options: HashingOptions | None = None) -> int:
    """
    Compute the dedup fingerprint of a feed item.

    Parameters
    ----------
    item : FeedItem
        The item to fingerprint.
    options : HashingOptions | None
        Per-feed hashing options, defaults apply when omitted.

    Returns
    -------
    int
        Unsigned 64-bit fingerprint.
    """
    options = options or HashingOptions()
    payload = normalize_link(item.link, options.include_query)
    if options.include_content:
        payload += item.content
    return fnv1a_64(payload.encode("utf-8"))

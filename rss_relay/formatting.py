"""
Notification text formatting.

Turns a feed item into the HTML message sent to destinations, with the
item categories rendered as hashtags.
"""

import html

from rss_relay.models import FeedItem

READ_LINK_TEXT = "Read"

# Telegram's limit on message text
MAX_MESSAGE_LENGTH = 4096
ELLIPSIS = "..."

# Applied to the raw category before character replacement
DEFAULT_TAG_REPLACEMENTS = {
    "*nix": "unix",
    "c++": "cpp",
}

_DASHES = {"‒", "–", "—", "―", "⸺", "⸻", "-", " "}
_DROPPED = set("!?()'\"«»")
_WORDS = {"#": "sharp", ".": "dot"}


def _replace_char(char: str) -> str:
    if char in _DASHES or char in "&+":
        return "_"
    if char in _DROPPED:
        return ""
    if char in _WORDS:
        return _WORDS[char]
    return char.lower()


def to_hashtag(category: str) -> str:
    """
    Convert a category name into a hashtag.

    Dashes, spaces, ``&`` and ``+`` become a single underscore,
    punctuation is dropped, ``#`` and ``.`` are spelled out.

    Parameters
    ----------
    category : str
        Raw category name.

    Returns
    -------
    str
        Hashtag including the leading ``#``.
    """
    for old, new in DEFAULT_TAG_REPLACEMENTS.items():
        category = category.replace(old, new)

    tag = "#"
    for char in category:
        replacement = _replace_char(char)
        if replacement == "_" and tag.endswith("_"):
            continue
        tag += replacement
    return tag


def format_categories(categories: list[str], tags: dict[str, str] | None = None) -> str:
    """
    Render categories as sorted, de-duplicated hashtags.

    Parameters
    ----------
    categories : list[str]
        Item categories.
    tags : dict[str, str] | None
        Per-feed remapping of category names, applied first.

    Returns
    -------
    str
        Space separated hashtags.
    """
    tags = tags or {}
    hashtags = {to_hashtag(tags.get(category, category)) for category in categories}
    return " ".join(sorted(hashtags))


def _escape_within(text: str, limit: int) -> str:
    """Escape ``text``, cutting it between characters to fit ``limit``."""
    escaped = html.escape(text)
    if len(escaped) <= limit:
        return escaped

    pieces = []
    size = len(ELLIPSIS)
    for char in text:
        piece = html.escape(char)
        if size + len(piece) > limit:
            break
        pieces.append(piece)
        size += len(piece)
    return "".join(pieces) + ELLIPSIS if size <= limit else ""


def format_item(feed_title: str, item: FeedItem, tags: dict[str, str] | None = None) -> str:
    """
    Format an item as an HTML notification.

    Parameters
    ----------
    feed_title : str
        Title of the feed the item belongs to.
    item : FeedItem
        The item to format.
    tags : dict[str, str] | None
        Per-feed category remapping.

    Returns
    -------
    str
        HTML message body. The title is shortened so the body stays
        within ``MAX_MESSAGE_LENGTH`` without cutting a tag or entity.
    """
    header = f"[{html.escape(feed_title)}]\n<b>"
    footer = (
        f"</b>\n{html.escape(format_categories(item.categories, tags))}\n\n"
        f'<a href="{html.escape(item.link)}">{READ_LINK_TEXT}</a>'
    )
    budget = MAX_MESSAGE_LENGTH - len(header) - len(footer)
    return header + _escape_within(item.title, budget) + footer

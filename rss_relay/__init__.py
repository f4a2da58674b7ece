"""
RSS Relay - Relay new RSS/Atom items to Telegram chats.

Polls feeds on an interval, remembers which items were already sent in a
crash-safe journal, and accepts chat commands to add feeds and chats.
"""

__version__ = "1.0.0"

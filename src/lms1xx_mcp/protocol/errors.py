"""Exceptions raised by the telegram protocol engine.

Two kinds reach the caller of a device command:

- :class:`InvalidTelegramError` for a garbled frame or a field that fails to
  decode. The exchange failed but the link is fine; the request may be retried.
- :class:`TelegramTimeoutError` when no complete telegram arrived before the
  deadline. The connection has already been closed and must be reopened.
"""

from __future__ import annotations


class LMSError(Exception):
    """Base class for LMS1xx protocol errors."""


class InvalidTelegramError(LMSError):
    """A received telegram is not correctly framed or cannot be decoded."""


class MalformedTelegramError(InvalidTelegramError):
    """A framed telegram whose fields do not match the expected layout."""


class TelegramTimeoutError(LMSError, TimeoutError):
    """No telegram delimiter arrived before the read deadline."""

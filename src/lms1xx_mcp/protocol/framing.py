"""Telegram framing for the LMS1xx ASCII protocol.

Frame layout::

    +------+----------------------------------------------+------+
    | STX  |  payload: ASCII tokens separated by a space  | ETX  |
    | 0x02 |  (never contains 0x02 or 0x03)               | 0x03 |
    +------+----------------------------------------------+------+

Example, querying the device status::

    02 "sRN STlms" 03
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidTelegramError
from .schema import tokenize

STX = b"\x02"
ETX = b"\x03"


@dataclass
class Frame:
    """A parsed telegram."""

    payload: str

    @property
    def tokens(self) -> list[str]:
        return tokenize(self.payload)

    @property
    def command_type(self) -> str:
        """First token, e.g. ``sRA`` for a read answer."""
        return self.tokens[0]

    @property
    def command(self) -> str:
        """Command keyword, e.g. ``STlms``; empty if the payload has one token."""
        tokens = self.tokens
        return tokens[1] if len(tokens) > 1 else ""

    def __repr__(self) -> str:
        if len(self.payload) > 60:
            return f"Frame(payload={self.payload[:60]!r}..., len={len(self.payload)})"
        return f"Frame(payload={self.payload!r})"


def build_frame(payload: str) -> bytes:
    """Wrap an ASCII payload in STX/ETX.

    Raises:
        ValueError: If the payload is not ASCII or contains a delimiter byte.
    """
    try:
        body = payload.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValueError(f"Telegram payload must be ASCII: {payload!r}") from e
    if STX in body or ETX in body:
        raise ValueError(f"Telegram payload must not contain STX/ETX: {payload!r}")
    return STX + body + ETX


def parse_frame(data: bytes) -> Frame:
    """Parse one complete telegram.

    Args:
        data: Received bytes, starting with STX and ending with ETX.

    Raises:
        InvalidTelegramError: If the delimiters are missing or misplaced,
            or the payload is not ASCII.
    """
    if not data.startswith(STX):
        raise InvalidTelegramError(
            f"Telegram does not start with STX: {data[:16]!r}"
        )
    if len(data) < 2 or not data.endswith(ETX):
        raise InvalidTelegramError("Telegram does not end with ETX")

    body = data[1:-1]
    if STX in body or ETX in body:
        raise InvalidTelegramError("Telegram contains an embedded delimiter")

    try:
        payload = body.decode("ascii")
    except UnicodeDecodeError as e:
        raise InvalidTelegramError(f"Telegram payload is not ASCII: {e}") from e

    return Frame(payload=payload)

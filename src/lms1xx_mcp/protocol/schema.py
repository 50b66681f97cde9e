"""Field schemas and the cursor tokenizer shared by builders and decoders.

A telegram payload is a sequence of tokens separated by single ASCII spaces.
Each telegram kind is described by a schema: an ordered tuple of entries that
say what every position holds::

    Literal("sRA")                       fixed text (command type, keyword, flag)
    Skip("sector_count")                 a token that is consumed but not decoded
    Field("frequency", Base.HEX)         a number with a base and a bit width

Outbound telegrams format ``Field`` values with :meth:`Field.encode`; inbound
telegrams are walked with a :class:`TokenCursor`, which raises
:class:`MalformedTelegramError` for anything that does not match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Union

from .errors import MalformedTelegramError

SEPARATOR = " "

_DEC_TOKEN = re.compile(r"[+-]?[0-9]+")
_HEX_TOKEN = re.compile(r"[0-9A-Fa-f]+")


class Base(IntEnum):
    """Numeric base of a wire field."""

    DEC = 10
    HEX = 16


@dataclass(frozen=True)
class Field:
    """A numeric token.

    Hexadecimal fields carry negative values as two's complement of ``bits``
    width (``-450000`` in a signed 32-bit field is ``FFF92230``).

    Attributes:
        name: Field name, used in error messages and decoded dictionaries.
        base: Decimal or hexadecimal.
        bits: Width of the value on the device.
        signed: Whether negative values are allowed.
        digits: Minimum number of digits; shorter values are zero-padded.
        plus: Prefix non-negative values with an explicit ``+``.
        checked: Reject decoded decimal values outside the bit width. Off for
            codes that are mapped rather than validated.
    """

    name: str
    base: Base = Base.DEC
    bits: int = 32
    signed: bool = False
    digits: int = 0
    plus: bool = False
    checked: bool = True

    @property
    def minimum(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def maximum(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def encode(self, value: int) -> str:
        """Format ``value`` as a token, refusing values that do not fit."""
        value = int(value)
        if not self.minimum <= value <= self.maximum:
            raise ValueError(
                f"{self.name} must be {self.minimum}-{self.maximum}, got {value}"
            )
        if self.base is Base.HEX:
            text = f"{value & ((1 << self.bits) - 1):0{self.digits}X}"
        else:
            text = f"{value:0{self.digits}d}"
        if self.plus and value >= 0:
            text = "+" + text
        return text

    def decode(self, token: str) -> int:
        """Parse a token into an integer within this field's range."""
        pattern = _HEX_TOKEN if self.base is Base.HEX else _DEC_TOKEN
        if not pattern.fullmatch(token):
            raise MalformedTelegramError(
                f"{self.name}: expected {self.base.name.lower()} number, got {token!r}"
            )
        value = int(token, self.base)

        if self.base is Base.HEX:
            if value > (1 << self.bits) - 1:
                raise MalformedTelegramError(
                    f"{self.name}: {token} does not fit in {self.bits} bits"
                )
            if self.signed and value > self.maximum:
                value -= 1 << self.bits
            return value

        if self.checked and not self.minimum <= value <= self.maximum:
            raise MalformedTelegramError(
                f"{self.name}: {value} out of range {self.minimum}-{self.maximum}"
            )
        return value


@dataclass(frozen=True)
class Skip:
    """A positional token that is consumed without being interpreted."""

    name: str


@dataclass(frozen=True)
class Literal:
    """A token with fixed text."""

    text: str


SchemaEntry = Union[Field, Skip, Literal]
Schema = Sequence[SchemaEntry]


def tokenize(payload: str) -> list[str]:
    """Split a payload on single spaces. No escaping, no collapsing."""
    return payload.split(SEPARATOR)


class TokenCursor:
    """Reads tokens from a payload strictly in order.

    Every read checks that a token is actually there, so a short or
    desynchronized telegram surfaces as :class:`MalformedTelegramError`
    instead of an index error.
    """

    def __init__(self, tokens: Sequence[str]) -> None:
        self._tokens = tokens
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._tokens) - self._pos

    def next(self, name: str = "token") -> str:
        """Return the next raw token."""
        if self._pos >= len(self._tokens):
            raise MalformedTelegramError(
                f"Telegram ended at token {self._pos}, expected {name}"
            )
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def skip(self, count: int = 1, name: str = "field") -> None:
        """Consume ``count`` tokens."""
        if count > self.remaining:
            raise MalformedTelegramError(
                f"Telegram has {self.remaining} tokens left, "
                f"cannot skip {count} x {name}"
            )
        self._pos += count

    def take(self, count: int, name: str = "value") -> Sequence[str]:
        """Consume and return the next ``count`` raw tokens."""
        if count > self.remaining:
            raise MalformedTelegramError(
                f"Telegram declares {count} x {name} but only "
                f"{self.remaining} tokens remain"
            )
        tokens = self._tokens[self._pos : self._pos + count]
        self._pos += count
        return tokens

    def read(self, field: Field) -> int:
        """Consume and decode one numeric token."""
        return field.decode(self.next(field.name))

    def expect(self, literal: Literal) -> None:
        """Consume a token that must equal ``literal``."""
        token = self.next(repr(literal.text))
        if token != literal.text:
            raise MalformedTelegramError(
                f"Expected {literal.text!r} at token {self._pos - 1}, got {token!r}"
            )

    def apply(self, schema: Schema) -> dict[str, int]:
        """Walk a schema and return the decoded ``Field`` values by name."""
        values: dict[str, int] = {}
        for entry in schema:
            if isinstance(entry, Field):
                values[entry.name] = self.read(entry)
            elif isinstance(entry, Literal):
                self.expect(entry)
            else:
                self.skip(1, entry.name)
        return values

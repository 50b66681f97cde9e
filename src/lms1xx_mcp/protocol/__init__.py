"""Protocol layer: telegram framing, field schemas, command builders, and response parsing."""

from .errors import (
    InvalidTelegramError,
    LMSError,
    MalformedTelegramError,
    TelegramTimeoutError,
)
from .framing import Frame, build_frame, parse_frame
from .commands import Command, CommandType, build_command

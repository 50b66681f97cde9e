"""Command keywords and telegram builders.

Every request starts with a command type (``sRN`` read by name, ``sWN`` write
by name, ``sMN`` method call, ``sEN`` event subscription) followed by a
command keyword and its parameters. Numeric parameters are declared with a
:class:`~lms1xx_mcp.protocol.schema.Field` so their base and width are
checked before formatting.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..models.scan import ScanConfiguration, ScanDataConfiguration, SampleResolution
from .framing import ETX, STX, build_frame
from .schema import SEPARATOR, Base, Field, Literal

# Authorised client password, sent by SetAccessMode
ACCESS_LEVEL = "03"
ACCESS_PASSWORD = "F4724744"


class CommandType(str, Enum):
    """First token of a request."""

    READ = "sRN"
    WRITE = "sWN"
    METHOD = "sMN"
    EVENT = "sEN"


class Command(str, Enum):
    """Command keywords used by the driver."""

    SET_ACCESS_MODE = "SetAccessMode"
    START_MEASUREMENT = "LMCstartmeas"
    STOP_MEASUREMENT = "LMCstopmeas"
    STATUS = "STlms"
    SCAN_CONFIGURATION = "LMPscancfg"
    SET_SCAN_CONFIGURATION = "mLMPsetscancfg"
    SCAN_DATA_CONFIGURATION = "LMDscandatacfg"
    OUTPUT_RANGE = "LMPoutputRange"
    SCAN_DATA = "LMDscandata"
    SAVE_CONFIGURATION = "mEEwriteall"
    RUN = "Run"


@dataclass(frozen=True)
class Encoded:
    """A value paired with the field that formats it."""

    field: Field
    value: int

    def __str__(self) -> str:
        return self.field.encode(self.value)


Token = Union[str, Literal, Encoded]


FREQUENCY = Field("scanning_frequency", Base.HEX)
RESOLUTION = Field("angle_resolution", Base.HEX)
START_ANGLE = Field("start_angle", Base.HEX, signed=True)
STOP_ANGLE = Field("stop_angle", Base.HEX, signed=True)

OUTPUT_CHANNEL = Field("output_channel", Base.HEX, bits=8, digits=2)
REMISSION = Field("remission", bits=1)
SAMPLE_RESOLUTION = Field("resolution", bits=1)
ENCODER = Field("encoder", Base.HEX, bits=8, digits=2)
POSITION = Field("position", bits=1)
DEVICE_NAME = Field("device_name", bits=1)
TIMESTAMP = Field("timestamp", bits=1)
OUTPUT_INTERVAL = Field("output_interval", bits=16, plus=True)

EVENT_STATE = Field("start", bits=1)


def _render(token: Token) -> str:
    text = token.text if isinstance(token, Literal) else str(token)
    if not text or SEPARATOR in text:
        raise ValueError(f"Telegram token must be non-empty without spaces: {text!r}")
    if STX.decode() in text or ETX.decode() in text:
        raise ValueError(f"Telegram token must not contain STX/ETX: {text!r}")
    return text


def build_telegram(*tokens: Token) -> bytes:
    """Join tokens with single spaces and frame them.

    Tokens are plain strings, :class:`Literal` instances, or :class:`Encoded`
    values. Encoding errors propagate as ``ValueError`` before anything
    is framed.
    """
    return build_frame(SEPARATOR.join(_render(t) for t in tokens))


def build_command(command_type: CommandType, command: Command, *params: Token) -> bytes:
    """Build a request telegram: command type, keyword, then parameters."""
    return build_telegram(command_type.value, command.value, *params)


def build_login() -> bytes:
    """Build SetAccessMode with the authorised client password."""
    return build_command(
        CommandType.METHOD, Command.SET_ACCESS_MODE, ACCESS_LEVEL, ACCESS_PASSWORD
    )


def build_start_measurements() -> bytes:
    """Build LMCstartmeas: start the motor and the laser."""
    return build_command(CommandType.METHOD, Command.START_MEASUREMENT)


def build_stop_measurements() -> bytes:
    """Build LMCstopmeas: stop the laser and the motor."""
    return build_command(CommandType.METHOD, Command.STOP_MEASUREMENT)


def build_query_status() -> bytes:
    return build_command(CommandType.READ, Command.STATUS)


def build_get_configuration() -> bytes:
    return build_command(CommandType.READ, Command.SCAN_CONFIGURATION)


def build_set_scan_configuration(cfg: ScanConfiguration) -> bytes:
    """Build mLMPsetscancfg.

    The device accepts a single sector, hence the constant ``+1`` sector
    count between frequency and resolution.

    Raises:
        ValueError: If a value does not fit its 32-bit field.
    """
    return build_command(
        CommandType.METHOD,
        Command.SET_SCAN_CONFIGURATION,
        Encoded(FREQUENCY, cfg.scanning_frequency),
        Literal("+1"),
        Encoded(RESOLUTION, cfg.angle_resolution),
        Encoded(START_ANGLE, cfg.start_angle),
        Encoded(STOP_ANGLE, cfg.stop_angle),
    )


def build_set_scan_data_configuration(cfg: ScanDataConfiguration) -> bytes:
    """Build LMDscandatacfg from a scan data configuration.

    Raises:
        ValueError: If a value does not fit its field or the output interval
            is outside 1-50000.
    """
    if not 1 <= cfg.output_interval <= 50000:
        raise ValueError(
            f"Output interval must be 1-50000, got {cfg.output_interval}"
        )
    resolution = SampleResolution(cfg.resolution)
    return build_command(
        CommandType.WRITE,
        Command.SCAN_DATA_CONFIGURATION,
        Encoded(OUTPUT_CHANNEL, cfg.output_channel),
        Literal("00"),
        Encoded(REMISSION, cfg.remission),
        Encoded(SAMPLE_RESOLUTION, resolution),
        Literal("0"),
        Encoded(ENCODER, cfg.encoder),
        Literal("00"),
        Encoded(POSITION, cfg.position),
        Encoded(DEVICE_NAME, cfg.device_name),
        Literal("0"),
        Encoded(TIMESTAMP, cfg.timestamp),
        Encoded(OUTPUT_INTERVAL, cfg.output_interval),
    )


def build_get_scan_output_range() -> bytes:
    return build_command(CommandType.READ, Command.OUTPUT_RANGE)


def build_scan_continuous(start: bool) -> bytes:
    """Build the LMDscandata subscription (``1`` to start, ``0`` to stop)."""
    return build_command(
        CommandType.EVENT, Command.SCAN_DATA, Encoded(EVENT_STATE, start)
    )


def build_save_configuration() -> bytes:
    """Build mEEwriteall: persist parameters to the device EEPROM."""
    return build_command(CommandType.METHOD, Command.SAVE_CONFIGURATION)


def build_start_device() -> bytes:
    """Build Run: leave configuration mode and resume measuring."""
    return build_command(CommandType.METHOD, Command.RUN)

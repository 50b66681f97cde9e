"""Response parsing for device telegrams.

Each answer is decoded by walking a schema with a
:class:`~lms1xx_mcp.protocol.schema.TokenCursor`. Any decode problem is
raised as :class:`~lms1xx_mcp.protocol.errors.MalformedTelegramError`.

Scan telegram layout (``sRA``/``sSN LMDscandata``)::

    type keyword version device serial status status msg_counter scan_counter
    power_up transmission in_status in_status out_status out_status reserved
    scan_frequency measurement_frequency
    encoder_count [position speed] * encoder_count
    channels_16bit [block] * channels_16bit
    channels_8bit  [block] * channels_8bit
    ... (position, name, comment, timestamp, events: not decoded)

    block: tag scale_factor scale_offset start_angle step count sample * count
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.scan import (
    DeviceStatus,
    ScanConfiguration,
    ScanData,
    ScanOutputRange,
    SCAN_CAPACITY,
)
from .commands import Command
from .errors import MalformedTelegramError
from .framing import Frame
from .schema import Base, Field, Literal, Schema, Skip, TokenCursor

READ_ANSWER = "sRA"


def _answer(command: Command) -> tuple[Skip, Literal]:
    # The command type differs between polled answers (sRA) and
    # events (sSN), so it is not checked.
    return (Skip("command_type"), Literal(command.value))


STATUS_SCHEMA: Schema = (
    *_answer(Command.STATUS),
    Field("status", signed=True, checked=False),
)

SCAN_CONFIGURATION_SCHEMA: Schema = (
    *_answer(Command.SCAN_CONFIGURATION),
    Field("scanning_frequency", Base.HEX),
    Skip("sector_count"),
    Field("angle_resolution", Base.HEX),
    Field("start_angle", Base.HEX, signed=True),
    Field("stop_angle", Base.HEX, signed=True),
)

OUTPUT_RANGE_SCHEMA: Schema = (
    *_answer(Command.OUTPUT_RANGE),
    Skip("sector_count"),
    Field("angle_resolution", Base.HEX),
    Field("start_angle", Base.HEX, signed=True),
    Field("stop_angle", Base.HEX, signed=True),
)

SCAN_HEADER_SCHEMA: Schema = (
    *_answer(Command.SCAN_DATA),
    Skip("version_number"),
    Skip("device_number"),
    Skip("serial_number"),
    Skip("device_status"),
    Skip("device_status_extra"),
    Skip("telegram_counter"),
    Skip("scan_counter"),
    Skip("time_since_start_up"),
    Skip("time_of_transmission"),
    Skip("input_status"),
    Skip("input_status_extra"),
    Skip("output_status"),
    Skip("output_status_extra"),
    Skip("reserved"),
    Skip("scanning_frequency"),
    Skip("measurement_frequency"),
)

ENCODER_SCHEMA: Schema = (
    Skip("encoder_position"),
    Skip("encoder_speed"),
)

CHANNEL_HEADER_SCHEMA: Schema = (
    Skip("scale_factor"),
    Skip("scale_offset"),
    Skip("start_angle"),
    Skip("angular_step"),
)

ENCODER_COUNT = Field("encoder_count", bits=16)
CHANNEL_COUNT_16BIT = Field("channels_16bit", bits=8)
CHANNEL_COUNT_8BIT = Field("channels_8bit", bits=8)
SAMPLE_COUNT = Field("sample_count", Base.HEX, bits=16)


@dataclass(frozen=True)
class ScanDataSchema:
    """Numeric base of the sample values per channel bit depth.

    Every observed device revision sends both 16-bit and 8-bit samples in
    hexadecimal. The 8-bit base is kept configurable rather than assumed.
    """

    sample_base_16bit: Base = Base.HEX
    sample_base_8bit: Base = Base.HEX

    def sample_field(self, bits: int) -> Field:
        base = self.sample_base_16bit if bits == 16 else self.sample_base_8bit
        return Field(f"sample{bits}", base, bits=bits)


DEFAULT_SCAN_SCHEMA = ScanDataSchema()


def _decode(frame: Frame, schema: Schema) -> dict[str, int]:
    return TokenCursor(frame.tokens).apply(schema)


def parse_status(frame: Frame) -> DeviceStatus:
    """Parse an ``sRA STlms`` answer.

    Status codes outside the known range map to ``DeviceStatus.UNDEFINED``.
    """
    values = _decode(frame, STATUS_SCHEMA)
    return DeviceStatus.from_code(values["status"])


def parse_scan_configuration(frame: Frame) -> ScanConfiguration:
    """Parse an ``sRA LMPscancfg`` answer."""
    values = _decode(frame, SCAN_CONFIGURATION_SCHEMA)
    return ScanConfiguration(**values)


def parse_scan_output_range(frame: Frame) -> ScanOutputRange:
    """Parse an ``sRA LMPoutputRange`` answer."""
    values = _decode(frame, OUTPUT_RANGE_SCHEMA)
    return ScanOutputRange(**values)


def _read_channel_blocks(
    cursor: TokenCursor, data: ScanData, count_field: Field, sample_field: Field
) -> None:
    block_count = cursor.read(count_field)
    for _ in range(block_count):
        tag = cursor.next("channel tag")
        cursor.apply(CHANNEL_HEADER_SCHEMA)
        sample_count = cursor.read(SAMPLE_COUNT)
        if sample_count > SCAN_CAPACITY:
            raise MalformedTelegramError(
                f"{tag}: {sample_count} samples exceed capacity {SCAN_CAPACITY}"
            )
        tokens = cursor.take(sample_count, f"{tag} sample")

        buf = data.channel(tag)
        if buf is None:
            # Unknown content: consumed to stay aligned, not stored
            continue
        buf.fill(sample_field.decode(t) for t in tokens)


def parse_scan_data(
    frame: Frame,
    into: ScanData | None = None,
    schema: ScanDataSchema = DEFAULT_SCAN_SCHEMA,
) -> ScanData:
    """Parse an ``LMDscandata`` telegram into per-channel samples.

    Args:
        frame: The received scan telegram.
        into: Optional record to reuse. It is reset before decoding, so
            channels missing from this telegram read as empty, and it is
            left reset if decoding fails.
        schema: Numeric bases of the sample values.

    Raises:
        MalformedTelegramError: On a missing or non-numeric field, a count
            larger than the remaining tokens, or more samples than a channel
            can hold.
    """
    data = into if into is not None else ScanData()
    data.reset()

    cursor = TokenCursor(frame.tokens)
    try:
        cursor.apply(SCAN_HEADER_SCHEMA)

        encoder_count = cursor.read(ENCODER_COUNT)
        for _ in range(encoder_count):
            cursor.apply(ENCODER_SCHEMA)

        _read_channel_blocks(
            cursor, data, CHANNEL_COUNT_16BIT, schema.sample_field(16)
        )
        _read_channel_blocks(
            cursor, data, CHANNEL_COUNT_8BIT, schema.sample_field(8)
        )
    except MalformedTelegramError:
        data.reset()
        raise

    return data


# The LMDscandata subscription is answered with its state only; streamed
# scans are decoded with parse_scan_data.
PARSERS = {
    Command.STATUS: parse_status,
    Command.SCAN_CONFIGURATION: parse_scan_configuration,
    Command.OUTPUT_RANGE: parse_scan_output_range,
}


def parse_response(command: Command, frame: Frame):
    """Dispatch a frame to the parser for the command that was issued.

    Returns the parsed model, or the raw Frame for commands whose answer
    carries nothing to decode.
    """
    parser = PARSERS.get(command)
    if parser is None:
        return frame
    return parser(frame)

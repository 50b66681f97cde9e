"""Scan configuration, device status and scan data models.

Angles are integers in 1/10000 degree and the scanning frequency is in
1/100 Hz, exactly as the device reports them. Sample values are raw device
integers; converting them into metres or degrees is left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

# Largest beam count of the LMS1xx family; every channel buffer has this size.
SCAN_CAPACITY = 1082

CHANNEL_NAMES = ("DIST1", "DIST2", "RSSI1", "RSSI2")


class DeviceStatus(IntEnum):
    """Operating state reported by ``sRN STlms``."""

    UNDEFINED = 0
    INITIALISATION = 1
    CONFIGURATION = 2
    IDLE = 3
    ROTATED = 4
    IN_PREPARATION = 5
    READY = 6
    READY_FOR_MEASUREMENT = 7

    @classmethod
    def from_code(cls, code: int) -> DeviceStatus:
        """Map a status code to a state; unknown codes are ``UNDEFINED``."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNDEFINED


class SampleResolution(IntEnum):
    """Bit depth of the remission values in scan telegrams."""

    BITS_8 = 0
    BITS_16 = 1


@dataclass
class ScanConfiguration:
    """Scanning frequency, angular resolution and angular range."""

    scanning_frequency: int = 5000
    angle_resolution: int = 5000
    start_angle: int = -450000
    stop_angle: int = 2250000

    def to_dict(self) -> dict:
        return {
            "scanning_frequency": self.scanning_frequency,
            "angle_resolution": self.angle_resolution,
            "start_angle": self.start_angle,
            "stop_angle": self.stop_angle,
        }


@dataclass
class ScanDataConfiguration:
    """Content of the scan telegrams sent by the device.

    Attributes:
        output_channel: Bit mask of the echo channels to output.
        remission: Whether remission (RSSI) values are output.
        resolution: Bit depth of the remission values.
        encoder: Bit mask of the encoder channels to output.
        position: Whether position values are output.
        device_name: Whether the device name is output.
        timestamp: Whether a timestamp is output.
        output_interval: Output every n-th scan, 1 to 50000.
    """

    output_channel: int = 1
    remission: bool = True
    resolution: SampleResolution = SampleResolution.BITS_16
    encoder: int = 0
    position: bool = False
    device_name: bool = False
    timestamp: bool = False
    output_interval: int = 1

    def to_dict(self) -> dict:
        return {
            "output_channel": self.output_channel,
            "remission": self.remission,
            "resolution": int(self.resolution),
            "encoder": self.encoder,
            "position": self.position,
            "device_name": self.device_name,
            "timestamp": self.timestamp,
            "output_interval": self.output_interval,
        }


@dataclass
class ScanOutputRange:
    """Angular range actually output in scan telegrams."""

    angle_resolution: int = 0
    start_angle: int = 0
    stop_angle: int = 0

    def to_dict(self) -> dict:
        return {
            "angle_resolution": self.angle_resolution,
            "start_angle": self.start_angle,
            "stop_angle": self.stop_angle,
        }


@dataclass
class ChannelBuffer:
    """A fixed-size sample array plus the number of valid samples in it."""

    samples: list[int] = field(default_factory=lambda: [0] * SCAN_CAPACITY)
    length: int = 0

    @property
    def values(self) -> list[int]:
        return self.samples[: self.length]

    def fill(self, values: Iterable[int]) -> None:
        """Replace the contents with ``values``."""
        values = list(values)
        if len(values) > SCAN_CAPACITY:
            raise ValueError(
                f"Channel holds at most {SCAN_CAPACITY} samples, got {len(values)}"
            )
        self.samples[: len(values)] = values
        self.samples[len(values) :] = [0] * (SCAN_CAPACITY - len(values))
        self.length = len(values)

    def reset(self) -> None:
        self.samples[:] = [0] * SCAN_CAPACITY
        self.length = 0

    def __len__(self) -> int:
        return self.length


@dataclass
class ScanData:
    """One scan: distances and remissions for the first and second echo."""

    dist1: ChannelBuffer = field(default_factory=ChannelBuffer)
    dist2: ChannelBuffer = field(default_factory=ChannelBuffer)
    rssi1: ChannelBuffer = field(default_factory=ChannelBuffer)
    rssi2: ChannelBuffer = field(default_factory=ChannelBuffer)

    def channel(self, name: str) -> ChannelBuffer | None:
        """Buffer for a channel tag such as ``DIST1``; ``None`` if unknown."""
        if name not in CHANNEL_NAMES:
            return None
        return getattr(self, name.lower())

    def reset(self) -> None:
        for name in CHANNEL_NAMES:
            self.channel(name).reset()

    def to_dict(self, channels: Iterable[str] = CHANNEL_NAMES) -> dict:
        result = {}
        for name in channels:
            buf = self.channel(name)
            if buf is not None:
                result[name] = {"length": buf.length, "values": buf.values}
        return result

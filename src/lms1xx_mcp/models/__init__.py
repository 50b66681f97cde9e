"""Data models for scan configuration, device status, and scan data."""

from .scan import (
    SCAN_CAPACITY,
    ChannelBuffer,
    DeviceStatus,
    SampleResolution,
    ScanConfiguration,
    ScanData,
    ScanDataConfiguration,
    ScanOutputRange,
)

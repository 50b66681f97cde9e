"""MCP server entry point for SICK LMS1xx laser scanners.

Exposes tools and resources via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .device import LMS1xx
from .models.scan import (
    CHANNEL_NAMES,
    SampleResolution,
    ScanConfiguration,
    ScanData,
    ScanDataConfiguration,
)
from .protocol.errors import InvalidTelegramError, TelegramTimeoutError
from .transport.tcp_connection import DEFAULT_PORT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "lms1xx",
    instructions="MCP server for SICK LMS1xx laser rangefinders",
)

# Global connection state
_device: LMS1xx | None = None
_last_scan: ScanData | None = None


def _get_device() -> LMS1xx:
    """Get the connected scanner, raising if not connected."""
    if _device is None or not _device.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _device


def _error(e: Exception) -> dict[str, Any]:
    if isinstance(e, TelegramTimeoutError):
        return {"error": f"Timeout: {e}", "connected": False}
    if isinstance(e, InvalidTelegramError):
        return {"error": f"Invalid telegram: {e}", "retry": True}
    return {"error": str(e)}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Open a TCP connection to an LMS1xx scanner.

    Args:
        host: Host name or IP address of the scanner.
        port: TCP port (default 2111).
        timeout: Seconds to wait for each response before the link is
                 considered dead.
    """
    global _device
    if _device is not None and _device.connected:
        info = _device.connection.device_info
        return {
            "connected": True,
            "message": "Already connected",
            "host": info.host,
            "port": info.port,
        }

    device = LMS1xx(timeout=timeout)
    try:
        device.connect(host, port)
    except ConnectionError as e:
        return {"connected": False, "error": str(e)}
    _device = device

    result: dict[str, Any] = {"connected": True, "host": host, "port": port}
    try:
        result["status"] = _device.status().name.lower()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        logger.warning("Connected but status query failed: %s", e)
        result.update(_error(e))
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the TCP connection to the scanner."""
    global _device
    if _device is None:
        return {"disconnected": True}
    _device.disconnect()
    _device = None
    return {"disconnected": True}


@mcp.tool()
def login() -> dict[str, Any]:
    """Log in as authorised client, required before changing the configuration."""
    device = _get_device()
    try:
        device.login()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"logged_in": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Query the operating state of the scanner."""
    device = _get_device()
    try:
        status = device.status()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"status": status.name.lower(), "code": int(status)}


# ─── MEASUREMENT TOOLS ───────────────────────────────────────────────

@mcp.tool()
def start_measurements() -> dict[str, Any]:
    """Start the motor and the laser."""
    device = _get_device()
    try:
        device.start_measurements()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"measuring": True}


@mcp.tool()
def stop_measurements() -> dict[str, Any]:
    """Stop the laser and the motor."""
    device = _get_device()
    try:
        device.stop_measurements()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"measuring": False}


@mcp.tool()
def start_device() -> dict[str, Any]:
    """Leave configuration mode and return to measurement mode."""
    device = _get_device()
    try:
        device.start_device()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"running": True}


@mcp.tool()
def scan_continuous(start: bool) -> dict[str, Any]:
    """Start or stop the continuous stream of scan telegrams.

    Args:
        start: True to start streaming, False to stop.
    """
    device = _get_device()
    try:
        device.scan_continuous(start)
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"streaming": start}


@mcp.tool()
def get_scan(channels: list[str] | None = None) -> dict[str, Any]:
    """Receive the next scan from the stream.

    Streaming must be enabled with scan_continuous first. Values are raw
    device integers (distances in mm with the default scaling).

    Args:
        channels: Channels to return (DIST1, DIST2, RSSI1, RSSI2); all by default.
    """
    global _last_scan
    channels = [c.upper() for c in channels] if channels else list(CHANNEL_NAMES)
    unknown = [c for c in channels if c not in CHANNEL_NAMES]
    if unknown:
        return {"error": f"Unknown channels {unknown}. Valid: {list(CHANNEL_NAMES)}"}

    device = _get_device()
    try:
        scan = device.get_data()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    _last_scan = scan
    return {"channels": scan.to_dict(channels)}


# ─── CONFIGURATION TOOLS ─────────────────────────────────────────────

@mcp.tool()
def get_scan_configuration() -> dict[str, Any]:
    """Read scanning frequency (1/100 Hz), resolution and angles (1/10000 degree)."""
    device = _get_device()
    try:
        cfg = device.get_configuration()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return cfg.to_dict()


@mcp.tool()
def set_scan_configuration(
    scanning_frequency: int,
    angle_resolution: int,
    start_angle: int,
    stop_angle: int,
) -> dict[str, Any]:
    """Set scanning frequency and angular range. Requires login.

    Args:
        scanning_frequency: Frequency in 1/100 Hz (e.g. 5000 for 50 Hz).
        angle_resolution: Resolution in 1/10000 degree (e.g. 5000 for 0.5°).
        start_angle: Start angle in 1/10000 degree (e.g. -450000).
        stop_angle: Stop angle in 1/10000 degree (e.g. 2250000).
    """
    cfg = ScanConfiguration(
        scanning_frequency=scanning_frequency,
        angle_resolution=angle_resolution,
        start_angle=start_angle,
        stop_angle=stop_angle,
    )
    device = _get_device()
    try:
        device.set_scan_configuration(cfg)
    except ValueError as e:
        return {"error": str(e)}
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return cfg.to_dict()


@mcp.tool()
def set_scan_data_configuration(
    output_channel: int = 1,
    remission: bool = True,
    resolution_16bit: bool = True,
    encoder: int = 0,
    position: bool = False,
    device_name: bool = False,
    timestamp: bool = False,
    output_interval: int = 1,
) -> dict[str, Any]:
    """Select the content of scan telegrams. Requires login.

    Args:
        output_channel: Echo channel bit mask (1 first echo, 3 both).
        remission: Output remission (RSSI) values.
        resolution_16bit: 16-bit remission values if True, 8-bit otherwise.
        encoder: Encoder channel bit mask (0 for none).
        position: Output position values.
        device_name: Output the device name.
        timestamp: Output a timestamp.
        output_interval: Output every n-th scan (1-50000).
    """
    cfg = ScanDataConfiguration(
        output_channel=output_channel,
        remission=remission,
        resolution=(
            SampleResolution.BITS_16 if resolution_16bit else SampleResolution.BITS_8
        ),
        encoder=encoder,
        position=position,
        device_name=device_name,
        timestamp=timestamp,
        output_interval=output_interval,
    )
    device = _get_device()
    try:
        device.set_scan_data_configuration(cfg)
    except ValueError as e:
        return {"error": str(e)}
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return cfg.to_dict()


@mcp.tool()
def get_scan_output_range() -> dict[str, Any]:
    """Read the angular range output in scan telegrams."""
    device = _get_device()
    try:
        output_range = device.get_scan_output_range()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return output_range.to_dict()


@mcp.tool()
def save_configuration() -> dict[str, Any]:
    """Store the current parameters permanently in the scanner EEPROM."""
    device = _get_device()
    try:
        device.save_configuration()
    except (InvalidTelegramError, TelegramTimeoutError) as e:
        return _error(e)
    return {"saved": True}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("lms1xx://device/status")
def resource_device_status() -> str:
    """Connection state and address."""
    if _device is None or not _device.connected:
        return json.dumps({"connected": False})

    info = _device.connection.device_info
    return json.dumps({"connected": True, "host": info.host, "port": info.port})


@mcp.resource("lms1xx://scan/last")
def resource_last_scan() -> str:
    """Most recent scan received by get_scan."""
    if _last_scan is None:
        return json.dumps({"channels": {}})
    return json.dumps({"channels": _last_scan.to_dict()})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

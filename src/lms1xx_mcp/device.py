"""High-level driver for an LMS1xx laser scanner.

Each method builds a request telegram, writes it, waits for the answer and
decodes it with the parser for that command::

    laser = LMS1xx("192.168.0.1")
    laser.login()
    laser.set_scan_data_configuration(ScanDataConfiguration())
    laser.start_measurements()
    while laser.status() != DeviceStatus.READY_FOR_MEASUREMENT:
        time.sleep(1)
    laser.start_device()
    laser.scan_continuous(True)
    scan = laser.get_data()

Nothing is retried here. An ``InvalidTelegramError`` leaves the connection
usable; a ``TelegramTimeoutError`` means it has been closed.
"""

from __future__ import annotations

import logging

from .models.scan import (
    DeviceStatus,
    ScanConfiguration,
    ScanData,
    ScanDataConfiguration,
    ScanOutputRange,
)
from .protocol.commands import (
    Command,
    build_get_configuration,
    build_get_scan_output_range,
    build_login,
    build_query_status,
    build_save_configuration,
    build_scan_continuous,
    build_set_scan_configuration,
    build_set_scan_data_configuration,
    build_start_device,
    build_start_measurements,
    build_stop_measurements,
)
from .protocol.framing import parse_frame
from .protocol.parser import (
    DEFAULT_SCAN_SCHEMA,
    ScanDataSchema,
    parse_response,
    parse_scan_data,
)
from .transport.tcp_connection import DEFAULT_PORT, DEFAULT_TIMEOUT, TCPConnection

logger = logging.getLogger(__name__)


class LMS1xx:
    """Sequences build, write, read and decode for every device command."""

    def __init__(
        self,
        host: str | None = None,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        connection: TCPConnection | None = None,
        scan_schema: ScanDataSchema = DEFAULT_SCAN_SCHEMA,
    ) -> None:
        self._connection = connection or TCPConnection(timeout=timeout)
        self._scan_schema = scan_schema
        if host is not None:
            self.connect(host, port)

    @property
    def connection(self) -> TCPConnection:
        return self._connection

    def connect(self, host: str, port: int = DEFAULT_PORT) -> None:
        """Connect to the scanner. Does nothing if already connected."""
        self._connection.open(host, port)

    def disconnect(self) -> None:
        self._connection.close()

    @property
    def connected(self) -> bool:
        return self._connection.connected

    def _request(self, command: Command, telegram: bytes):
        frame = parse_frame(self._connection.send_and_receive(telegram))
        return parse_response(command, frame)

    def login(self) -> None:
        """Switch to the authorised client access level."""
        self._request(Command.SET_ACCESS_MODE, build_login())
        logger.debug("Logged in as authorised client")

    def start_measurements(self) -> None:
        """Start the motor and the laser."""
        self._request(Command.START_MEASUREMENT, build_start_measurements())

    def stop_measurements(self) -> None:
        """Stop the laser and the motor."""
        self._request(Command.STOP_MEASUREMENT, build_stop_measurements())

    def status(self) -> DeviceStatus:
        return self._request(Command.STATUS, build_query_status())

    def get_configuration(self) -> ScanConfiguration:
        """Read scanning frequency, resolution and angular range."""
        return self._request(Command.SCAN_CONFIGURATION, build_get_configuration())

    def set_scan_configuration(self, cfg: ScanConfiguration) -> None:
        self._request(Command.SET_SCAN_CONFIGURATION, build_set_scan_configuration(cfg))

    def set_scan_data_configuration(self, cfg: ScanDataConfiguration) -> None:
        """Select the content of the scan telegrams."""
        self._request(
            Command.SCAN_DATA_CONFIGURATION, build_set_scan_data_configuration(cfg)
        )

    def get_scan_output_range(self) -> ScanOutputRange:
        return self._request(Command.OUTPUT_RANGE, build_get_scan_output_range())

    def scan_continuous(self, start: bool) -> None:
        """Start or stop the stream of scan telegrams."""
        self._request(Command.SCAN_DATA, build_scan_continuous(start))
        logger.info("Scan data stream %s", "started" if start else "stopped")

    def get_data(self, into: ScanData | None = None) -> ScanData:
        """Receive the next streamed scan telegram.

        Args:
            into: Optional record to decode into; it is reset first.
        """
        frame = parse_frame(self._connection.read_telegram())
        return parse_scan_data(frame, into=into, schema=self._scan_schema)

    def save_configuration(self) -> None:
        """Persist the current parameters in the device EEPROM."""
        self._request(Command.SAVE_CONFIGURATION, build_save_configuration())

    def start_device(self) -> None:
        """Return to measurement mode after configuration."""
        self._request(Command.RUN, build_start_device())

    def __enter__(self) -> LMS1xx:
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

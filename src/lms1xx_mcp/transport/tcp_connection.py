"""TCP connection to an LMS1xx laser scanner.

The device answers every request with exactly one telegram terminated by
ETX (0x03). Reads are bounded by a deadline: the connection owns a private
asyncio event loop and, for each read, races a delimiter-seeking read
against a timer on that loop. Each read starts from an empty buffer, so bytes
left over from a previous answer are never returned. Callers see a plain
blocking call.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..protocol.errors import InvalidTelegramError, TelegramTimeoutError
from ..protocol.framing import ETX, STX

logger = logging.getLogger(__name__)

DEFAULT_PORT = 2111
DEFAULT_TIMEOUT = 30.0
CONNECT_TIMEOUT = 5.0
MAX_TELEGRAM_SIZE = 262144  # 256 kB, a full scan telegram is well below this
READ_CHUNK_SIZE = 65536


@dataclass
class DeviceInfo:
    """Address of the connected device."""

    host: str = ""
    port: int = DEFAULT_PORT


class TCPConnection:
    """Manages the TCP connection to the scanner.

    Only one request may be outstanding at a time, and a connection must be
    driven from a single thread.

    Usage::

        conn = TCPConnection()
        conn.open("192.168.0.1")
        conn.write(telegram)
        response = conn.read_telegram(timeout=1.0)
        conn.close()
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._connected = False
        self._device_info = DeviceInfo()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def timeout(self) -> float:
        return self._timeout

    def open(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> DeviceInfo:
        """Connect to the scanner. Does nothing if already connected.

        Raises:
            ConnectionError: If the device cannot be reached.
        """
        if self._connected:
            return self._device_info

        loop = asyncio.new_event_loop()
        try:
            reader, writer = loop.run_until_complete(
                asyncio.wait_for(
                    asyncio.open_connection(host, port, limit=MAX_TELEGRAM_SIZE),
                    connect_timeout,
                )
            )
        except (OSError, asyncio.TimeoutError) as e:
            loop.close()
            raise ConnectionError(
                f"Could not connect to LMS1xx at {host}:{port}. Last error: {e!r}"
            ) from e

        self._loop = loop
        self._reader = reader
        self._writer = writer
        self._connected = True
        self._device_info = DeviceInfo(host=host, port=port)

        logger.info("Connected to %s:%d", host, port)
        return self._device_info

    def close(self) -> None:
        """Close the TCP connection."""
        if not self._connected:
            return

        try:
            self._writer.close()
            self._loop.run_until_complete(self._writer.wait_closed())
        except Exception as e:
            logger.warning("Error closing connection: %s", e)
        finally:
            self._loop.close()
            self._loop = None
            self._reader = None
            self._writer = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Send a telegram and wait until it is flushed to the socket.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected or the peer reset the link.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        logger.debug("-> %r", data)
        self._writer.write(data)
        try:
            self._loop.run_until_complete(self._writer.drain())
        except ConnectionError:
            self.close()
            raise
        return len(data)

    def read_telegram(self, timeout: float | None = None) -> bytes:
        """Read one telegram, blocking until ETX arrives or the deadline passes.

        Args:
            timeout: Deadline in seconds; defaults to the connection timeout.

        Returns:
            The telegram bytes, from STX through ETX.

        Raises:
            ConnectionError: If not connected, or the peer closed the stream.
            TelegramTimeoutError: If no ETX arrived in time. The connection
                is closed before this is raised.
            InvalidTelegramError: If the telegram does not start with STX, or
                is larger than ``MAX_TELEGRAM_SIZE``.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")
        if timeout is None:
            timeout = self._timeout

        try:
            data = self._loop.run_until_complete(self._read_until_deadline(timeout))
        except asyncio.TimeoutError:
            logger.warning("No telegram within %.3f s, closing connection", timeout)
            self.close()
            raise TelegramTimeoutError(
                f"No response from device within {timeout} s"
            ) from None
        except asyncio.IncompleteReadError as e:
            self.close()
            raise ConnectionError(
                f"Device closed the connection after {len(e.partial)} bytes"
            ) from e
        except asyncio.LimitOverrunError as e:
            self.close()
            raise InvalidTelegramError(
                f"Telegram exceeds {MAX_TELEGRAM_SIZE} bytes"
            ) from e
        except ConnectionError:
            self.close()
            raise

        logger.debug("<- %r", data[:80])
        if not data.startswith(STX):
            raise InvalidTelegramError(
                f"Response does not start with STX: {data[:16]!r}"
            )
        return data

    async def _read_one(self) -> bytes:
        # Every call collects into its own buffer; whatever follows the first
        # ETX in the same chunk is dropped, not kept for the next call.
        buffer = bytearray()
        while True:
            chunk = await self._reader.read(READ_CHUNK_SIZE)
            if not chunk:
                raise asyncio.IncompleteReadError(bytes(buffer), None)
            end = chunk.find(ETX)
            if end >= 0:
                buffer += chunk[: end + 1]
                if end + 1 < len(chunk):
                    logger.debug("Dropped %d bytes after ETX", len(chunk) - end - 1)
                return bytes(buffer)
            buffer += chunk
            if len(buffer) > MAX_TELEGRAM_SIZE:
                raise asyncio.LimitOverrunError(
                    "Telegram exceeds the size limit", len(buffer)
                )

    async def _read_until_deadline(self, timeout: float) -> bytes:
        read = asyncio.ensure_future(self._read_one())
        deadline = asyncio.ensure_future(asyncio.sleep(timeout))

        done, pending = await asyncio.wait(
            {read, deadline}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        # A telegram that completed in the same iteration as the timer wins
        if read in done:
            return read.result()
        raise asyncio.TimeoutError

    def send_and_receive(self, data: bytes, timeout: float | None = None) -> bytes:
        """Send a request telegram and read the response telegram."""
        self.write(data)
        return self.read_telegram(timeout)

"""Tests for the LMS1xx device driver."""

from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import pytest

from lms1xx_mcp.device import LMS1xx
from lms1xx_mcp.models.scan import (
    DeviceStatus,
    ScanConfiguration,
    ScanData,
    ScanDataConfiguration,
    ScanOutputRange,
)
from lms1xx_mcp.protocol.commands import (
    Command,
    build_get_configuration,
    build_login,
    build_query_status,
    build_scan_continuous,
    build_set_scan_configuration,
)
from lms1xx_mcp.protocol.errors import InvalidTelegramError, TelegramTimeoutError
from lms1xx_mcp.protocol.parser import ScanDataSchema, parse_response
from lms1xx_mcp.protocol.schema import Base
from lms1xx_mcp.transport.tcp_connection import TCPConnection

SCAN = (
    b"\x02sSN LMDscandata 1 1 89A27F 0 0 343 347 27477BA9 2747813B 0 0 7 0 0 1388 168 "
    b"0 1 DIST1 3F800000 00000000 FFF92230 1388 3 10 20 30 "
    b"1 RSSI1 3F800000 00000000 FFF92230 1388 2 64 99 0 0 0 0 0 0\x03"
)


def _device(*responses: bytes) -> tuple[LMS1xx, MagicMock]:
    conn = MagicMock()
    conn.connected = True
    conn.send_and_receive.side_effect = list(responses)
    conn.read_telegram.side_effect = list(responses)
    return LMS1xx(connection=conn), conn


def test_status():
    """status() sends STlms and decodes the answer."""
    laser, conn = _device(b"\x02sRA STlms 7\x03")
    assert laser.status() is DeviceStatus.READY_FOR_MEASUREMENT
    conn.send_and_receive.assert_called_once_with(build_query_status())


def test_login():
    """login() sends SetAccessMode and reads the acknowledgement."""
    laser, conn = _device(b"\x02sAN SetAccessMode 1\x03")
    laser.login()
    conn.send_and_receive.assert_called_once_with(build_login())


def test_get_configuration():
    """get_configuration() decodes the scan configuration answer."""
    laser, conn = _device(b"\x02sRA LMPscancfg 1388 1 1388 FFF92230 225510\x03")
    assert laser.get_configuration() == ScanConfiguration(5000, 5000, -450000, 2250000)
    conn.send_and_receive.assert_called_once_with(build_get_configuration())


def test_set_scan_configuration():
    """set_scan_configuration() sends the encoded configuration."""
    cfg = ScanConfiguration(2500, 2500, 0, 1800000)
    laser, conn = _device(b"\x02sAN mLMPsetscancfg 0 9C4 1 9C4 0 1B7740\x03")
    laser.set_scan_configuration(cfg)
    conn.send_and_receive.assert_called_once_with(build_set_scan_configuration(cfg))


def test_set_scan_configuration_overflow_sends_nothing():
    """A value that does not fit is rejected before anything is written."""
    laser, conn = _device()
    with pytest.raises(ValueError):
        laser.set_scan_configuration(ScanConfiguration(scanning_frequency=-1))
    conn.send_and_receive.assert_not_called()


def test_set_scan_data_configuration():
    """set_scan_data_configuration() writes LMDscandatacfg."""
    laser, conn = _device(b"\x02sWA LMDscandatacfg\x03")
    laser.set_scan_data_configuration(ScanDataConfiguration())
    sent = conn.send_and_receive.call_args[0][0]
    assert sent.startswith(b"\x02sWN LMDscandatacfg ")


def test_get_scan_output_range():
    """get_scan_output_range() decodes the output range answer."""
    laser, _ = _device(b"\x02sRA LMPoutputRange 1 1388 FFF92230 225510\x03")
    assert laser.get_scan_output_range() == ScanOutputRange(5000, -450000, 2250000)


def test_scan_continuous():
    """scan_continuous() subscribes to or unsubscribes from scan events."""
    laser, conn = _device(b"\x02sEA LMDscandata 1\x03", b"\x02sEA LMDscandata 0\x03")
    laser.scan_continuous(True)
    laser.scan_continuous(False)
    assert conn.send_and_receive.call_args_list[0][0][0] == build_scan_continuous(True)
    assert conn.send_and_receive.call_args_list[1][0][0] == build_scan_continuous(False)


def test_get_data():
    """get_data() reads a streamed scan without sending a request."""
    laser, conn = _device(SCAN)
    data = laser.get_data()
    assert data.dist1.values == [0x10, 0x20, 0x30]
    assert data.rssi1.values == [0x64, 0x99]
    conn.send_and_receive.assert_not_called()


def test_get_data_decimal_eight_bit_schema():
    """The scan schema passed to the driver controls the 8-bit sample base."""
    conn = MagicMock()
    conn.read_telegram.return_value = SCAN
    laser = LMS1xx(connection=conn, scan_schema=ScanDataSchema(sample_base_8bit=Base.DEC))
    assert laser.get_data().rssi1.values == [64, 99]


def test_get_data_reuses_record():
    """A record passed to get_data() is reset and refilled."""
    record = ScanData()
    record.dist2.fill([1, 2, 3])
    laser, _ = _device(SCAN)
    assert laser.get_data(into=record) is record
    assert record.dist2.length == 0
    assert record.dist1.length == 3


def test_garbled_answer_is_invalid():
    """A garbled answer raises InvalidTelegramError."""
    laser, _ = _device(b"\x02sRA STlms\x03")
    with pytest.raises(InvalidTelegramError):
        laser.status()


def test_timeout_propagates():
    """Timeouts from the connection reach the caller unchanged."""
    conn = MagicMock()
    conn.send_and_receive.side_effect = TelegramTimeoutError("no answer")
    laser = LMS1xx(connection=conn)
    with pytest.raises(TelegramTimeoutError):
        laser.status()


def test_over_tcp():
    """The driver talks to a device over a real loopback connection."""
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    try:
        with LMS1xx("127.0.0.1", port, timeout=1.0) as laser:
            peer, _ = listener.accept()
            with peer:
                peer.sendall(b"\x02sRA STlms 6\x03")
                assert laser.status() is DeviceStatus.READY
                assert peer.recv(64) == build_query_status()

                peer.sendall(SCAN)
                assert laser.get_data().dist1.length == 3
        assert not laser.connected
    finally:
        listener.close()


def test_disconnect():
    """disconnect() closes the underlying connection."""
    conn = MagicMock(spec=TCPConnection)
    laser = LMS1xx(connection=conn)
    laser.disconnect()
    conn.close.assert_called_once_with()


def test_answers_dispatch_by_command():
    """Answers are decoded by the parser registered for the issued command."""
    laser, _ = _device(b"\x02sRA STlms 7\x03", b"\x02sAN SetAccessMode 1\x03")
    with patch("lms1xx_mcp.device.parse_response", wraps=parse_response) as dispatch:
        laser.status()
        laser.login()
    assert [c.args[0] for c in dispatch.call_args_list] == [
        Command.STATUS,
        Command.SET_ACCESS_MODE,
    ]

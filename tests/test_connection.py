"""Tests for the TCP connection and the deadline-bounded telegram reader."""

from __future__ import annotations

import socket
import threading

import pytest

from lms1xx_mcp.protocol.errors import InvalidTelegramError, TelegramTimeoutError
from lms1xx_mcp.transport.tcp_connection import MAX_TELEGRAM_SIZE, TCPConnection


@pytest.fixture
def link():
    """A connected TCPConnection and the device-side socket of the link."""
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    conn = TCPConnection(timeout=2.0)
    conn.open("127.0.0.1", port)
    peer, _ = listener.accept()
    yield conn, peer
    conn.close()
    peer.close()
    listener.close()


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_open_sets_connected(link):
    """An opened connection reports its address."""
    conn, _ = link
    assert conn.connected
    assert conn.device_info.host == "127.0.0.1"


def test_open_refused():
    """An unreachable device raises ConnectionError."""
    conn = TCPConnection()
    with pytest.raises(ConnectionError):
        conn.open("127.0.0.1", _free_port())
    assert not conn.connected


def test_not_connected():
    """I/O on a closed connection raises ConnectionError."""
    conn = TCPConnection()
    with pytest.raises(ConnectionError):
        conn.write(b"\x02sRN STlms\x03")
    with pytest.raises(ConnectionError):
        conn.read_telegram(0.05)


def test_read_telegram(link):
    """A complete telegram is returned including its delimiters."""
    conn, peer = link
    peer.sendall(b"\x02sRA STlms 7\x03")
    assert conn.read_telegram() == b"\x02sRA STlms 7\x03"
    assert conn.connected


def test_send_and_receive(link):
    """The request reaches the device and its answer is returned."""
    conn, peer = link
    peer.sendall(b"\x02sRA STlms 3\x03")
    assert conn.send_and_receive(b"\x02sRN STlms\x03") == b"\x02sRA STlms 3\x03"
    assert peer.recv(64) == b"\x02sRN STlms\x03"


def test_read_waits_for_late_data(link):
    """A telegram arriving in pieces before the deadline is delivered."""
    conn, peer = link
    peer.sendall(b"\x02sRA STl")
    timer = threading.Timer(0.05, peer.sendall, args=(b"ms 6\x03",))
    timer.start()
    try:
        assert conn.read_telegram(timeout=2.0) == b"\x02sRA STlms 6\x03"
    finally:
        timer.join()


def test_leftover_telegram_dropped(link):
    """Bytes after the first ETX are not returned by the next read."""
    conn, peer = link
    peer.sendall(b"\x02sRA STlms 7\x03\x02sSN stale 1\x03")
    assert conn.read_telegram() == b"\x02sRA STlms 7\x03"

    answer = b"\x02sRA LMPscancfg 9C4 1 9C4 FFF92230 225510\x03"
    peer.sendall(answer)
    assert conn.read_telegram(timeout=1.0) == answer
    assert conn.connected


def test_timeout_disconnects(link):
    """No ETX within the deadline raises a timeout and closes the link."""
    conn, peer = link
    peer.sendall(b"\x02sRA STlms 7")
    with pytest.raises(TelegramTimeoutError):
        conn.read_telegram(timeout=0.05)
    assert not conn.connected


def test_timeout_is_timeout_error(link):
    """A silent peer times out; the error is a TimeoutError."""
    conn, _ = link
    with pytest.raises(TimeoutError):
        conn.read_telegram(timeout=0.05)
    assert not conn.connected


def test_reopen_after_timeout():
    """A timed out connection can be opened again."""
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    conn = TCPConnection()
    try:
        conn.open("127.0.0.1", port)
        first, _ = listener.accept()
        with pytest.raises(TelegramTimeoutError):
            conn.read_telegram(timeout=0.05)
        first.close()

        conn.open("127.0.0.1", port)
        second, _ = listener.accept()
        second.sendall(b"\x02sRA STlms 1\x03")
        assert conn.read_telegram(timeout=1.0) == b"\x02sRA STlms 1\x03"
        second.close()
    finally:
        conn.close()
        listener.close()


def test_garbled_response(link):
    """A response without STX is invalid but not a timeout."""
    conn, peer = link
    peer.sendall(b"sRA STlms 7\x03")
    with pytest.raises(InvalidTelegramError):
        conn.read_telegram(timeout=1.0)
    assert conn.connected

    peer.sendall(b"\x02sRA STlms 7\x03")
    assert conn.read_telegram(timeout=1.0) == b"\x02sRA STlms 7\x03"


def test_peer_closed(link):
    """A peer closing mid-telegram is a connection error."""
    conn, peer = link
    peer.sendall(b"\x02sRA ST")
    peer.close()
    with pytest.raises(ConnectionError):
        conn.read_telegram(timeout=1.0)
    assert not conn.connected


def test_open_twice_is_noop(link):
    """Opening an open connection keeps the existing link."""
    conn, _ = link
    info = conn.device_info
    assert conn.open("10.255.255.1", 1) is info
    assert conn.connected


def _send_ignoring_reset(sock: socket.socket, data: bytes) -> None:
    try:
        sock.sendall(data)
    except OSError:
        pass


def test_oversized_telegram(link):
    """A response growing past the size limit without ETX is invalid."""
    conn, peer = link
    sender = threading.Thread(
        target=_send_ignoring_reset,
        args=(peer, b"\x02" + b"0" * (MAX_TELEGRAM_SIZE + 1)),
    )
    sender.start()
    try:
        with pytest.raises(InvalidTelegramError):
            conn.read_telegram(timeout=2.0)
        assert not conn.connected
    finally:
        peer.close()
        sender.join()

"""Tests for telegram framing."""

import pytest

from lms1xx_mcp.protocol.errors import InvalidTelegramError
from lms1xx_mcp.protocol.framing import ETX, STX, Frame, build_frame, parse_frame


def test_build_frame_delimiters():
    """A built frame is the payload wrapped in STX/ETX."""
    assert build_frame("sRN STlms") == b"\x02sRN STlms\x03"


def test_build_frame_rejects_delimiters():
    """Payloads must not carry the frame delimiters."""
    with pytest.raises(ValueError):
        build_frame("sRN \x03STlms")
    with pytest.raises(ValueError):
        build_frame("\x02sRN")


def test_build_frame_rejects_non_ascii():
    """Only ASCII payloads can be framed."""
    with pytest.raises(ValueError):
        build_frame("sRN STlms°")


def test_roundtrip_parse():
    """Build a frame and parse it back."""
    frame = parse_frame(build_frame("sMN LMCstartmeas"))
    assert frame.payload == "sMN LMCstartmeas"
    assert frame.command_type == "sMN"
    assert frame.command == "LMCstartmeas"


def test_parse_tokens_split_on_single_space():
    """Tokens are split on every space, empty fields included."""
    frame = parse_frame(b"\x02sRA STlms  7\x03")
    assert frame.tokens == ["sRA", "STlms", "", "7"]


def test_parse_missing_stx():
    """A frame that does not start with STX is invalid."""
    with pytest.raises(InvalidTelegramError):
        parse_frame(b"sRA STlms 7\x03")


def test_parse_missing_etx():
    """A frame that does not end with ETX is invalid."""
    with pytest.raises(InvalidTelegramError):
        parse_frame(b"\x02sRA STlms 7")
    with pytest.raises(InvalidTelegramError):
        parse_frame(STX)


def test_parse_embedded_delimiter():
    """Two telegrams glued together are not one telegram."""
    with pytest.raises(InvalidTelegramError):
        parse_frame(b"\x02sRA STlms 7\x03\x02sRA STlms 7\x03")


def test_parse_non_ascii():
    """Non-ASCII payload bytes are an invalid telegram."""
    with pytest.raises(InvalidTelegramError):
        parse_frame(STX + b"sRA \xff" + ETX)


def test_parse_empty_payload():
    """An empty payload is framed correctly, just empty."""
    frame = parse_frame(b"\x02\x03")
    assert frame.payload == ""
    assert frame.command == ""


def test_frame_repr():
    """Frame repr should be readable and bounded for long scans."""
    assert "STlms" in repr(Frame(payload="sRA STlms 7"))
    long_repr = repr(Frame(payload="sSN LMDscandata " + "FFFF " * 500))
    assert "len=" in long_repr
    assert len(long_repr) < 120

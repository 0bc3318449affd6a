"""Tests for frame building and parsing."""

import pytest

from cnet_mcp.exceptions import (
    InvalidArgumentError,
    MalformedFrameError,
    MissingTerminatorError,
)
from cnet_mcp.protocol.framing import (
    END,
    START,
    build_frame,
    describe_frame,
    is_valid_frame,
    parse_frame,
)

READ_BLOCK_FRAME = b"\x0500RSB06%MW10010\x04\x4b"


def test_build_frame_read_block():
    """The sample read-block payload encodes to a fixed 18-byte frame."""
    frame = build_frame("00RSB06%MW10010")
    assert frame == READ_BLOCK_FRAME
    assert len(frame) == 18


def test_build_frame_markers():
    frame = build_frame("A")
    assert frame[0] == START
    assert frame[-2] == END
    assert frame[-1] == START ^ ord("A") ^ END


def test_build_frame_accepts_bytes():
    assert build_frame(b"00RSB06%MW10010") == READ_BLOCK_FRAME


def test_build_frame_empty_payload():
    """An empty payload still yields a 3-byte frame."""
    assert build_frame("") == b"\x05\x04\x01"


def test_build_frame_rejects_non_ascii():
    with pytest.raises(InvalidArgumentError):
        build_frame("温度")


def test_parse_frame_read_block():
    assert parse_frame(READ_BLOCK_FRAME) == "00RSB06%MW10010"


def test_roundtrip():
    for payload in ["00WSS0106%MW10004000A", "X", "00RSS0206%MW10006%MW101"]:
        assert parse_frame(build_frame(payload)) == payload


def test_parse_frame_empty_payload():
    """EOT right after ENQ is an empty payload, not an error."""
    assert parse_frame(b"\x05\x04\x01") == ""


def test_parse_frame_too_short():
    with pytest.raises(MalformedFrameError):
        parse_frame(b"\x05\x04")


def test_parse_frame_wrong_start():
    with pytest.raises(MalformedFrameError):
        parse_frame(b"\x0600RSB\x04\x00")


def test_parse_frame_missing_terminator():
    with pytest.raises(MissingTerminatorError):
        parse_frame(b"\x0500RSB06")


def test_missing_terminator_is_malformed():
    """Callers catching MalformedFrameError also see missing terminators."""
    assert issubclass(MissingTerminatorError, MalformedFrameError)


def test_parse_frame_stops_at_first_eot():
    assert parse_frame(b"\x05AB\x04CD\x04\x00") == "AB"


def test_is_valid_frame():
    assert is_valid_frame(READ_BLOCK_FRAME)
    assert is_valid_frame(build_frame(""))


def test_is_valid_frame_bad_checksum():
    frame = bytearray(READ_BLOCK_FRAME)
    frame[-1] ^= 0xFF
    assert not is_valid_frame(bytes(frame))


def test_is_valid_frame_structure():
    assert not is_valid_frame(b"\x05\x04")
    assert not is_valid_frame(b"\x06\x04\x02")
    assert not is_valid_frame(b"\x05A\x41")


def test_describe_frame():
    hex_dump, text = describe_frame(build_frame("AB"))
    assert hex_dump.startswith("05 41 42 04")
    assert "AB" in text

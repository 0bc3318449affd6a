"""Frame encoder and decoder for the Cnet serial protocol.

Frame layout::

    +-------+------------------+-----+-----+
    |  ENQ  |     Payload      | EOT | BCC |
    | 0x05  | ASCII, variable  | 0x04| 1 B |
    +-------+------------------+-----+-----+

- ENQ / EOT: fixed start and end markers
- BCC: XOR of every byte from ENQ through EOT inclusive

There is no escape mechanism, so payloads must not contain ENQ or EOT.
"""

from __future__ import annotations

from ..exceptions import (
    InvalidArgumentError,
    MalformedFrameError,
    MissingTerminatorError,
)
from ..utils.bcc import bcc

START = 0x05  # ENQ
END = 0x04  # EOT
MIN_FRAME_SIZE = 3  # ENQ + EOT + BCC


def build_frame(payload: str | bytes) -> bytes:
    """Wrap a payload into a complete frame.

    Args:
        payload: ASCII command text, or its raw bytes.

    Returns:
        ``ENQ + payload + EOT + BCC`` ready to write to the port.
    """
    if isinstance(payload, str):
        try:
            payload = payload.encode("ascii")
        except UnicodeEncodeError as e:
            raise InvalidArgumentError(f"Payload must be ASCII: {e}") from e
    body = bytes([START]) + bytes(payload) + bytes([END])
    return body + bytes([bcc(body)])


def parse_frame(frame: bytes) -> str:
    """Extract the payload text from a frame.

    Only the structure is checked here; checksum validation happens when
    frames are recovered from the receive buffer.

    Raises:
        MalformedFrameError: If the frame is shorter than 3 bytes or does
            not start with ENQ.
        MissingTerminatorError: If no EOT follows the ENQ.
    """
    if len(frame) < MIN_FRAME_SIZE or frame[0] != START:
        raise MalformedFrameError(
            f"Not a frame: {bytes(frame[:8]).hex(' ')!r} ({len(frame)} bytes)"
        )
    end = frame.find(END, 1)
    if end < 0:
        raise MissingTerminatorError("No EOT found after ENQ")
    return bytes(frame[1:end]).decode("ascii", errors="replace")


def is_valid_frame(frame: bytes) -> bool:
    """Check that ``frame`` is exactly one well-formed frame with a good BCC."""
    if len(frame) < MIN_FRAME_SIZE:
        return False
    if frame[0] != START or frame[-2] != END:
        return False
    return bcc(frame[:-1]) == frame[-1]


def describe_frame(frame: bytes) -> tuple[str, str]:
    """Return ``(hex, text)`` renderings of a frame for display."""
    hex_dump = bytes(frame).hex(" ").upper()
    text = bytes(frame).decode("ascii", errors="replace")
    return hex_dump, text

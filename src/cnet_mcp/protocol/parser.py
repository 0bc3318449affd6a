"""Response parsing for controller replies.

Replies are returned verbatim: status and error codes inside the payload
are controller specific and left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

from .framing import describe_frame, parse_frame


@dataclass
class ResponseFrame:
    """A reply frame together with its decoded payload."""

    raw: bytes
    payload: str

    @property
    def hex(self) -> str:
        return describe_frame(self.raw)[0]

    def __repr__(self) -> str:
        return f"ResponseFrame(payload={self.payload!r}, raw={self.hex})"


def parse_response(frame: bytes) -> str:
    """Return the payload text of a reply frame."""
    return parse_frame(frame)


def parse_response_frame(frame: bytes) -> ResponseFrame:
    """Wrap a reply frame as a :class:`ResponseFrame`."""
    return ResponseFrame(raw=bytes(frame), payload=parse_response(frame))

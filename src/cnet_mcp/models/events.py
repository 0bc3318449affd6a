"""Received-frame event passed to unsolicited frame listeners."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from ..protocol.framing import describe_frame, parse_frame
from ..exceptions import MalformedFrameError


@dataclass
class FrameEvent:
    """A valid frame that arrived while no request was waiting."""

    raw: bytes
    payload: str
    timestamp: float = field(default_factory=time.time)

    @property
    def hex(self) -> str:
        return describe_frame(self.raw)[0]

    @classmethod
    def from_frame(cls, frame: bytes) -> FrameEvent:
        try:
            payload = parse_frame(frame)
        except MalformedFrameError:
            payload = ""
        return cls(raw=bytes(frame), payload=payload)

    def to_dict(self) -> dict:
        return {
            "length": len(self.raw),
            "hex": self.hex,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

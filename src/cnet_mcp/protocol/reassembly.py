"""Receive buffer that recovers frames from an arbitrarily chunked stream.

Bytes are appended as they arrive from the port. After every append the
buffer is scanned until no further progress can be made:

1. Drop everything before the first ENQ (all of it when there is none).
2. Wait while fewer than 3 bytes remain, while no EOT follows the ENQ, or
   while the BCC byte after the EOT has not arrived.
3. If the BCC matches, emit ``ENQ..BCC`` and remove it from the front.
   Otherwise drop only the leading ENQ and rescan, so a corrupt or false
   start costs exactly one byte.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..exceptions import BufferOverflowError
from ..utils.bcc import bcc
from .framing import END, MIN_FRAME_SIZE, START

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_SIZE = 4096


class FrameBuffer:
    """Thread-safe accumulator yielding checksum-valid frames.

    Usage::

        buf = FrameBuffer(on_frame=handle)
        buf.feed(chunk)  # handle() is called for each complete frame
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_BUFFER_SIZE,
        on_frame: Callable[[bytes], None] | None = None,
    ) -> None:
        if max_size < MIN_FRAME_SIZE:
            raise ValueError(f"max_size must be at least {MIN_FRAME_SIZE}")
        self._buf = bytearray()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._on_frame = on_frame

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def pending_bytes(self) -> int:
        with self._lock:
            return len(self._buf)

    def snapshot(self) -> bytes:
        """Copy of the bytes currently retained."""
        with self._lock:
            return bytes(self._buf)

    def clear(self) -> None:
        with self._lock:
            self._buf.clear()

    def feed(self, data: bytes) -> list[bytes]:
        """Append received bytes and extract every complete frame.

        Frames are handed to ``on_frame`` in arrival order after the buffer
        lock is released, and also returned.

        Raises:
            BufferOverflowError: If more than ``max_size`` bytes remain after
                extraction. The retained bytes are discarded and the frames
                extracted in this pass are delivered first.
        """
        overflow = None
        with self._lock:
            self._buf.extend(data)
            frames = self._extract()
            if len(self._buf) > self._max_size:
                overflow = BufferOverflowError(len(self._buf), self._max_size)
                self._buf.clear()

        if self._on_frame is not None:
            for frame in frames:
                self._on_frame(frame)
        if overflow is not None:
            raise overflow
        return frames

    def _extract(self) -> list[bytes]:
        frames: list[bytes] = []
        buf = self._buf
        while True:
            start = buf.find(START)
            if start < 0:
                if buf:
                    logger.debug("Discarding %d bytes of noise", len(buf))
                buf.clear()
                break
            if start > 0:
                logger.debug("Discarding %d bytes before ENQ", start)
                del buf[:start]

            if len(buf) < MIN_FRAME_SIZE:
                break
            end = buf.find(END, 1)
            if end < 0:
                break
            check_index = end + 1
            if check_index >= len(buf):
                break

            frame = bytes(buf[: check_index + 1])
            if bcc(frame[:-1]) == frame[-1]:
                del buf[: check_index + 1]
                logger.debug("Frame received: %s", frame.hex(" "))
                frames.append(frame)
            else:
                logger.debug(
                    "BCC mismatch (got 0x%02X, expected 0x%02X); resyncing",
                    frame[-1],
                    bcc(frame[:-1]),
                )
                del buf[0]
        return frames

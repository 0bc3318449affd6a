"""High-level Cnet client.

Wires the receive buffer, the request correlator and a serial connection
together and exposes typed read/write operations. Replies are returned as
payload text; ``None`` means no valid reply arrived before the timeout.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Callable

from .exceptions import BufferOverflowError
from .models.events import FrameEvent
from .protocol.commands import (
    DEFAULT_STATION,
    build_read_block,
    build_read_variables,
    build_write_block,
    build_write_values,
    build_write_variables,
    format_station,
)
from .protocol.exchange import DEFAULT_TIMEOUT, ExchangeCorrelator, Transport
from .protocol.framing import build_frame
from .protocol.parser import ResponseFrame, parse_response_frame
from .protocol.reassembly import DEFAULT_MAX_BUFFER_SIZE, FrameBuffer

logger = logging.getLogger(__name__)

UnsolicitedListener = Callable[[FrameEvent], None]


class CnetClient:
    """Request/response client for one controller link.

    Usage::

        conn = SerialConnection(SerialConfig(port="COM6"))
        with CnetClient(conn) as client:
            reply = client.read_block("%MW100", 10)

    The connection only needs ``is_open``, ``write()`` and, to receive,
    ``set_receive_handler()``. Anything else that delivers received bytes
    can call :meth:`feed` directly.
    """

    def __init__(
        self,
        connection: Transport,
        station: str | int = DEFAULT_STATION,
        timeout: float = DEFAULT_TIMEOUT,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
    ) -> None:
        self._connection = connection
        self.station = format_station(station)
        self.timeout = timeout
        self._correlator = ExchangeCorrelator(connection)
        self._buffer = FrameBuffer(max_size=max_buffer_size, on_frame=self._dispatch)
        self._listeners: list[UnsolicitedListener] = []
        self._listeners_lock = threading.Lock()
        if hasattr(connection, "set_receive_handler"):
            connection.set_receive_handler(self.feed)

    @property
    def connection(self) -> Transport:
        return self._connection

    @property
    def is_open(self) -> bool:
        return bool(self._connection.is_open)

    @property
    def busy(self) -> bool:
        """True while a request is waiting for its reply."""
        return self._correlator.pending

    @property
    def buffer(self) -> FrameBuffer:
        return self._buffer

    def open(self) -> None:
        self._connection.open()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> CnetClient:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ─── RECEIVE PATH ─────────────────────────────────────────────────

    def add_unsolicited_listener(self, listener: UnsolicitedListener) -> Callable[[], None]:
        """Register a callable for frames that arrive with no request waiting.

        Listeners run on the receive thread, outside the buffer lock. They may
        call :meth:`feed`, but must not block waiting on a request: its reply
        could only be delivered by the thread running the listener.

        Returns:
            A callable that removes the listener again.
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def feed(self, data: bytes) -> None:
        """Process bytes received from the port.

        Never raises: this runs on the reader thread, outside any caller.
        """
        try:
            self._buffer.feed(data)
        except BufferOverflowError as e:
            logger.warning("%s", e)
        except Exception:
            logger.exception("Failed to process %d received bytes", len(data))

    def _dispatch(self, frame: bytes) -> None:
        if self._correlator.deliver(frame):
            return
        logger.info("Unsolicited frame: %s", frame.hex(" "))
        event = FrameEvent.from_frame(frame)
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Unsolicited frame listener failed")

    # ─── REQUESTS ─────────────────────────────────────────────────────

    def send(self, payload: str | bytes) -> bytes:
        """Frame and write a payload without waiting for a reply.

        Any reply is reported to the unsolicited listeners.

        Returns:
            The frame that was written.
        """
        frame = build_frame(payload)
        self._connection.write(frame)
        return frame

    def exchange(
        self, payload: str | bytes, timeout: float | None = None
    ) -> ResponseFrame | None:
        """Send a payload and wait for the reply frame."""
        response = self._correlator.exchange(
            build_frame(payload), self.timeout if timeout is None else timeout
        )
        if response is None:
            return None
        return parse_response_frame(response)

    def request(self, payload: str | bytes, timeout: float | None = None) -> str | None:
        """Send a payload and return the reply's payload text."""
        response = self.exchange(payload, timeout)
        return None if response is None else response.payload

    def read_variables(
        self,
        addresses: Iterable[str],
        station: str | int | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Read one or more named addresses (RSS)."""
        payload = build_read_variables(addresses, self._station(station))
        return self.request(payload, timeout)

    def write_variables(
        self,
        items: Mapping[str, str] | Iterable[tuple[str, str]],
        station: str | int | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Write text values to named addresses (WSS)."""
        payload = build_write_variables(items, self._station(station))
        return self.request(payload, timeout)

    def write_values(
        self,
        items: Mapping[str, int] | Iterable[tuple[str, int]],
        station: str | int | None = None,
        hex_format: bool = True,
        timeout: float | None = None,
    ) -> str | None:
        """Write numeric values to named addresses (WSS)."""
        payload = build_write_values(items, self._station(station), hex_format)
        return self.request(payload, timeout)

    def read_block(
        self,
        start_address: str,
        count: int,
        station: str | int | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Read ``count`` consecutive words (RSB)."""
        payload = build_read_block(start_address, count, self._station(station))
        return self.request(payload, timeout)

    def write_block(
        self,
        start_address: str,
        values: Iterable[int],
        station: str | int | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Write consecutive words (WSB)."""
        payload = build_write_block(start_address, values, self._station(station))
        return self.request(payload, timeout)

    def _station(self, station: str | int | None) -> str:
        return self.station if station is None else format_station(station)

"""Request/response pairing under a single-outstanding-request rule.

The protocol has no sequence numbers: the next valid frame received after a
request is its response. Only one exchange may wait at a time; a second
caller is rejected rather than queued.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Protocol

from ..exceptions import (
    AlreadyPendingError,
    InvalidArgumentError,
    TransportNotReadyError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0  # seconds


class Transport(Protocol):
    """What the correlator needs from the port."""

    @property
    def is_open(self) -> bool: ...

    def write(self, data: bytes) -> int: ...


class _State(Enum):
    WAITING = "waiting"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class _PendingResponse:
    """One-shot slot for the response to a single request.

    State changes happen under the correlator's lock; once the slot leaves
    ``WAITING`` it never changes again.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._state = _State.WAITING
        self._frame: bytes | None = None

    @property
    def state(self) -> _State:
        return self._state

    def fulfil(self, frame: bytes) -> bool:
        if self._state is not _State.WAITING:
            return False
        self._frame = frame
        self._state = _State.FULFILLED
        self._event.set()
        return True

    def cancel(self) -> bool:
        if self._state is not _State.WAITING:
            return False
        self._state = _State.CANCELLED
        return True

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)

    @property
    def frame(self) -> bytes | None:
        return self._frame


class ExchangeCorrelator:
    """Pairs each request with the next valid frame from the receive buffer.

    ``exchange()`` runs on the caller's thread; ``deliver()`` runs on the
    thread that processes received bytes.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._lock = threading.Lock()
        self._pending: _PendingResponse | None = None

    @property
    def pending(self) -> bool:
        """True while a caller is waiting for a response."""
        with self._lock:
            return self._pending is not None

    def exchange(self, request: bytes, timeout: float = DEFAULT_TIMEOUT) -> bytes | None:
        """Write ``request`` and block until the response frame arrives.

        Args:
            request: Complete frame bytes to send.
            timeout: Seconds to wait for a response.

        Returns:
            The response frame, or ``None`` if nothing valid arrived before
            the timeout.

        Raises:
            TransportNotReadyError: If the port is not open.
            AlreadyPendingError: If another exchange is still waiting.
            InvalidArgumentError: If ``timeout`` is not positive.
        """
        if timeout is None or timeout <= 0:
            raise InvalidArgumentError(f"Timeout must be positive, got {timeout}")
        if not self._transport.is_open:
            raise TransportNotReadyError("Serial port is not open")

        with self._lock:
            if self._pending is not None:
                raise AlreadyPendingError("A request is already waiting for a response")
            # Armed before the write so an early response is not missed.
            pending = self._pending = _PendingResponse()

        try:
            self._transport.write(request)
            if pending.wait(timeout):
                return pending.frame
            with self._lock:
                pending.cancel()
            logger.debug("No response within %.3fs", timeout)
            return None
        finally:
            with self._lock:
                pending.cancel()
                if self._pending is pending:
                    self._pending = None

    def deliver(self, frame: bytes) -> bool:
        """Hand a received frame to the waiting caller.

        Returns:
            True if a caller took the frame, False if nobody was waiting and
            the frame is unsolicited.
        """
        with self._lock:
            pending = self._pending
            if pending is None or not pending.fulfil(frame):
                return False
            self._pending = None
        return True

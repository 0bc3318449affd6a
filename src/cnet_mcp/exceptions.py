"""Exception types raised by the Cnet client.

A response timeout is not an error: exchanges return ``None`` when no
valid frame arrives in time.
"""


class CnetError(Exception):
    """Base class for all Cnet client errors."""


class InvalidArgumentError(CnetError, ValueError):
    """Empty, negative or oversized caller input to a builder or codec."""


class TransportNotReadyError(CnetError, ConnectionError):
    """The serial port is not open."""


class AlreadyPendingError(CnetError):
    """An exchange was started while another one is still waiting."""


class MalformedFrameError(CnetError):
    """A frame is too short or does not begin with ENQ."""


class MissingTerminatorError(MalformedFrameError):
    """No EOT byte follows the ENQ start marker."""


class BufferOverflowError(CnetError):
    """The receive buffer grew past its limit without yielding a frame."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Receive buffer holds {size} bytes, limit is {limit}; discarded"
        )
        self.size = size
        self.limit = limit

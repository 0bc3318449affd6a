"""Serial port connection to the controller's Cnet interface.

The port is a plain duplex byte stream: writes go out as given, and a
background reader thread passes whatever bytes arrive to a receive handler.
No message boundaries are assumed on the receive side.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

import serial

from ..exceptions import TransportNotReadyError

logger = logging.getLogger(__name__)

DEFAULT_PORT = "COM6"
DEFAULT_BAUDRATE = 9600
READ_TIMEOUT = 0.5
WRITE_TIMEOUT = 0.5


@dataclass
class SerialConfig:
    """Port settings (8N1 at 9600 baud by default)."""

    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_NONE
    stopbits: float = serial.STOPBITS_ONE
    timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT


class SerialConnection:
    """Manages the serial port and the thread reading from it.

    Usage::

        conn = SerialConnection(SerialConfig(port="/dev/ttyUSB0"))
        conn.set_receive_handler(on_bytes)
        conn.open()
        conn.write(frame_bytes)
        conn.close()
    """

    def __init__(
        self,
        config: SerialConfig | None = None,
        serial_cls: type | None = None,
    ) -> None:
        self.config = config or SerialConfig()
        self._serial_cls = serial_cls or serial.Serial
        self._serial = None
        self._handler: Callable[[bytes], None] | None = None
        self._reader: threading.Thread | None = None
        self._stop = threading.Event()
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and bool(self._serial.is_open)

    def set_receive_handler(self, handler: Callable[[bytes], None] | None) -> None:
        """Set the callable invoked with each chunk of received bytes."""
        self._handler = handler

    def open(self) -> None:
        """Open the port and start the reader thread.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.is_open:
            return
        cfg = self.config
        try:
            self._serial = self._serial_cls(
                port=cfg.port,
                baudrate=cfg.baudrate,
                bytesize=cfg.bytesize,
                parity=cfg.parity,
                stopbits=cfg.stopbits,
                timeout=cfg.timeout,
                write_timeout=cfg.write_timeout,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            self._serial = None
            raise ConnectionError(f"Could not open {cfg.port}: {e}") from e

        self._stop.clear()
        self._reader = threading.Thread(
            target=self._read_loop, name=f"cnet-reader-{cfg.port}", daemon=True
        )
        self._reader.start()
        logger.info("Opened %s at %d baud", cfg.port, cfg.baudrate)

    def close(self) -> None:
        """Stop the reader thread and close the port."""
        if self._serial is None:
            return
        self._stop.set()
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing %s: %s", self.config.port, e)
        finally:
            reader, self._reader = self._reader, None
            if reader is not None and reader is not threading.current_thread():
                reader.join(timeout=1.0)
            self._serial = None
            logger.info("Closed %s", self.config.port)

    def write(self, data: bytes) -> int:
        """Write raw bytes to the port.

        Raises:
            TransportNotReadyError: If the port is not open.
            serial.SerialException: If the write fails.
        """
        if not self.is_open:
            raise TransportNotReadyError("Serial port is not open")
        with self._write_lock:
            written = self._serial.write(data)
            self._serial.flush()
        logger.debug("Sent %d bytes: %s", len(data), bytes(data).hex(" "))
        return len(data) if written is None else written

    def _read_loop(self) -> None:
        ser = self._serial
        while not self._stop.is_set():
            try:
                waiting = ser.in_waiting
                data = ser.read(waiting or 1)
            except (serial.SerialException, OSError, TypeError, AttributeError) as e:
                # Closing the port from another thread surfaces here too.
                if self._stop.is_set():
                    break
                logger.debug("Read error on %s: %s", self.config.port, e)
                self._stop.wait(self.config.timeout or READ_TIMEOUT)
                continue
            if not data:
                continue
            handler = self._handler
            if handler is None:
                continue
            try:
                handler(bytes(data))
            except Exception:
                logger.exception("Receive handler failed")

"""Transport layer: the serial port carrying Cnet frames."""

from .serial_connection import SerialConfig, SerialConnection

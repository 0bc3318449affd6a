"""Cnet serial link client: framing, reassembly, exchanges and MCP tools."""

from .client import CnetClient
from .transport.serial_connection import SerialConfig, SerialConnection

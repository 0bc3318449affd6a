"""MCP server entry point for a Cnet controller link.

Exposes register read/write tools and link resources via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import argparse
import json
import logging
import threading
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import CnetClient
from .exceptions import CnetError
from .models.events import FrameEvent
from .protocol.commands import DEFAULT_STATION
from .protocol.exchange import DEFAULT_TIMEOUT
from .transport.serial_connection import SerialConfig, SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "cnet-link",
    instructions="Read and write controller registers over a Cnet serial link",
)

UNSOLICITED_HISTORY = 100

# Global connection state
_client: CnetClient | None = None
_defaults = SerialConfig()
_default_station = DEFAULT_STATION
_default_timeout = DEFAULT_TIMEOUT
_unsolicited: deque[FrameEvent] = deque(maxlen=UNSOLICITED_HISTORY)
_unsolicited_lock = threading.Lock()


def _get_client() -> CnetClient:
    """Get the active client, raising if not connected."""
    if _client is None or not _client.is_open:
        raise RuntimeError(
            "Not connected to controller. Use the 'connect' tool first."
        )
    return _client


def _record_unsolicited(event: FrameEvent) -> None:
    with _unsolicited_lock:
        _unsolicited.append(event)


def _reply(operation: str, call, **fields: Any) -> dict[str, Any]:
    """Run a client call and shape its outcome as a tool result."""
    try:
        response = call()
    except CnetError as e:
        return {"error": str(e), **fields}
    if response is None:
        return {"error": "No response from controller", "timed_out": True, **fields}
    return {"operation": operation, "response": response, **fields}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str | None = None,
    baudrate: int | None = None,
    station: str | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Open the serial link to the controller.

    Args:
        port: Serial port name (default from the command line, else COM6).
        baudrate: Baud rate (default 9600, 8N1).
        station: Default station number for requests (default "00").
        timeout: Reply timeout in seconds (default 2.0).
    """
    global _client
    if _client is not None and _client.is_open:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _client.connection.config.port,
        }

    config = SerialConfig(
        port=port or _defaults.port,
        baudrate=baudrate or _defaults.baudrate,
        bytesize=_defaults.bytesize,
        parity=_defaults.parity,
        stopbits=_defaults.stopbits,
        timeout=_defaults.timeout,
        write_timeout=_defaults.write_timeout,
    )
    try:
        client = CnetClient(
            SerialConnection(config),
            station=station or _default_station,
            timeout=timeout or _default_timeout,
        )
    except CnetError as e:
        return {"error": str(e)}
    client.add_unsolicited_listener(_record_unsolicited)
    try:
        client.open()
    except ConnectionError as e:
        return {"error": str(e)}

    _client = client
    return {
        "connected": True,
        "port": config.port,
        "baudrate": config.baudrate,
        "station": client.station,
        "timeout": client.timeout,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial link."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


# ─── REGISTER TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def read_variables(addresses: list[str], station: str | None = None) -> dict[str, Any]:
    """Read one or more named device addresses.

    Args:
        addresses: Device addresses, e.g. ["%MW100", "%MW101"].
        station: Station number (defaults to the connection's station).
    """
    client = _get_client()
    return _reply(
        "read_variables",
        lambda: client.read_variables(addresses, station),
        addresses=addresses,
    )


@mcp.tool()
def write_variables(values: dict[str, str], station: str | None = None) -> dict[str, Any]:
    """Write text values to named device addresses.

    Args:
        values: Mapping of address to value text, e.g. {"%MW100": "00FF"}.
        station: Station number (defaults to the connection's station).
    """
    client = _get_client()
    return _reply(
        "write_variables",
        lambda: client.write_variables(values, station),
        addresses=list(values),
    )


@mcp.tool()
def write_values(
    values: dict[str, int],
    station: str | None = None,
    hex_format: bool = True,
) -> dict[str, Any]:
    """Write numeric values to named device addresses.

    Args:
        values: Mapping of address to integer value.
        station: Station number (defaults to the connection's station).
        hex_format: Send values as 4-digit hex (True) or decimal text (False).
    """
    client = _get_client()
    return _reply(
        "write_values",
        lambda: client.write_values(values, station, hex_format),
        addresses=list(values),
    )


@mcp.tool()
def read_block(start_address: str, count: int, station: str | None = None) -> dict[str, Any]:
    """Read consecutive words starting at an address.

    Args:
        start_address: First address, e.g. "%MW100".
        count: Number of words (0-99).
        station: Station number (defaults to the connection's station).
    """
    client = _get_client()
    return _reply(
        "read_block",
        lambda: client.read_block(start_address, count, station),
        start_address=start_address,
        count=count,
    )


@mcp.tool()
def write_block(start_address: str, values: list[int], station: str | None = None) -> dict[str, Any]:
    """Write consecutive words starting at an address.

    Args:
        start_address: First address, e.g. "%MW100".
        values: Word values (0-65535), sent as 4-digit hex.
        station: Station number (defaults to the connection's station).
    """
    client = _get_client()
    return _reply(
        "write_block",
        lambda: client.write_block(start_address, values, station),
        start_address=start_address,
        count=len(values),
    )


@mcp.tool()
def send_payload(payload: str, wait: bool = True) -> dict[str, Any]:
    """Frame and send a raw command payload, e.g. "00RSB06%MW10010".

    Args:
        payload: ASCII payload including station and command tag.
        wait: Wait for the reply (True) or return right after sending; a
              late reply then shows up in get_unsolicited_frames.
    """
    client = _get_client()
    if wait:
        return _reply("send_payload", lambda: client.request(payload), payload=payload)
    try:
        frame = client.send(payload)
    except CnetError as e:
        return {"error": str(e), "payload": payload}
    return {"sent": True, "payload": payload, "frame": frame.hex(" ").upper()}


@mcp.tool()
def get_unsolicited_frames(clear: bool = False) -> dict[str, Any]:
    """List frames the controller sent while no request was waiting.

    Args:
        clear: Empty the history after reading it.
    """
    with _unsolicited_lock:
        frames = [event.to_dict() for event in _unsolicited]
        if clear:
            _unsolicited.clear()
    return {"frames": frames, "count": len(frames)}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("cnet://link/status")
def resource_link_status() -> str:
    """Connection state and port settings."""
    if _client is None or not _client.is_open:
        return json.dumps({"connected": False})

    config = _client.connection.config
    return json.dumps({
        "connected": True,
        "port": config.port,
        "baudrate": config.baudrate,
        "station": _client.station,
        "timeout": _client.timeout,
        "busy": _client.busy,
        "buffered_bytes": _client.buffer.pending_bytes,
    })


@mcp.resource("cnet://frames/unsolicited")
def resource_unsolicited_frames() -> str:
    """Recent unsolicited frames (hex and payload)."""
    with _unsolicited_lock:
        frames = [event.to_dict() for event in _unsolicited]
    return json.dumps({"frames": frames})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Cnet controller link MCP server")
    ap.add_argument("--port", default=_defaults.port, help="Serial port (default COM6)")
    ap.add_argument("--baudrate", type=int, default=_defaults.baudrate)
    ap.add_argument("--station", default=DEFAULT_STATION)
    ap.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                    help="Reply timeout in seconds")
    ap.add_argument("--log-level", default="INFO")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None):
    """Run the MCP server with stdio transport."""
    global _defaults, _default_station, _default_timeout
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    _defaults = SerialConfig(port=args.port, baudrate=args.baudrate)
    _default_station = args.station
    _default_timeout = args.timeout
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

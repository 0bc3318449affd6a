"""Command types and payload builders.

Every request payload starts with the station number and a three-letter
command tag, followed by length-prefixed fields::

    Read:        <station><RSS><count:2>{<len:2><address>}...
    Write:       <station><WSS><count:2>{<len:2><address><len:2><value>}...
    ReadBlock:   <station><RSB><len:2><start-address><count:2>
    WriteBlock:  <station><WSB><len:2><start-address><count:2><datalen:4><hexwords>

Lengths and counts are zero-padded decimal. Builders return the payload
text; framing is applied separately by :func:`.framing.build_frame`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Union

from ..exceptions import InvalidArgumentError

DEFAULT_STATION = "00"
MAX_WORD = 0xFFFF


class CommandType(str, Enum):
    """Command tags (R/W + SS for named addresses, SB for a block)."""

    READ_VARIABLES = "RSS"
    WRITE_VARIABLES = "WSS"
    READ_BLOCK = "RSB"
    WRITE_BLOCK = "WSB"


Pairs = Union[Mapping[str, object], Iterable[tuple[str, object]]]


def format_station(station: str | int = DEFAULT_STATION) -> str:
    """Render a station number with at least two digits."""
    text = str(station).strip()
    if not text:
        raise InvalidArgumentError("Station must not be empty")
    return text.zfill(2)


def _field(name: str, value: int, width: int = 2) -> str:
    limit = 10**width - 1
    if not 0 <= value <= limit:
        raise InvalidArgumentError(f"{name} must be 0-{limit}, got {value}")
    return f"{value:0{width}d}"


def _text(name: str, value: object) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InvalidArgumentError(f"{name} must not be empty")
    return text


def _prefixed(name: str, value: object) -> str:
    text = _text(name, value)
    return _field(f"{name} length", len(text)) + text


def _pairs(items: Pairs) -> list[tuple[str, object]]:
    if isinstance(items, Mapping):
        return list(items.items())
    pairs = []
    for item in items:
        try:
            address, value = item
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(
                f"Expected (address, value) pairs, got {item!r}"
            ) from e
        pairs.append((address, value))
    return pairs


def build_read_variables(
    addresses: Iterable[str], station: str | int = DEFAULT_STATION
) -> str:
    """Build an RSS payload reading one or more named addresses.

    Args:
        addresses: Device addresses, e.g. ``["%MW100", "%MW101"]``.
        station: Station number of the addressed controller.
    """
    addresses = list(addresses)
    if not addresses:
        raise InvalidArgumentError("At least one address is required")
    parts = [
        format_station(station),
        CommandType.READ_VARIABLES.value,
        _field("Address count", len(addresses)),
    ]
    parts.extend(_prefixed("Address", address) for address in addresses)
    return "".join(parts)


def build_write_variables(items: Pairs, station: str | int = DEFAULT_STATION) -> str:
    """Build a WSS payload writing text values to named addresses.

    Args:
        items: Mapping or sequence of ``(address, value)`` pairs.
        station: Station number of the addressed controller.
    """
    pairs = _pairs(items)
    if not pairs:
        raise InvalidArgumentError("At least one address/value pair is required")
    parts = [
        format_station(station),
        CommandType.WRITE_VARIABLES.value,
        _field("Address count", len(pairs)),
    ]
    for address, value in pairs:
        parts.append(_prefixed("Address", address))
        parts.append(_prefixed("Value", value))
    return "".join(parts)


def format_word(value: int, hex_format: bool = True) -> str:
    """Render a numeric value as 4-digit uppercase hex, or plain decimal."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"Value must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"Value must be non-negative, got {value}")
    if hex_format:
        if value > MAX_WORD:
            raise InvalidArgumentError(f"Value must be 0-0xFFFF, got {value}")
        return f"{value:04X}"
    return str(value)


def build_write_values(
    items: Mapping[str, int] | Iterable[tuple[str, int]],
    station: str | int = DEFAULT_STATION,
    hex_format: bool = True,
) -> str:
    """Build a WSS payload from numeric values.

    Each value is rendered with :func:`format_word` and the result is passed
    to :func:`build_write_variables`.
    """
    pairs = [
        (address, format_word(value, hex_format)) for address, value in _pairs(items)
    ]
    return build_write_variables(pairs, station)


def build_read_block(
    start_address: str, count: int, station: str | int = DEFAULT_STATION
) -> str:
    """Build an RSB payload reading ``count`` words from ``start_address``."""
    return "".join([
        format_station(station),
        CommandType.READ_BLOCK.value,
        _prefixed("Start address", start_address),
        _field("Word count", count),
    ])


def build_write_block(
    start_address: str, values: Iterable[int], station: str | int = DEFAULT_STATION
) -> str:
    """Build a WSB payload writing consecutive words from ``start_address``.

    Args:
        start_address: First device address, e.g. ``"%MW100"``.
        values: Word values 0-0xFFFF, sent as 4-digit uppercase hex.
        station: Station number of the addressed controller.
    """
    values = list(values)
    if not values:
        raise InvalidArgumentError("At least one value is required")
    data = "".join(format_word(value) for value in values)
    return "".join([
        format_station(station),
        CommandType.WRITE_BLOCK.value,
        _prefixed("Start address", start_address),
        _field("Word count", len(values)),
        _field("Data length", len(data), width=4),
        data,
    ])

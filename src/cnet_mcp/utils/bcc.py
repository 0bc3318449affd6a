"""Block check character (BCC) used by the Cnet frame trailer.

The BCC is a single byte: the XOR of every byte from the ENQ start marker
through the EOT end marker inclusive.
"""

from __future__ import annotations


def bcc(data: bytes) -> int:
    """Return the XOR-fold of ``data`` (0 for empty input)."""
    value = 0
    for b in data:
        value ^= b
    return value

"""Protocol layer: framing, reassembly, request correlation, command builders."""

from .framing import build_frame, parse_frame
from .commands import CommandType
from .reassembly import FrameBuffer
from .exchange import ExchangeCorrelator

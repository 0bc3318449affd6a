"""Data models shared by the client and the tool server."""

from .events import FrameEvent

"""Live update broker, channels, and observable values."""

from perch.live.broker import ERROR, PING, RELOAD, UPDATE, LiveUpdateBroker, Sender, format_command
from perch.live.channel import ChannelClosed, LiveChannel, live_stream
from perch.live.values import LiveValue, LiveValueRegistry, Observable

__all__ = [
    "ERROR",
    "PING",
    "RELOAD",
    "UPDATE",
    "ChannelClosed",
    "LiveChannel",
    "LiveUpdateBroker",
    "LiveValue",
    "LiveValueRegistry",
    "Observable",
    "Sender",
    "format_command",
    "live_stream",
]

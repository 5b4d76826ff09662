from cardrelay.core.pcsc.channel import Channel, WebSocketChannel
from cardrelay.core.pcsc.session import PcscSession, StatusChange, WaitOutcome

__all__ = [
    "Channel",
    "PcscSession",
    "StatusChange",
    "WaitOutcome",
    "WebSocketChannel",
]

from cardrelay.core.base.terminal import Message, Result, Terminal, handles

__all__ = ["Message", "Result", "Terminal", "handles"]

"""Exception hierarchy shared by the transport, session, engine and dispatcher."""

from __future__ import annotations


class CardRelayError(Exception):
    """Base class for all cardrelay errors."""


class ConfigError(CardRelayError):
    pass


class TransportError(CardRelayError):
    """The broker channel is unreachable or broke down."""


class ChannelClosed(TransportError):
    """The channel was closed while a call was outstanding."""


class CallTimeout(TransportError):
    """The broker did not answer a call within its deadline."""


class ProtocolError(CardRelayError):
    """The broker reported a non-success result code for a command."""

    def __init__(self, code: int, command: str | None = None) -> None:
        self.code = code & 0xFFFFFFFF
        self.command = command
        super().__init__(self._describe())

    @property
    def name(self) -> str | None:
        from cardrelay.core.pcsc.constants import ERROR_NAMES

        return ERROR_NAMES.get(self.code)

    def _describe(self) -> str:
        text = f"PC/SC error 0x{self.code:08X}"
        if self.name:
            text += f" ({self.name})"
        if self.command:
            text = f"{self.command}: {text}"
        return text

    @classmethod
    def from_code(cls, code: int, command: str | None = None) -> ProtocolError:
        from cardrelay.core.pcsc.constants import NO_CARD_CODES

        if (code & 0xFFFFFFFF) in NO_CARD_CODES:
            return NoCardPresent(code, command)
        return cls(code, command)


class NoCardPresent(ProtocolError):
    """No card is seated, or it went away mid-operation."""


class CardReadError(CardRelayError):
    """UID or ATR could not be read from an otherwise connected card."""


class DispatchError(CardRelayError):
    """The endpoint could not be reached or answered with a non-2xx status."""

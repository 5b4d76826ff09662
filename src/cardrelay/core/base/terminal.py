from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass
class Message:
    """A request from the app layer; subclasses carry the arguments."""


@dataclass
class Result:
    """What a handler hands back for one Message."""


def handles(message_cls: type[Message]) -> Callable:
    """Decorator that registers a coroutine method as handler for a message type."""

    def decorator(method: Callable) -> Callable:
        method._handles_message = message_cls
        return method

    return decorator


class Terminal:
    """Base terminal: the seam between the app layer and the core.

    The app layer sends Message objects via send() and awaits Result
    objects. Subclasses register handlers with the @handles decorator;
    send() dispatches on the message type.
    """

    _handlers: dict[type[Message], str]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        cls._handlers = {}
        for base in reversed(cls.__mro__):
            if hasattr(base, "_handlers"):
                cls._handlers.update(base._handlers)
        for name in vars(cls):
            method = getattr(cls, name)
            if callable(method) and hasattr(method, "_handles_message"):
                cls._handlers[method._handles_message] = name

    async def send(self, message: Message) -> Result:
        """Dispatch a message to the registered handler."""
        handler_name = self._handlers.get(type(message))
        if handler_name is None:
            raise ValueError(f"unsupported message: {message}")
        return await getattr(self, handler_name)(message)

    @property
    def supported_messages(self) -> list[type[Message]]:
        """Return the message types this terminal can handle."""
        return list(self._handlers.keys())

"""Extra log levels for broker traffic and console log setup."""

from __future__ import annotations

import logging

# raw envelopes and APDU bytes
TRACE = 15
# one line per broker command with its result code
PROTOCOL = 18
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(PROTOCOL, "PROTOCOL")

FORMAT = "%(levelname)-8s %(name)s: %(message)s"

_GREEN = "\033[32m"
_RED = "\033[31m"
_RESET = "\033[0m"

_console: logging.Handler | None = None


def colored(text: str, ok: bool) -> str:
    return f"{_GREEN if ok else _RED}{text}{_RESET}"


def configure(verbose: bool = False, quiet: bool = False) -> logging.Handler:
    """Console logging: TRACE with -v, WARNING with -q, PROTOCOL otherwise."""
    global _console
    root = logging.getLogger()
    if _console is not None:
        root.removeHandler(_console)
    _console = logging.StreamHandler()
    _console.setFormatter(logging.Formatter(FORMAT))
    root.addHandler(_console)
    if quiet:
        set_console_level(logging.WARNING)
    else:
        set_console_level(TRACE if verbose else PROTOCOL)
    return _console


def set_console_level(level: int) -> None:
    """Filter the console only; INFO and above always reach the event log."""
    if _console is not None:
        _console.setLevel(level)
    logging.getLogger().setLevel(min(level, logging.INFO))

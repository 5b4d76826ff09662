"""Operator console: dispatches commands to the monitor terminal."""

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
try:
    import readline
except ImportError:
    readline = None  # type: ignore[assignment]
import shlex
from types import ModuleType

import click

from cardrelay.core.smartcard.logging import set_console_level

lg = logging.getLogger(__name__)


class QuitRequested(Exception):
    """Raised when a 'quit' command is entered."""


def parse_command(line: str) -> tuple[str, dict[str, str]] | None:
    """Parse a command line into (name, raw_kwargs).

    Returns None for blank/comment lines. Values are kept as raw strings;
    the command decides how to convert them.
    """
    stripped = line.split("#", 1)[0].strip()
    if not stripped:
        return None
    parts = shlex.split(stripped)
    name = parts[0]
    kwargs: dict[str, str] = {}
    for part in parts[1:]:
        if "=" in part:
            k, v = part.split("=", 1)
            kwargs[k] = v
        else:
            kwargs[part] = "true"
    return name, kwargs


class Runner:
    """Holds the terminal and dispatches console commands."""

    def __init__(self, terminal, command_modules: list[ModuleType]) -> None:
        self._terminal = terminal
        self._matches: list[str] = []

        # Build command table from external command modules
        self._commands: dict[str, callable] = {}
        self._descriptions: dict[str, str] = {}
        self._params: dict[str, list[str]] = {}
        self._settings: dict[str, callable] = {"log": self._set_log}
        self._setting_names: list[str] = []
        self._settings_sink = None
        for mod in command_modules:
            for name in dir(mod):
                if name.startswith("cmd_"):
                    func = getattr(mod, name)
                    cmd_name = name[4:]
                    self._commands[cmd_name] = partial(func, self)
                    self._descriptions[cmd_name] = (func.__doc__ or "").split("\n")[0].strip()
                    params = [p for p in inspect.signature(func).parameters if p != "runner"]
                    if params:
                        self._params[cmd_name] = params
            self._setting_names += getattr(mod, "_setting_names", [])
            self._settings_sink = getattr(mod, "_settings_sink", self._settings_sink)

        # Collect commands from self (help, set)
        for attr in dir(self):
            if attr.startswith("cmd_"):
                method = getattr(self, attr)
                cmd_name = attr[4:]
                self._commands[cmd_name] = method
                self._descriptions[cmd_name] = (method.__doc__ or "").split("\n")[0].strip()

    def echo(self, text: str) -> None:
        click.echo(text)

    # --- Settings ---

    def _set_log(self, value: str) -> bool:
        level = logging.getLevelName(value.upper())
        if not isinstance(level, int):
            lg.warning("unknown log level: %s", value)
            return False
        set_console_level(level)
        self.echo(f"log = {value.upper()}")
        return True

    # --- Commands ---

    async def cmd_help(self) -> bool:
        """List available commands."""
        lines = []
        for name in sorted(self._descriptions):
            lines.append(f"  {name:20s} {self._descriptions[name]}")
        lines.append(f"  {'quit':20s} Stop monitoring and exit.")
        self.echo("Commands:\n" + "\n".join(lines))
        return True

    async def cmd_set(self, **kwargs: str) -> bool:
        """Change settings: set key=value [key=value ...] (log=LEVEL for console verbosity)."""
        if not kwargs:
            self.echo("settings: " + ", ".join(sorted(self._setting_names + list(self._settings))))
            return True
        ok = True
        for k in [k for k in kwargs if k in self._settings]:
            ok = self._settings[k](kwargs.pop(k)) and ok
        if kwargs:
            if self._settings_sink is None:
                lg.warning("unknown setting: %s", ", ".join(kwargs))
                return False
            ok = await self._settings_sink(self, kwargs) and ok
        return ok

    # --- Execution ---

    async def execute(self, line: str) -> bool:
        """Parse and execute one command line. Returns True on success."""
        try:
            parsed = parse_command(line)
        except ValueError as exc:
            lg.error("cannot parse command: %s", exc)
            return False
        if parsed is None:
            return True  # blank or comment
        name, kwargs = parsed
        if name in ("quit", "exit"):
            raise QuitRequested
        cmd = self._commands.get(name)
        if cmd is None:
            lg.error("unknown command: %s", name)
            return False
        try:
            return await cmd(**kwargs)
        except TypeError as exc:
            lg.error("bad arguments for '%s': %s", name, exc)
            return False
        except Exception as exc:
            lg.error("command '%s' failed: %s", name, exc)
            return False

    def _complete(self, text: str, state: int) -> str | None:
        """Readline completer for command names and parameter names."""
        if state == 0:
            buf = readline.get_line_buffer()
            parts = buf.lstrip().split()
            # Complete command name (first word, or empty line)
            if not parts or (len(parts) == 1 and not buf.endswith(" ")):
                names = sorted(self._commands) + ["quit", "exit"]
                self._matches = [n for n in names if n.startswith(text)]
            else:
                cmd = parts[0]
                if cmd == "set":
                    candidates = [k + "=" for k in self._setting_names + list(self._settings)]
                else:
                    candidates = [p + "=" for p in self._params.get(cmd, [])]
                # Exclude params already on the line
                used = {p.split("=", 1)[0] for p in parts[1:]}
                self._matches = [
                    c for c in candidates
                    if c.startswith(text) and c.split("=", 1)[0] not in used
                ]
        return self._matches[state] if state < len(self._matches) else None

    async def run_interactive(self, prompt: str = "cardrelay> ") -> None:
        """Interactive REPL; returns on quit, EOF or Ctrl-C.

        input() runs in a worker thread so detection keeps running while
        the prompt waits.
        """
        if readline is not None:
            readline.set_completer(self._complete)
            readline.set_completer_delims(" ")
            readline.parse_and_bind("tab: complete")
        self.echo("type 'help' for commands, 'quit' to exit")
        while True:
            try:
                line = await asyncio.to_thread(input, prompt)
            except (EOFError, KeyboardInterrupt):
                self.echo("")
                return
            try:
                await self.execute(line)
            except QuitRequested:
                return

# filename : main.py
# created  : 10/16/2026


import asyncio
import logging

from cardrelay.app.commands import COMMAND_MODULES
from cardrelay.app.runner import Runner
from cardrelay.app.settings import LOCAL_BROKER, SettingsStore
from cardrelay.core.detect import DetectionEngine
from cardrelay.core.dispatch import Dispatcher
from cardrelay.core.errors import ConfigError
from cardrelay.core.eventlog import EventLog, EventLogHandler
from cardrelay.core.monitor import MonitorTerminal, UpdateSettingsMessage
from cardrelay.core.pcsc import PcscSession, WebSocketChannel

lg = logging.getLogger(__name__)


def make_session_factory(store: SettingsStore):
    """Build sessions from the settings current at (re)connect time."""

    def factory() -> PcscSession:
        settings = store.current
        if settings.broker_url == LOCAL_BROKER:
            from cardrelay.core.pcsc.local import LocalChannel

            channel = LocalChannel(call_timeout=settings.call_timeout)
        else:
            channel = WebSocketChannel(settings.broker_url, call_timeout=settings.call_timeout)
        return PcscSession(channel)

    return factory


async def health_loop(store: SettingsStore, engine: DetectionEngine, terminal: MonitorTerminal) -> None:
    """Periodic tick: pick up config file edits, then check engine liveness."""
    while True:
        await asyncio.sleep(store.current.health_interval)
        try:
            changes = store.reload_changes()
            if changes:
                await terminal.send(UpdateSettingsMessage(changes=changes))
        except ConfigError as exc:
            lg.error("config reload rejected: %s", exc)
        await engine.health_check()


async def monitor(store: SettingsStore, interactive: bool = False) -> None:
    log = EventLog()
    handler = EventLogHandler(log)
    root = logging.getLogger("cardrelay")
    root.addHandler(handler)
    if root.getEffectiveLevel() > logging.INFO:
        root.setLevel(logging.INFO)

    settings = store.current
    dispatcher = Dispatcher(lambda: store.current, timeout=settings.http_timeout)
    engine = DetectionEngine(make_session_factory(store), dispatcher, store.engine_options())
    terminal = MonitorTerminal(engine, dispatcher, log, store)

    lg.info(
        "monitoring %s in %s mode, client %s",
        settings.broker_url, settings.detection_mode, settings.client_id,
    )
    if not settings.endpoint_url:
        lg.warning("no endpoint configured; cards will be detected but not sent")

    await engine.start()
    health = asyncio.create_task(health_loop(store, engine, terminal), name="health-check")
    try:
        if interactive:
            await Runner(terminal, COMMAND_MODULES).run_interactive()
        else:
            await asyncio.Event().wait()
    finally:
        health.cancel()
        await engine.stop()
        await dispatcher.aclose()
        root.removeHandler(handler)
        lg.debug("stopped")


def main(
    config: str | None = None,
    overrides: dict | None = None,
    interactive: bool = False,
):
    lg.debug("cardrelay v1")
    store = SettingsStore(config, overrides)
    try:
        asyncio.run(monitor(store, interactive=interactive))
    except KeyboardInterrupt:
        lg.debug("interrupted")

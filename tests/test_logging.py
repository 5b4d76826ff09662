import logging

import pytest

from cardrelay.core.eventlog import EventLog, EventLogHandler
from cardrelay.core.smartcard.logging import PROTOCOL, TRACE, configure, set_console_level


@pytest.fixture
def console():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def event_log():
    log = EventLog()
    handler = EventLogHandler(log)
    logger = logging.getLogger("cardrelay")
    logger.addHandler(handler)
    yield log
    logger.removeHandler(handler)


def test_quiet_console_keeps_info_in_event_log(console, event_log):
    handler = configure(quiet=True)
    assert handler.level == logging.WARNING
    logging.getLogger("cardrelay.core.detect.engine").info("card 04:A1 on reader")
    assert [e.message for e in event_log.entries] == ["card 04:A1 on reader"]
    assert event_log.entries[0].level == "info"


def test_console_levels(console):
    assert configure().level == PROTOCOL
    assert configure(verbose=True).level == TRACE
    assert logging.getLogger().level == TRACE


def test_configure_replaces_its_own_handler(console):
    first = configure()
    second = configure()
    root = logging.getLogger()
    assert first not in root.handlers
    assert second in root.handlers


def test_raising_console_level_keeps_event_log(console, event_log):
    handler = configure()
    set_console_level(logging.ERROR)
    assert handler.level == logging.ERROR
    logging.getLogger("cardrelay.core.dispatch.dispatcher").info("POST ok")
    assert len(event_log) == 1

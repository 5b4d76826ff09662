import logging

import pytest

from cardrelay.core.eventlog import MAX_ENTRIES, EventLog, EventLogHandler


def test_capped_at_fifty_entries():
    log = EventLog()
    for n in range(MAX_ENTRIES + 1):
        log.append("info", f"entry {n}")
    entries = log.entries
    assert len(log) == 50
    assert entries[0].message == "entry 1"
    assert entries[-1].message == "entry 50"


def test_clear():
    log = EventLog()
    log.append("warn", "a")
    log.clear()
    assert log.entries == []


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        EventLog().append("debug", "nope")


def test_listeners_see_appends_and_clear():
    log = EventLog()
    seen = []
    unsubscribe = log.subscribe(seen.append)
    entry = log.append("error", "boom", {"code": 1})
    log.clear()
    unsubscribe()
    log.append("info", "unseen")
    assert seen == [entry, None]
    assert entry.detail == {"code": 1}


def test_failing_listener_does_not_break_append():
    log = EventLog()
    log.subscribe(lambda entry: 1 / 0)
    log.append("info", "still recorded")
    assert len(log) == 1


def test_handler_mirrors_info_and_above():
    log = EventLog()
    logger = logging.getLogger("cardrelay.test.eventlog")
    logger.setLevel(logging.DEBUG)
    handler = EventLogHandler(log)
    logger.addHandler(handler)
    try:
        logger.debug("hidden")
        logger.log(18, "protocol chatter")
        logger.info("card %s", "04:A1", extra={"detail": {"uid": "04:A1"}})
        logger.warning("careful")
        logger.error("failed")
        logger.critical("very failed")
    finally:
        logger.removeHandler(handler)

    assert [(e.level, e.message) for e in log.entries] == [
        ("info", "card 04:A1"),
        ("warn", "careful"),
        ("error", "failed"),
        ("error", "very failed"),
    ]
    assert log.entries[0].detail == {"uid": "04:A1"}

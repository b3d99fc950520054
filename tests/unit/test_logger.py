"""Tests for logging setup and structured group events"""
import json
import logging

import pytest

from reti_client.utils.logger import (
    EVENTS_LOGGER_NAME,
    JSONFormatter,
    configure_logging,
    get_logger,
    log_group_event,
)


@pytest.fixture
def isolated_logging():
    """Undo handler and level changes made by configure_logging."""
    root = logging.getLogger()
    events = logging.getLogger(EVENTS_LOGGER_NAME)
    saved = (list(root.handlers), root.level, list(events.handlers), events.propagate)
    yield
    for logger, handlers in ((root, saved[0]), (events, saved[2])):
        for handler in logger.handlers[:]:
            if handler not in handlers:
                logger.removeHandler(handler)
                handler.close()
    root.setLevel(saved[1])
    events.propagate = saved[3]


def test_log_group_event_carries_fields(caplog):
    caplog.set_level(logging.INFO, logger=EVENTS_LOGGER_NAME)

    log_group_event("add_stake", 8_000, 3, tx_ids=["TX0", "TX1", "TX2"], extra={"app_id": 1000})

    record = next(r for r in caplog.records if r.name == EVENTS_LOGGER_NAME)
    assert record.event_type == "GROUP_COMMITTED"
    assert record.operation == "add_stake"
    assert record.fee == 8_000
    assert record.txn_count == 3
    assert record.tx_ids == ["TX0", "TX1", "TX2"]
    assert record.app_id == 1000


def test_json_formatter_includes_event_fields():
    record = logging.LogRecord(EVENTS_LOGGER_NAME, logging.INFO, "", 0, "committed", (), None)
    record.operation = "claim_tokens"
    record.fee = 9_000

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "committed"
    assert data["operation"] == "claim_tokens"
    assert data["fee"] == 9_000
    assert "tx_ids" not in data


def test_group_events_are_written_as_json_lines(tmp_path, isolated_logging):
    configure_logging(console=False, events_file="events.jsonl", directory=tmp_path)

    log_group_event("remove_stake", 4_000, 3, tx_ids=["TX0", "TX1", "TX2"])
    log_group_event("claim_tokens", 9_000, 9)
    for handler in logging.getLogger(EVENTS_LOGGER_NAME).handlers:
        handler.flush()

    lines = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [event["operation"] for event in events] == ["remove_stake", "claim_tokens"]
    assert events[0]["fee"] == 4_000
    assert events[0]["tx_ids"] == ["TX0", "TX1", "TX2"]
    assert events[1]["txn_count"] == 9


def test_file_logging_captures_client_loggers(tmp_path, isolated_logging):
    client_logger = get_logger("reti_client.tests")
    configure_logging(level="DEBUG", console=False, file="client.log", directory=tmp_path)
    configure_logging(level="DEBUG", console=False, file="client.log", directory=tmp_path)

    client_logger.debug("dry run done")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = (tmp_path / "client.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert "DEBUG" in lines[0]
    assert "dry run done" in lines[0]


def test_unknown_level_is_refused(isolated_logging):
    with pytest.raises(ValueError):
        configure_logging(level="LOUD", console=False)

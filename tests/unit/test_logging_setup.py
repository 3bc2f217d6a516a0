"""Unit tests for logging configuration and the logging event sink."""

import logging

import pytest

from hybridapi.application.interfaces import OperationEvent
from hybridapi.domain.exceptions import NotFoundError
from hybridapi.infrastructure.logging.log_config import _CATEGORY_MAP, _parse_level, setup_logging
from hybridapi.infrastructure.logging.logging_event_sink import EVENTS_LOGGER, LoggingEventSink

from tests.support.fakes import make_settings


@pytest.fixture
def restore_levels():
    names = ["", *(name for names in _CATEGORY_MAP.values() for name in names)]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_setup_logging_applies_category_levels(restore_levels):
    setup_logging(make_settings(log_level="WARNING", log_level_sql="ERROR", log_level_events="DEBUG"))
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR
    assert logging.getLogger("hybridapi.events").level == logging.DEBUG
    assert logging.getLogger("hybridapi.infrastructure.http").level == logging.INFO


@pytest.mark.parametrize("raw, expected", [("debug", logging.DEBUG), ("Error", logging.ERROR), ("loud", logging.INFO)])
def test_parse_level(raw, expected):
    assert _parse_level(raw) == expected


@pytest.mark.parametrize("colored", [True, False])
def test_event_sink_levels(caplog, colored):
    sink = LoggingEventSink(colored=colored)
    with caplog.at_level(logging.DEBUG, logger=EVENTS_LOGGER):
        sink.operation_started(OperationEvent("find", "product", mode="remote_only", detail={"identity": "1"}))
        sink.operation_completed(OperationEvent("find", "product", mode="remote_only", source="remote", duration_ms=3.2))
        sink.operation_failed(OperationEvent("find", "product", error=NotFoundError("product", 1)))
        sink.operation_failed(OperationEvent("find", "product", error=RuntimeError("bug")))

    levels = [record.levelno for record in caplog.records if record.name == EVENTS_LOGGER]
    assert levels == [logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR]
    assert "find product" in caplog.records[0].getMessage()
    assert "3.2ms" in caplog.records[1].getMessage()

"""Tests for structured logging and timing helpers."""
import json
import logging

from osm_areas.utils.logging import LOGGER_NAME, log_error, log_structured
from osm_areas.utils.timing import Timer, time_function


def _entries(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == LOGGER_NAME]


def test_log_structured_emits_json(caplog):
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        log_structured("warning", "Skipping row", area_id=7)

    entry = _entries(caplog)[0]
    assert entry["level"] == "WARNING"
    assert entry["message"] == "Skipping row"
    assert entry["area_id"] == 7
    assert "timestamp" in entry
    assert caplog.records[0].levelno == logging.WARNING


def test_log_error_includes_type_and_context(caplog):
    try:
        raise ValueError("bad polygon")
    except ValueError as e:
        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            log_error(e, {"file": "areas.geojson"})

    entry = _entries(caplog)[0]
    assert entry["message"] == "bad polygon"
    assert entry["error_type"] == "ValueError"
    assert entry["file"] == "areas.geojson"
    assert "Traceback" in entry["traceback"]


def test_timer_records_elapsed(caplog):
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        with Timer("search", query="kallio") as timer:
            pass

    assert timer.elapsed >= 0
    entry = _entries(caplog)[0]
    assert entry["operation"] == "search"
    assert entry["query"] == "kallio"


def test_time_function_keeps_result(caplog):
    @time_function
    def add(a, b):
        return a + b

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        assert add(2, 3) == 5

    assert _entries(caplog)[0]["function"] == "add"
    assert add.__name__ == "add"

import logging

import orjson

from mintscope import jsonutil
from mintscope.logging_utils import JsonFormatter, setup_stdout_logging, warn_once_per


def test_json_formatter_includes_extras() -> None:
    record = logging.LogRecord("mintscope.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    record.mint = "abc"
    payload = orjson.loads(JsonFormatter().format(record))

    assert payload["msg"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["mint"] == "abc"
    assert payload["ts"].endswith("Z")


def test_setup_stdout_logging_reuses_handler() -> None:
    root = logging.getLogger()
    previous_level = root.level
    try:
        first = setup_stdout_logging(level="warning")
        second = setup_stdout_logging(level=logging.DEBUG, json=True)
        assert first is second
        assert root.handlers.count(first) == 1
        assert isinstance(first.formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.removeHandler(first)
        root.setLevel(previous_level)


def test_warn_once_per_throttles(caplog) -> None:
    logger = logging.getLogger("mintscope.test.throttle")
    with caplog.at_level(logging.WARNING, logger="mintscope.test.throttle"):
        assert warn_once_per(5, "throttle-test", "queue full %d", 1, logger=logger) is True
        assert warn_once_per(5, "throttle-test", "queue full %d", 2, logger=logger) is False
    assert [r.getMessage() for r in caplog.records] == ["queue full 1"]


def test_jsonutil_round_trips_and_indents() -> None:
    text = jsonutil.dumps({"b": 1, "a": [1, 2]}, indent=2, sort_keys=True)
    assert text.startswith('{\n  "a"')
    assert jsonutil.loads(text) == {"a": [1, 2], "b": 1}
    assert jsonutil.loads(b'{"x": null}') == {"x": None}

import json
import logging

from core.logger import JsonFormatter, LoggerService, TextFormatter

from conftest import make_settings


def record_with(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="vision.stream",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Stream completed",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_merges_extra_fields():
    formatter = JsonFormatter(make_settings())

    line = json.loads(
        formatter.format(record_with(request_id="req-1", provider_id="bigmodel", elapsed_ms=12))
    )

    assert line["message"] == "Stream completed"
    assert line["level"] == "INFO"
    assert line["request_id"] == "req-1"
    assert line["provider_id"] == "bigmodel"
    assert line["elapsed_ms"] == 12
    assert "lineno" not in line


def test_json_formatter_tolerates_unserializable_extra():
    formatter = JsonFormatter(make_settings())

    line = json.loads(formatter.format(record_with(payload=object())))

    assert line["payload"] == "<non-serializable: object>"


def test_text_formatter_appends_extra():
    formatter = TextFormatter(make_settings())

    line = formatter.format(record_with(request_id="req-2"))

    assert "INFO - vision.stream - Stream completed" in line
    assert "'request_id': 'req-2'" in line


def test_logger_service_picks_configured_format():
    service = LoggerService(make_settings(LOG_FORMAT="text"))

    logger = service.get_logger("tests.logger.text")

    assert isinstance(logger.handlers[0].formatter, TextFormatter)
    assert service.get_logger("tests.logger.text") is logger
    assert len(logger.handlers) == 1

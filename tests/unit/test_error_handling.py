"""
Error Handling and Logging Tests
================================

Tests for the exception hierarchy and the logging helpers.
"""

import json
import logging
from unittest.mock import Mock

import pytest

from feedpress.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    FeedPressError,
    InvalidInputError,
    ProcessingError,
    ValidationError,
    get_user_friendly_message,
    handle_exception,
)
from feedpress.utils.logging import (
    PerformanceLogger,
    ConsoleFormatter,
    StructuredFormatter,
    entry_context,
    get_logger_for_component,
    setup_logger,
)


class TestExceptionHierarchy:
    """Test exception classes."""

    def test_base_error(self):
        error = FeedPressError("boom", error_code=ErrorCode.CONTENT_INVALID, context={"k": "v"})

        assert str(error) == "[P001] boom"
        assert error.to_dict() == {
            "error_type": "FeedPressError",
            "error_code": "P001",
            "error_message": "[P001] boom",
            "user_message": "boom",
            "context": {"k": "v"},
            "recoverable": False,
        }

    def test_configuration_error(self):
        error = ConfigurationError("bad value", config_key="assembly")

        assert error.error_code == ErrorCode.CONFIG_INVALID
        assert error.context["config_key"] == "assembly"
        assert error.user_message == "Configuration error: bad value"

    def test_processing_errors_are_recoverable(self):
        error = ProcessingError("empty body", article_id="a-1", context={"stage": "assembly"})

        assert error.recoverable is True
        assert error.error_code == ErrorCode.CONTENT_INVALID
        assert error.context == {"stage": "assembly", "article_id": "a-1"}
        assert error.user_message == "Article processing failed"

    def test_explicit_arguments_override_defaults(self):
        error = ConfigurationError(
            "broken.json is not valid JSON",
            error_code=ErrorCode.CONFIG_PARSE_ERROR,
            user_message="Could not parse broken.json",
        )

        assert str(error) == "[C003] broken.json is not valid JSON"
        assert error.user_message == "Could not parse broken.json"

    def test_invalid_input_is_a_type_error(self):
        error = InvalidInputError("item must be a mapping", field_name="item")

        assert isinstance(error, ValidationError)
        assert isinstance(error, TypeError)
        assert error.error_code == ErrorCode.VALIDATION_INVALID_TYPE
        assert error.recoverable is False
        assert error.user_message == "Invalid item: item must be a mapping"

    def test_invalid_input_caught_as_type_error(self):
        with pytest.raises(TypeError):
            raise InvalidInputError("nope")


class TestHandleException:
    """Test conversion of generic exceptions."""

    def test_feedpress_error_passes_through(self):
        logger = Mock()
        error = InvalidInputError("bad", field_name="item")

        assert handle_exception(error, logger, "process_entry") is error
        logger.error.assert_called_once()

    def test_value_error_becomes_processing_error(self):
        logger = Mock()
        result = handle_exception(ValueError("not a number"), logger, "parse", {"index": 3})

        assert isinstance(result, ProcessingError)
        assert result.recoverable is False
        assert result.context["index"] == 3
        assert result.context["operation"] == "parse"
        assert result.context["original_exception_type"] == "ValueError"

    def test_memory_error(self):
        result = handle_exception(MemoryError(), Mock(), "assemble")
        assert result.error_code == ErrorCode.SYSTEM_MEMORY_ERROR

    def test_unknown_error(self):
        result = handle_exception(RuntimeError("odd"), Mock(), "select")
        assert type(result) is FeedPressError
        assert result.recoverable is True

    def test_user_friendly_message(self):
        assert get_user_friendly_message(ConfigurationError("x")) == "Configuration error: x"
        assert get_user_friendly_message(KeyError("x")).startswith("An unexpected error occurred")


class TestLogging:
    """Test logging helpers."""

    def test_component_logger(self):
        adapter = get_logger_for_component("pipeline", feed_url="https://e.com/feed")

        assert adapter.logger.name == "feedpress.pipeline"
        assert adapter.extra == {"component": "pipeline", "feed_url": "https://e.com/feed"}

        msg, kwargs = adapter.process("hello", {"extra": {"article_id": "a"}})
        assert kwargs["extra"] == {
            "component": "pipeline",
            "feed_url": "https://e.com/feed",
            "article_id": "a",
        }

    def test_structured_formatter(self):
        record = logging.LogRecord(
            "feedpress.test", logging.WARNING, __file__, 10, "Feed item %s", ("missing",), None
        )
        record.feed_url = "https://e.com/feed"

        data = json.loads(StructuredFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["logger"] == "feedpress.test"
        assert data["message"] == "Feed item missing"
        assert data["extra"] == {"feed_url": "https://e.com/feed"}

    def test_entry_context(self):
        record = logging.LogRecord("feedpress.x", logging.INFO, __file__, 1, "msg", (), None)
        assert entry_context(record) == ""

        record.component = "pipeline"
        record.article_id = "guid-1"
        assert entry_context(record) == "[pipeline guid-1] "

    def test_console_formatter(self):
        record = logging.LogRecord(
            "feedpress.pipeline", logging.WARNING, __file__, 1, "Skipped %d", (2,), None
        )
        record.component = "pipeline"

        line = ConsoleFormatter().format(record)

        assert "WARNING" in line
        assert line.endswith("feedpress.pipeline [pipeline] Skipped 2")

    def test_setup_logger_does_not_stack_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "test.log"
        setup_logger("feedpress.test_setup", log_file=str(log_file), console=True)
        logger = setup_logger("feedpress.test_setup", log_file=str(log_file), console=True)

        assert len(logger.handlers) == 2
        assert log_file.parent.is_dir()

        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_performance_logger_success(self):
        logger = Mock()
        with PerformanceLogger(logger, "batch", feed_id="1") as perf:
            pass

        assert perf.duration is not None
        logger.info.assert_called_once()
        assert logger.info.call_args.kwargs["extra"]["success"] is True

    def test_performance_logger_failure(self):
        logger = Mock()
        with pytest.raises(RuntimeError):
            with PerformanceLogger(logger, "batch"):
                raise RuntimeError("fail")

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["extra"]["success"] is False

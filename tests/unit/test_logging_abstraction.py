"""
Unit tests for the logging layer.

Covers both formatters, zone context lifting and package handler setup.
"""

import json
import logging
from pathlib import Path

import pytest

from kumo_controller.correlation import correlation_context
from kumo_controller.logging_abstraction import (
    PACKAGE_LOGGER,
    HumanReadableFormatter,
    JSONFormatter,
    KumoLogger,
    configure_logging,
    get_logger,
)


def make_record(context: dict[str, object] | None = None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="kumo_controller.client",
        level=logging.INFO,
        pathname=__file__,
        lineno=42,
        msg="%s changed",
        args=("Den",),
        exc_info=None,
    )
    if context is not None:
        record.kumo_context = context
    return record


@pytest.fixture
def restore_logging():
    yield
    _ = configure_logging()


class TestJSONFormatter:
    def test_zone_keys_are_top_level(self):
        with correlation_context("execute") as corr_id:
            output = JSONFormatter().format(
                make_record({"serial": "2534P0001", "transport": "local", "attempt": 1}),
            )

        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["message"] == "Den changed"
        assert data["correlation_id"] == corr_id
        assert data["serial"] == "2534P0001"
        assert data["transport"] == "local"
        assert data["context"] == {"attempt": 1}

    def test_no_context_key_without_extra(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert "context" not in data
        assert "serial" not in data
        assert data["correlation_id"] is None


class TestHumanReadableFormatter:
    def test_renders_zone_and_context(self):
        with correlation_context("update") as corr_id:
            output = HumanReadableFormatter().format(
                make_record({"serial": "2534P0001", "transport": "remote", "attempt": 2}),
            )

        assert f"[{corr_id}] 2534P0001@remote > Den changed" in output
        assert output.endswith("| attempt=2")

    def test_serial_only(self):
        output = HumanReadableFormatter().format(make_record({"serial": "2534P0001"}))

        assert "] 2534P0001 > Den changed" in output

    def test_placeholder_without_correlation_id(self):
        output = HumanReadableFormatter().format(make_record())

        assert "[-] > Den changed" in output
        assert "|" not in output


class TestKumoLogger:
    def test_extra_becomes_record_context(self):
        adapter = KumoLogger(logging.getLogger("kumo_controller.client"))

        _, kwargs = adapter.process("msg", {"extra": {"serial": "S1"}})

        assert kwargs == {"extra": {"kumo_context": {"serial": "S1"}}}

    def test_no_extra_left_untouched(self):
        adapter = KumoLogger(logging.getLogger("kumo_controller.client"))

        _, kwargs = adapter.process("msg", {"exc_info": True})

        assert kwargs == {"exc_info": True}

    def test_get_logger_wraps_named_logger(self):
        logger = get_logger("kumo_controller.session")

        assert isinstance(logger, KumoLogger)
        assert logger.logger.name == "kumo_controller.session"


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    def test_human_only(self):
        package = configure_logging(log_format="human", human_output="stderr")

        assert package.name == PACKAGE_LOGGER
        assert len(package.handlers) == 1
        assert isinstance(package.handlers[0].formatter, HumanReadableFormatter)

    def test_unknown_format_falls_back_to_human(self):
        package = configure_logging(log_format="xml")

        assert [type(h.formatter) for h in package.handlers] == [HumanReadableFormatter]

    def test_reconfigure_replaces_handlers(self):
        _ = configure_logging(log_format="both")
        package = configure_logging(log_format="human")

        assert len(package.handlers) == 1

    def test_level(self):
        package = configure_logging(level=logging.DEBUG)

        assert package.level == logging.DEBUG

    def test_json_lines_to_file(self, tmp_path: Path):
        json_file = tmp_path / "logs" / "kumo.jsonl"
        package = configure_logging(log_format="both", json_file=json_file, human_output="stderr")

        get_logger("kumo_controller.session").info(
            "token refreshed",
            extra={"serial": "2534P0001", "transport": "remote", "expires_in": 1200},
        )
        for handler in package.handlers:
            handler.flush()

        assert len(package.handlers) == 2
        data = json.loads(json_file.read_text().strip())
        assert data["message"] == "token refreshed"
        assert data["serial"] == "2534P0001"
        assert data["context"] == {"expires_in": 1200}

    def test_human_output_to_file(self, tmp_path: Path):
        log_file = tmp_path / "kumo.log"
        package = configure_logging(log_format="human", human_output=log_file)

        get_logger("kumo_controller.client").warning("zone gone", extra={"serial": "S1", "transport": "local"})
        package.handlers[0].flush()

        assert "WARNING" in log_file.read_text()
        assert "S1@local > zone gone" in log_file.read_text()

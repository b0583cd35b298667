"""Unit tests for kubeone_e2e.shared.logging module."""

import json
import logging

import pytest
import structlog

from kubeone_e2e.shared.logging import bound_run_context, configure_logging, get_logger


@pytest.fixture
def restore_logging():
    """Undo configure_logging side effects on the root logger and structlog."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_lines_with_run_context(self, tmp_path, restore_logging):
        log_file = tmp_path / "run.log"
        configure_logging("info", log_file=log_file, json_output=True)

        with bound_run_context(scenario="upgrade_containerd", infra="aws_default"):
            get_logger("kubeone_e2e.test").info("scenario started", versions="1.0, 1.1")
        get_logger("kubeone_e2e.test").debug("filtered out")

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["event"] == "scenario started"
        assert event["scenario"] == "upgrade_containerd"
        assert event["infra"] == "aws_default"
        assert event["level"] == "info"

    def test_http_client_logs_are_quieted(self, restore_logging):
        configure_logging("debug")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG

"""
Tests for logging setup.
"""

import logging

from ops.logging import setup_logging


class TestSetupLogging:
    def test_creates_log_file(self, tmp_path):
        log_path = tmp_path / "logs" / "monitor.log"

        setup_logging(str(log_path), "info")
        logging.info("pipeline started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_path.exists()
        assert "pipeline started" in log_path.read_text()
        assert logging.getLogger().level == logging.INFO

    def test_quiet_loggers_held_at_warning(self, tmp_path):
        setup_logging(str(tmp_path / "monitor.log"), "DEBUG", quiet=["uvicorn.access"])

        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG

"""Unit tests for configure_logging."""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from fleetmon.logger import configure_logging


@pytest.fixture
def logger_name():
    name = "fleetmon_logger_test"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestConfigureLogging:

    def test_handlers_installed(self, tmp_path, logger_name):
        """Test a rotating file handler and a console handler are attached."""
        logger = configure_logging(str(tmp_path), level="debug", name=logger_name)

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
        assert len(logger.handlers) == 2

        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "server.log").read_text()

    def test_configure_is_idempotent(self, tmp_path, logger_name):
        configure_logging(str(tmp_path), name=logger_name)
        logger = configure_logging(str(tmp_path), name=logger_name)

        assert len(logger.handlers) == 2

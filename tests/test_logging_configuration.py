"""
Tests for logging configuration: run logger handlers and HTTP library verbosity.
"""
import io
import logging
import pytest
from logging.handlers import RotatingFileHandler
from src.config.logging_config import PACKAGE_LOGGER_NAME, setup_logging


@pytest.fixture
def logger_name(request):
    """Unique logger name per test so handlers never leak between tests."""
    name = f"test_run_{request.node.name}"
    yield name
    for logger_to_clear in (logging.getLogger(name), logging.getLogger(PACKAGE_LOGGER_NAME)):
        for handler in list(logger_to_clear.handlers):
            logger_to_clear.removeHandler(handler)
            handler.close()
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


class TestLoggingConfiguration:
    """Test setup_logging."""

    def test_console_only_without_log_dir(self, logger_name):
        run_logger = setup_logging(level="INFO", name=logger_name)

        assert run_logger.level == logging.INFO
        assert run_logger.propagate is False
        assert len(run_logger.handlers) == 1
        assert not isinstance(run_logger.handlers[0], RotatingFileHandler)

    def test_unknown_level_falls_back_to_info(self, logger_name):
        assert setup_logging(level="LOUD", name=logger_name).level == logging.INFO

    def test_file_handlers_created(self, logger_name, tmp_path):
        """Test combined.log gets everything and error.log only errors."""
        log_dir = tmp_path / "logs"
        run_logger = setup_logging(level="DEBUG", log_dir=str(log_dir), name=logger_name)

        run_logger.info("Imported conversation c1")
        run_logger.error("Error processing conversation c2")
        for handler in run_logger.handlers:
            handler.flush()

        combined = (log_dir / "combined.log").read_text(encoding="utf-8")
        errors = (log_dir / "error.log").read_text(encoding="utf-8")
        assert "Imported conversation c1" in combined
        assert "Error processing conversation c2" in combined
        assert "Imported conversation c1" not in errors
        assert "Error processing conversation c2" in errors

    def test_reconfiguring_replaces_handlers(self, logger_name, tmp_path):
        """Test calling setup_logging twice does not duplicate output."""
        setup_logging(level="INFO", name=logger_name)
        run_logger = setup_logging(level="WARNING", log_dir=str(tmp_path), name=logger_name)

        assert run_logger.level == logging.WARNING
        assert len(run_logger.handlers) == 3

    def test_child_loggers_share_handlers(self, logger_name):
        """Test component loggers created with getChild reach the run handlers."""
        run_logger = setup_logging(level="INFO", name=logger_name)
        log_capture = io.StringIO()
        run_logger.handlers[0].setStream(log_capture)

        run_logger.getChild("gladly").info("Fetching conversations page 1")

        assert f"{logger_name}.gladly - INFO - Fetching conversations page 1" in log_capture.getvalue()

    def test_http_library_logging_suppressed(self, logger_name):
        """Test urllib3 and requests INFO logs are suppressed."""
        setup_logging(level="DEBUG", name=logger_name)

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING
        assert not logging.getLogger("urllib3").isEnabledFor(logging.INFO)

    def test_module_loggers_reach_run_log_files(self, logger_name, tmp_path):
        """Test warnings from module loggers such as config loading land in combined.log."""
        run_logger = setup_logging(level="INFO", log_dir=str(tmp_path), name=logger_name)

        logging.getLogger("src.config.settings").warning("Invalid batchSize 0, using default: 100")
        for handler in run_logger.handlers:
            handler.flush()

        combined = (tmp_path / "combined.log").read_text(encoding="utf-8")
        assert "src.config.settings - WARNING - Invalid batchSize 0" in combined
        assert logging.getLogger(PACKAGE_LOGGER_NAME).propagate is False

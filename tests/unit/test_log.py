"""Unit tests for logging setup."""

import logging

from rich.logging import RichHandler

from infragate.log import configure_logging


class TestConfigureLogging:
    """Tests for configure_logging."""

    def _rich_handlers(self, logger: logging.Logger) -> list[logging.Handler]:
        return [h for h in logger.handlers if isinstance(h, RichHandler)]

    def test_levels(self) -> None:
        assert configure_logging().level == logging.WARNING
        assert configure_logging(verbose=True).level == logging.INFO
        assert configure_logging(verbose=True, debug=True).level == logging.DEBUG

    def test_handler_replaced_not_stacked(self) -> None:
        configure_logging()
        logger = configure_logging(debug=True)
        assert logger.name == "infragate"
        assert len(self._rich_handlers(logger)) == 1

    def test_child_loggers_propagate(self) -> None:
        logger = configure_logging()
        child = logging.getLogger("infragate.engine.faults")
        assert child.parent is logger or child.parent.parent is logger
        assert logger.propagate

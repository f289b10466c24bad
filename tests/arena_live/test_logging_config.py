import logging

import pytest
from rich.logging import RichHandler

from arena_live.logging_config import SOCKETIO_LOGGERS, setup_logging


@pytest.fixture
def isolated_logging(monkeypatch):
    """Give setup_logging a throwaway root logger and reset the Socket.IO logger levels afterwards."""
    monkeypatch.setattr(logging, "root", logging.RootLogger(logging.WARNING))
    levels = {name: logging.getLogger(name).level for name in SOCKETIO_LOGGERS}
    yield
    for name, value in levels.items():
        logging.getLogger(name).setLevel(value)


@pytest.mark.unit
class TestSetupLogging:

    def test_rich_handler_and_quiet_socketio(self, isolated_logging):
        setup_logging(level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], RichHandler)
        assert logging.getLogger("engineio.client").level == logging.WARNING

    def test_plain_handler(self, isolated_logging):
        setup_logging(level="warning", use_rich=False)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0], RichHandler)

    def test_trace_socketio(self, isolated_logging):
        setup_logging(level="DEBUG", trace_socketio=True)

        assert logging.getLogger("socketio.client").level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, isolated_logging):
        setup_logging(level="chatty", socketio_level="error")

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("socketio").level == logging.ERROR

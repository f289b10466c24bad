"""
Logging setup for arena_live processes.

Library modules only create module loggers; an application (or the
``arena-live`` CLI) calls setup_logging() once at startup.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# python-socketio and engineio log every packet at INFO
SOCKETIO_LOGGERS = ("socketio", "socketio.client", "engineio", "engineio.client", "aiohttp")


def _build_handler(level: int, use_rich: bool) -> logging.Handler:
    if use_rich:
        handler: logging.Handler = RichHandler(
            console=Console(file=sys.stderr),
            level=level,
            show_time=True,
            show_path=level <= logging.DEBUG,
            rich_tracebacks=True,
            markup=False,
            log_time_format="[%H:%M:%S]",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)-5s %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
    handler.setLevel(level)
    return handler


def setup_logging(
    level: str = "INFO",
    use_rich: bool = True,
    trace_socketio: bool = False,
    socketio_level: Optional[str] = None,
) -> None:
    """
    Configure the root logger for an arena_live process.

    Args:
        level: Log level name for the runtime (DEBUG, INFO, WARNING, ERROR).
            Unknown names fall back to INFO.
        use_rich: Colored RichHandler output on stderr; plain lines otherwise.
        trace_socketio: Let python-socketio/engineio packet logs through at the
            runtime level instead of silencing them.
        socketio_level: Explicit level for the Socket.IO loggers. Defaults to
            WARNING unless trace_socketio is set.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_build_handler(numeric_level, use_rich))

    if trace_socketio:
        transport_level = numeric_level
    else:
        transport_level = getattr(logging, (socketio_level or "WARNING").upper(), logging.WARNING)
    for name in SOCKETIO_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(numeric_level)}, rich={use_rich}, "
        f"socketio={logging.getLevelName(transport_level)}"
    )

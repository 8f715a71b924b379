import logging
import sys
import threading
from typing import Optional

import structlog

from fsindexd.core.settings import Settings, settings

_configure_lock = threading.Lock()
_configured = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def _renderer(s: Settings):
    if s.LOG_JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(settings_obj: Optional[Settings] = None, force: bool = False) -> bool:
    """
    Route fsindexd's structlog events through stdlib logging on stderr.

    Applied once per process; later calls are ignored unless force is set,
    so an embedding application that configured structlog itself keeps its
    setup. EventHandler(configure_logs=True) calls this on construction.
    Returns True when the configuration was (re)applied.
    """
    global _configured
    s = settings_obj or settings
    with _configure_lock:
        if _configured and not force:
            return False

        level = getattr(logging, str(s.LOG_LEVEL or "INFO").upper(), logging.INFO)
        logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
        logging.getLogger("fsindexd").setLevel(level)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.format_exc_info,
                _renderer(s),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _configured = True
        return True


def reset_logging() -> None:
    """Forget the applied configuration (tests)."""
    global _configured
    with _configure_lock:
        structlog.reset_defaults()
        _configured = False

"""Session ID logging context for following one conversation through the logs.

The router sets the session id for the current task before it touches
the session; every record that passes through a ``SessionIdFilter`` then
carries ``session_id``. ``load_config`` installs the filter on the root
handler, so ``%(session_id)s`` works for every module logger, and
``get_session_logger`` attaches it to a logger directly for handlers
that were set up elsewhere (pytest's caplog, for one).

Usage:
    from billing_assistant.logging_context import get_session_logger, set_session_id

    set_session_id("sess-abc123")
    logger = get_session_logger(__name__)
    logger.info("Processing message")  # record.session_id == "sess-abc123"
"""

import logging
from contextvars import ContextVar
from typing import IO, Optional

_session_id: ContextVar[str] = ContextVar("session_id", default="-")


def set_session_id(session_id: str) -> None:
    _session_id.set(session_id)


def get_session_id() -> str:
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Stamps the current session id on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def session_log_handler(stream: Optional[IO[str]] = None) -> logging.Handler:
    """Stream handler whose records always carry ``session_id``."""
    handler = logging.StreamHandler(stream)
    handler.addFilter(SessionIdFilter())
    return handler


def get_session_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger

"""
Application logging. Records from the ``local_library`` loggers carry the id
of the request that produced them, taken from ``X-Request-ID`` when sent.
"""

import logging
import uuid
from contextvars import ContextVar

ROOT = "local_library"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"

request_id: ContextVar[str] = ContextVar("request_id", default="-")


def stamp_request_id(record: logging.LogRecord) -> bool:
    record.request_id = request_id.get()
    return True


def configure_logging(level=logging.INFO, stream=None) -> logging.Logger:
    """Install the stamped stream handler once; later calls only change the level."""
    logger = logging.getLogger(ROOT)
    logger.setLevel(level)
    if not any(handler.get_name() == ROOT for handler in logger.handlers):
        handler = logging.StreamHandler(stream)
        handler.set_name(ROOT)
        handler.addFilter(stamp_request_id)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT}.{name}")


def bind_request_id(value: str | None = None) -> str:
    """Bind the id of the current request, generating one if the client sent none."""
    value = (value or "").strip()[:64] or uuid.uuid4().hex[:12]
    request_id.set(value)
    return value

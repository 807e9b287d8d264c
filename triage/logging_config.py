"""
logging_config.py — Loguru setup for the triage service

One backend for everything: our own `logger.info(...)` calls, uvicorn,
SQLAlchemy and httpx (stdlib logging is intercepted and re-emitted).

Business Rules:
- Production (APP_URL on a non-local host): JSON lines on stdout, plus a
  rotated JSON file when LOG_FILE is set (50 MB, 7 days, gzip)
- Development: coloured single-line format
- Every record carries request_id ("-" outside a request; the request
  middleware binds the real one)
- httpx/httpcore/uvicorn.access/sqlalchemy.engine only log WARNING and up

Called by: main.py (lifespan)
Depends on: config.py (app_url, log_level, log_file)
"""

import inspect
import logging
import sys
from urllib.parse import urlsplit

from loguru import logger

from .config import settings

LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "testserver"}
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")

DEV_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level: <7}</level> "
    "<magenta>[{extra[request_id]}]</magenta> "
    "<cyan>{name}:{line}</cyan> {message}"
)


def is_production(app_url: str | None = None) -> bool:
    url = settings.app_url if app_url is None else app_url
    host = urlsplit(url).hostname if url else None
    return bool(host) and host not in LOCAL_HOSTS


def setup_logging(
    level: str | None = None,
    *,
    production: bool | None = None,
    log_file: str | None = None,
) -> None:
    """(Re)configure sinks. Arguments override the matching settings."""
    level = (level or settings.log_level).upper()
    production = is_production() if production is None else production
    log_file = settings.log_file if log_file is None else log_file

    logger.remove()
    logger.configure(extra={"request_id": "-"})

    if production:
        logger.add(sys.stdout, level=level, serialize=True)
        if log_file:
            logger.add(
                log_file,
                level=level,
                serialize=True,
                rotation="50 MB",
                retention="7 days",
                compression="gz",
            )
    else:
        logger.add(sys.stderr, level=level, format=DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging ready (level={}, production={})", level, production)


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

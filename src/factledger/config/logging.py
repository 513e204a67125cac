"""Root logger setup shared by the CLI and the API server."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# third-party loggers that drown out fact decisions at INFO
_CHATTY_LOGGERS = ("sqlalchemy.engine", "alembic.runtime.migration", "uvicorn.access")


def log_level_from_env(default: int = logging.INFO) -> int:
    """Level named by ``FACTLEDGER_LOG_LEVEL`` (``DEBUG``, ``warning``, ...)."""

    name = (os.getenv("FACTLEDGER_LOG_LEVEL") or "").strip().upper()
    if not name:
        return default
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        raise ConfigurationError(f"Unknown FACTLEDGER_LOG_LEVEL {name!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger once.

    ``level`` defaults to ``FACTLEDGER_LOG_LEVEL`` (INFO when unset). Unless running
    at DEBUG, SQL echo, migration chatter and access logs are held at WARNING.
    Pass ``force=True`` to replace handlers installed earlier, e.g. in tests.
    """

    resolved = log_level_from_env() if level is None else level
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    quiet = logging.NOTSET if resolved <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

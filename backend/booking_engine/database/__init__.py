"""
Database engine, session factory, and metadata shared across the booking engine.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import settings
from ..core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_in_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/").endswith("sqlite:"))


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    """Create an engine suited to ``db_url``; in-memory SQLite shares one connection."""
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if _is_sqlite(db_url):
        kwargs["connect_args"] = {"check_same_thread": False}
    if _is_in_memory_sqlite(db_url):
        kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    new_engine = create_engine(db_url, **kwargs)
    event.listen(new_engine, "connect", _on_connect)
    return new_engine


def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    logger.debug("Database connection established")


engine: Engine = build_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create every table registered on ``Base``."""
    from .. import models  # noqa: F401  registers mappers

    Base.metadata.create_all(bind=bind or engine)


T = TypeVar("T")


def _retry_delay(attempt: int, base_seconds: float) -> float:
    base = base_seconds * (2 ** (attempt - 1))
    return base + random.uniform(0, base_seconds / 2 * attempt)


def with_persistence_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay_seconds: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``func`` and retry transient PersistenceErrors with exponential backoff.

    The last PersistenceError is re-raised once ``max_attempts`` is reached.
    """
    attempt = 1
    while True:
        try:
            return func()
        except PersistenceError as exc:
            if attempt >= max_attempts:
                logger.error(
                    "Persistence retries exhausted",
                    extra={"event": "db_retry_exhausted", "op": op_name, "attempts": attempt},
                )
                raise

            delay = _retry_delay(attempt, base_delay_seconds)
            logger.warning(
                "Transient persistence failure, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": exc.message,
                },
            )
            sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "init_db",
    "with_persistence_retry",
]

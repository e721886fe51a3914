"""
Per-(provider, date) reservation locks held in Redis.

Keys expire after ``ttl_s`` so a crashed holder never pins a day. When Redis
is not configured or unreachable the lock fails open and the database
overlap guard on appointments decides the race.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Callable, Iterator, Optional
import uuid

from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_sync_redis: Optional[Redis] = None
_sync_lock = threading.Lock()

POLL_INTERVAL_SECONDS = 0.05


def _lock_key(provider_id: str, day: date) -> str:
    return f"reservation:{provider_id}:{day.isoformat()}:mutex"


def _get_redis() -> Optional[Redis]:
    global _sync_redis
    if _sync_redis is not None:
        return _sync_redis
    if not settings.redis_url:
        return None
    with _sync_lock:
        if _sync_redis is not None:
            return _sync_redis
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=1,
            )
            client.ping()
        except RedisError as exc:
            logger.warning("reservation_lock_redis_unavailable", extra={"error": str(exc)})
            return None
        _sync_redis = client
        return _sync_redis


def acquire_reservation_lock(
    client: Redis,
    key: str,
    token: str,
    *,
    timeout_s: float,
    ttl_s: int,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``SET NX EX`` until the key is ours or ``timeout_s`` passes."""
    deadline = time.monotonic() + timeout_s
    while True:
        try:
            if client.set(key, token, nx=True, ex=ttl_s):
                prometheus_metrics.record_reservation_lock("success")
                return True
        except RedisError as exc:
            prometheus_metrics.record_reservation_lock("error")
            logger.warning("reservation_lock_error", extra={"key": key, "error": str(exc)})
            return True
        if time.monotonic() >= deadline:
            prometheus_metrics.record_reservation_lock("timeout")
            logger.warning("reservation_lock_timeout", extra={"key": key, "timeout_s": timeout_s})
            return False
        sleep(POLL_INTERVAL_SECONDS)


def release_reservation_lock(client: Redis, key: str, token: str) -> None:
    """Delete ``key`` only while it still holds ``token``."""
    try:
        if client.get(key) == token:
            client.delete(key)
            prometheus_metrics.record_reservation_lock("released")
        else:
            prometheus_metrics.record_reservation_lock("expired")
    except RedisError as exc:
        prometheus_metrics.record_reservation_lock("error")
        logger.warning("reservation_lock_release_error", extra={"key": key, "error": str(exc)})


@contextmanager
def reservation_lock(
    provider_id: str,
    day: date,
    timeout_s: float = 10.0,
    ttl_s: int = 30,
) -> Iterator[bool]:
    """Yield True while the day is held (or Redis is unavailable), False on timeout."""
    client = _get_redis()
    if client is None:
        prometheus_metrics.record_reservation_lock("redis_unavailable")
        yield True
        return

    key = _lock_key(provider_id, day)
    token = uuid.uuid4().hex
    acquired = acquire_reservation_lock(client, key, token, timeout_s=timeout_s, ttl_s=ttl_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_reservation_lock(client, key, token)

"""
Locking helpers for store jobs and order edits.

DistributedLock keeps periodic jobs (the refund reconciliation sweep) from
overlapping across Celery workers. It never waits: a second worker that
finds the key taken gets LockAcquisitionError and skips its run.

check_version guards edits prepared from an earlier read of a row that
carries a `version` column.

Refund idempotency does not go through this module; the coordinator
relies on select_for_update and the refund marker's compare-and-set.

Usage:
    with DistributedLock("store:refund-sweep", ttl=300) as lock:
        for batch in batches:
            replay(batch)
            lock.extend()

    with transaction.atomic():
        order = check_version(Order, order_id, expected_version=3)
"""

from __future__ import annotations

import uuid as uuid_module
from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction
from django_redis import get_redis_connection

from store.exceptions import LockAcquisitionError, OrderNotFoundError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

T = TypeVar("T", bound=models.Model)


class DistributedLock:
    """
    Non-blocking Redis lease on a key.

    The value stored under the key is a per-acquisition token; release and
    extend only touch the key while it still holds our token, so a lease
    that expired and was taken by another worker is left alone.

    Args:
        key: Job name; stored as "lock:<key>"
        ttl: Seconds before Redis drops the lease on its own
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    end
    return 0
    """

    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    end
    return 0
    """

    def __init__(self, key: str, ttl: int = 30) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self._token: str | None = None
        self._redis: Redis | None = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def acquire(self) -> bool:
        """
        Raises:
            LockAcquisitionError: Another worker holds the key
        """
        token = str(uuid_module.uuid4())
        if not self.redis.set(self.key, token, nx=True, ex=self.ttl):
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        self._token = token
        return True

    def release(self) -> bool:
        """False when we held nothing or the lease had already passed on."""
        if self._token is None:
            return False
        released = self.redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(released)

    def extend(self, ttl: int | None = None) -> bool:
        """Restart the lease countdown at `ttl` (default: the original ttl)."""
        if self._token is None:
            return False
        return bool(self.redis.eval(self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl))

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb: Any) -> bool:
        self.release()
        return False


def check_version(model_class: type[T], pk: Any, expected_version: int) -> T:
    """
    Fetch a row under select_for_update if its version still matches.

    Call inside the caller's transaction; the row lock ends with it.

    Raises:
        StaleRecordError: The row was saved since the caller read it
        OrderNotFoundError: No such row
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )
        if instance is not None:
            return instance

        current = model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
        if current is None:
            raise OrderNotFoundError(
                f"{model_class.__name__} {pk} not found",
                details={"pk": str(pk)},
            )
        raise StaleRecordError(
            f"{model_class.__name__} {pk} was modified "
            f"(expected version {expected_version}, current {current})",
            details={
                "pk": str(pk),
                "expected_version": expected_version,
                "current_version": current,
            },
        )


__all__ = [
    "DistributedLock",
    "check_version",
]

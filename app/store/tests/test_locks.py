"""
Tests for concurrency control utilities.

DistributedLock runs against a mocked Redis client; check_version runs
against the test database.
"""

import pytest

from store.exceptions import LockAcquisitionError, OrderNotFoundError, StaleRecordError
from store.locks import DistributedLock, check_version
from store.orders.models import Order


class TestDistributedLock:
    """Tests for DistributedLock class."""

    def test_acquire_success(self, mock_redis):
        """Should acquire lock when available."""
        lock = DistributedLock("store:refund-sweep", ttl=300)

        assert lock.acquire() is True
        assert lock.is_held is True
        call_args = mock_redis.set.call_args
        assert call_args[0][0] == "lock:store:refund-sweep"
        assert call_args[1]["nx"] is True
        assert call_args[1]["ex"] == 300

    def test_each_acquisition_uses_unique_token(self, mock_redis):
        lock1 = DistributedLock("a")
        lock2 = DistributedLock("b")

        lock1.acquire()
        lock2.acquire()

        assert lock1._token != lock2._token

    def test_raises_when_held(self, mock_redis):
        """Should raise immediately when another worker holds the key."""
        mock_redis.set.return_value = False

        lock = DistributedLock("store:refund-sweep")

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert "already held" in str(exc_info.value)
        assert exc_info.value.details["key"] == "lock:store:refund-sweep"
        assert lock.is_held is False

    def test_release(self, mock_redis):
        lock = DistributedLock("k")
        lock.acquire()

        assert lock.release() is True
        assert lock.is_held is False
        mock_redis.eval.assert_called_once()

    def test_release_when_token_does_not_match(self, mock_redis):
        mock_redis.eval.return_value = 0
        lock = DistributedLock("k")
        lock.acquire()

        assert lock.release() is False

    def test_release_without_acquire(self, mock_redis):
        lock = DistributedLock("k")

        assert lock.release() is False
        mock_redis.eval.assert_not_called()

    def test_extend(self, mock_redis):
        lock = DistributedLock("k", ttl=60)
        lock.acquire()

        assert lock.extend(120) is True
        args = mock_redis.eval.call_args[0]
        assert args[2] == "lock:k"
        assert args[4] == 120

    def test_extend_without_acquire(self, mock_redis):
        assert DistributedLock("k").extend() is False

    def test_context_manager_releases_on_error(self, mock_redis):
        lock = DistributedLock("k")

        with pytest.raises(RuntimeError):
            with lock:
                assert lock.is_held is True
                raise RuntimeError("sweep crashed")

        assert lock.is_held is False
        mock_redis.eval.assert_called_once()


class TestCheckVersion:
    def test_matching_version_returns_row(self, pending_order):
        order = check_version(Order, pending_order.pk, expected_version=1)

        assert order.pk == pending_order.pk

    def test_stale_version_raises(self, pending_order):
        pending_order.notes = "changed"
        pending_order.save()

        with pytest.raises(StaleRecordError) as exc_info:
            check_version(Order, pending_order.pk, expected_version=1)

        assert exc_info.value.details["expected_version"] == 1
        assert exc_info.value.details["current_version"] == 2

    def test_missing_record_raises(self, db):
        import uuid

        with pytest.raises(OrderNotFoundError):
            check_version(Order, uuid.uuid4(), expected_version=1)

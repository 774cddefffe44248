"""
Pytest fixtures for store tests.

Orders are moved into their starting state through the model's own
transitions, so fixtures exercise the same edges production code does.

Usage:
    def test_refund_credits_wallet(paid_completed_order):
        OrderStateMachine.transition(paid_completed_order, OrderStatus.REFUNDED)
"""

import pytest

from store.tests.factories import OrderFactory, UserFactory


def _advance(order, *transitions):
    for name in transitions:
        getattr(order, name)()
        order.save()
    return order


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test customer."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


# =============================================================================
# Order State Fixtures
# =============================================================================


@pytest.fixture
def pending_order(db, user):
    """Pending, unpaid $150.00 order."""
    return OrderFactory(owner=user)


@pytest.fixture
def paid_pending_order(db, user):
    return _advance(OrderFactory(owner=user), "mark_paid")


@pytest.fixture
def processing_order(db, user):
    """Paid order in processing."""
    return _advance(OrderFactory(owner=user), "mark_paid", "start_processing")


@pytest.fixture
def unpaid_processing_order(db, user):
    """Processing order whose payment never succeeded."""
    return _advance(OrderFactory(owner=user), "start_processing")


@pytest.fixture
def paid_completed_order(db, user):
    """Paid and completed $150.00 order, the usual refund candidate."""
    return _advance(OrderFactory(owner=user), "mark_paid", "start_processing", "complete")


@pytest.fixture
def unpaid_completed_order(db, user):
    return _advance(OrderFactory(owner=user), "start_processing", "complete")


@pytest.fixture
def cancelled_order(db, user):
    return _advance(OrderFactory(owner=user), "cancel")


@pytest.fixture
def refunded_order(db, user):
    """
    Paid order already in `refunded` with no wallet credit.

    Moved with the raw model transition, so no event was sent; this is the
    state the reconciliation sweep recovers from.
    """
    return _advance(
        OrderFactory(owner=user), "mark_paid", "start_processing", "complete", "refund"
    )


# =============================================================================
# Redis Fixtures
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured for basic lock operations.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.get.return_value = None
    mock_client.delete.return_value = 1
    mock_client.eval.return_value = 1

    mocker.patch(
        "store.locks.get_redis_connection",
        return_value=mock_client,
    )
    return mock_client

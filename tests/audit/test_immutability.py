"""
Append-only ledger and frozen-cost tests.

Verifies:
- RevenueTransaction rows cannot be updated or deleted through the ORM
- An approved ProductRequest's cost fields cannot change
- An approved ProductRequest cannot be deleted
- Listeners can be removed (tests only) and reinstalled
"""

from contextlib import contextmanager
from decimal import Decimal

import pytest
from sqlalchemy import select

from revenue_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from revenue_kernel.exceptions import ImmutabilityViolationError
from revenue_kernel.models.revenue_transaction import RevenueTransaction
from revenue_modules.product_requests import ProductRequestModel
from tests.conftest import GADGET, TEST_ACTOR


@contextmanager
def disabled_immutability():
    """Remove the ledger listeners for the duration of the block."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _first_row(session) -> RevenueTransaction:
    return session.execute(
        select(RevenueTransaction).order_by(RevenueTransaction.id)
    ).scalars().first()


class TestLedgerAppendOnly:

    def test_update_blocked(self, session, fund):
        fund(Decimal("100.00"))
        row = _first_row(session)
        row.amount = Decimal("1000000.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert exc_info.value.entity_type == "RevenueTransaction"
        assert _first_row(session).amount == Decimal("100.00")

    def test_description_update_blocked(self, session, fund):
        fund(Decimal("100.00"))
        _first_row(session).description = "edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_blocked(self, session, fund, selector):
        fund(Decimal("100.00"))
        session.delete(_first_row(session))

        with pytest.raises(ImmutabilityViolationError, match="cannot be deleted"):
            session.flush()
        session.rollback()
        assert selector.count_transactions() == 1

    def test_violation_logged(self, session, fund, captured_logs):
        fund(Decimal("100.00"))
        _first_row(session).balance_after = Decimal("0.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"
        assert blocked[0]["invariant"] == "append_only"

    def test_listeners_can_be_disabled_for_tests(self, session, fund, selector):
        fund(Decimal("100.00"))
        with disabled_immutability():
            _first_row(session).balance_after = Decimal("99.00")
            session.commit()

        assert not selector.replay().is_consistent

        # Reinstalled: the next edit is blocked again
        _first_row(session).balance_after = Decimal("100.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_register_is_idempotent(self, session, fund):
        register_immutability_listeners()
        register_immutability_listeners()
        fund(Decimal("100.00"))
        _first_row(session).amount = Decimal("1.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestApprovedRequestCost:

    @pytest.fixture
    def approved(self, fund, request_service):
        fund(Decimal("1000.00"))
        pending = request_service.create(GADGET.product_id, 2, requested_by="alice")
        return request_service.approve(pending.id, approved_by="manager")

    @pytest.mark.parametrize("field,value", [
        ("total_cost", Decimal("1.00")),
        ("requested_quantity", 1),
        ("product_id", 99),
    ])
    def test_cost_fields_frozen(self, session, approved, field, value):
        row = session.get(ProductRequestModel, approved.id)
        setattr(row, field, value)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert field in exc_info.value.reason
        assert exc_info.value.entity_type == "ProductRequest"

    def test_status_fields_still_mutable(self, session, approved, request_service):
        received = request_service.receive(approved.id, received_by="warehouse", notes="ok")
        assert received.total_cost == Decimal("200.00")
        assert received.notes == "[RECEIVED] ok"

    def test_approved_delete_blocked(self, session, approved):
        session.delete(session.get(ProductRequestModel, approved.id))
        with pytest.raises(ImmutabilityViolationError, match="cannot be deleted"):
            session.flush()
        session.rollback()
        assert session.get(ProductRequestModel, approved.id) is not None

    def test_pending_cost_fields_editable(self, session, request_service):
        pending = request_service.create(GADGET.product_id, 2, requested_by=TEST_ACTOR)
        row = session.get(ProductRequestModel, pending.id)
        row.requested_quantity = 5
        session.flush()
        session.commit()
        assert request_service.get(pending.id).requested_quantity == 5

    def test_cancelled_after_approval_still_frozen(self, session, approved, request_service):
        request_service.cancel(approved.id, cancelled_by="manager")
        row = session.get(ProductRequestModel, approved.id)
        row.total_cost = Decimal("0.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

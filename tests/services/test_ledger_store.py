"""
Tests for LedgerStore: singleton seeding, locking reads, append-only
ledger rows and paged listings.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from revenue_kernel.domain.dtos import Pagination, TransactionFilter
from revenue_kernel.exceptions import NotInitializedError
from revenue_kernel.models.company_revenue import SINGLETON_ID, CompanyRevenue
from revenue_kernel.models.revenue_transaction import RevenueTransaction
from revenue_kernel.services.ledger_store import DEFAULT_MAX_PAGE_SIZE, LedgerStore
from tests.conftest import TEST_ACTOR


class TestInitialize:

    def test_seeds_zeroed_singleton(self, session, ledger_store, clock):
        row = ledger_store.initialize(actor=TEST_ACTOR)
        session.commit()

        assert row.id == SINGLETON_ID
        assert row.current_revenue == Decimal("0.00")
        assert row.available_budget == Decimal("0.00")
        assert row.total_spent == Decimal("0.00")
        assert row.updated_by == TEST_ACTOR
        assert row.version == 1

    def test_idempotent(self, session, ledger_store):
        first = ledger_store.initialize(actor=TEST_ACTOR)
        session.commit()
        second = ledger_store.initialize(actor="someone_else")
        session.commit()

        assert first is second
        assert second.updated_by == TEST_ACTOR
        count = session.execute(select(func.count(CompanyRevenue.id))).scalar_one()
        assert count == 1

    def test_second_session_sees_existing_row(self, session, session_factory, ledger_store, clock):
        ledger_store.initialize(actor=TEST_ACTOR)
        session.commit()

        other = session_factory()
        try:
            row = LedgerStore(other, clock).initialize(actor="other")
            other.commit()
            assert row.updated_by == TEST_ACTOR
        finally:
            other.close()

    def test_logs_initialization(self, session, ledger_store, captured_logs):
        ledger_store.initialize(actor=TEST_ACTOR)
        assert any(r["message"] == "ledger_initialized" for r in captured_logs())


class TestReads:

    def test_not_initialized(self, ledger_store):
        with pytest.raises(NotInitializedError) as exc_info:
            ledger_store.get_current_revenue()
        assert exc_info.value.code == "LEDGER_NOT_INITIALIZED"

    def test_lock_not_initialized(self, ledger_store):
        with pytest.raises(NotInitializedError):
            ledger_store.lock_current_revenue()

    def test_lock_refreshes_stale_copy(self, session, session_factory, initialized_ledger):
        cached = initialized_ledger.get_current_revenue()
        assert cached.available_budget == Decimal("0.00")

        other = session_factory()
        try:
            row = other.get(CompanyRevenue, SINGLETON_ID)
            row.current_revenue = Decimal("10.00")
            row.available_budget = Decimal("10.00")
            other.commit()
        finally:
            other.close()

        session.commit()
        locked = initialized_ledger.lock_current_revenue()
        assert locked is cached
        assert locked.available_budget == Decimal("10.00")
        assert locked.version == 2


class TestAppendTransaction:

    def _row(self, **overrides):
        values = dict(
            transaction_type="ADJUSTMENT",
            direction="credit",
            amount=Decimal("5.00"),
            created_by=TEST_ACTOR,
            description="test row",
            balance_after=Decimal("5.00"),
        )
        values.update(overrides)
        return RevenueTransaction(**values)

    def test_stamps_clock_and_assigns_id(self, session, initialized_ledger, clock):
        tx = initialized_ledger.append_transaction(self._row())
        assert tx.id is not None
        assert tx.created_date == clock.now()

    def test_ids_increase(self, session, initialized_ledger):
        a = initialized_ledger.append_transaction(self._row())
        b = initialized_ledger.append_transaction(self._row(balance_after=Decimal("10.00")))
        assert b.id > a.id

    def test_rejects_persistent_row(self, session, initialized_ledger):
        tx = initialized_ledger.append_transaction(self._row())
        with pytest.raises(ValueError, match="Only new ledger rows"):
            initialized_ledger.append_transaction(tx)

    def test_flush_only(self, session, session_factory, initialized_ledger):
        initialized_ledger.append_transaction(self._row())
        session.rollback()
        other = session_factory()
        try:
            assert other.execute(select(func.count(RevenueTransaction.id))).scalar_one() == 0
        finally:
            other.close()


class TestListTransactions:

    def test_default_page_and_order(self, session, fund, balance_engine, ledger_store, clock):
        fund(Decimal("100.00"))
        balance_engine.deduct(Decimal("10.00"), reason="a", actor=TEST_ACTOR, request_id=1)
        balance_engine.deduct(Decimal("20.00"), reason="b", actor=TEST_ACTOR, request_id=2)

        rows = ledger_store.list_transactions()
        assert [r.balance_after for r in rows] == [
            Decimal("100.00"), Decimal("90.00"), Decimal("70.00"),
        ]
        assert [r.id for r in rows] == sorted(r.id for r in rows)

    def test_filter_and_page(self, fund, balance_engine, ledger_store):
        fund(Decimal("100.00"))
        for i in range(5):
            balance_engine.deduct(Decimal("1.00"), reason=f"r{i}", actor=TEST_ACTOR, request_id=i)

        page = ledger_store.list_transactions(
            TransactionFilter(transaction_types=("ORDER_PLACED",)),
            Pagination(offset=1, limit=2),
        )
        assert [r.product_request_id for r in page] == [1, 2]

    def test_page_larger_than_max(self, ledger_store):
        assert ledger_store.max_page_size == DEFAULT_MAX_PAGE_SIZE
        with pytest.raises(ValueError, match="exceeds maximum"):
            ledger_store.list_transactions(pagination=Pagination(limit=DEFAULT_MAX_PAGE_SIZE + 1))

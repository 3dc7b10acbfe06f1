"""
Tests for LedgerSelector: listings, replay, reconciliation and the
dashboard statistics.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from revenue_kernel.domain.dtos import BudgetStatus, Pagination, TransactionFilter
from revenue_kernel.exceptions import NotInitializedError
from revenue_kernel.models.company_revenue import CompanyRevenue
from revenue_kernel.models.revenue_transaction import RevenueTransaction
from tests.conftest import TEST_ACTOR


class TestSnapshot:

    def test_not_initialized(self, selector):
        with pytest.raises(NotInitializedError):
            selector.snapshot()

    def test_snapshot_is_utc(self, initialized_ledger, selector, clock):
        snap = selector.snapshot()
        assert snap.last_updated == clock.now()
        assert snap.last_updated.tzinfo is not None
        assert snap.version == 1


class TestListings:

    @pytest.fixture
    def ledger(self, fund, balance_engine, clock):
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("100.00"), reason="r1", actor="alice", request_id=1)
        clock.tick()
        balance_engine.deduct(Decimal("50.00"), reason="r2", actor="bob", request_id=2)
        clock.tick()
        balance_engine.restore(Decimal("100.00"), reason="c1", actor="alice", request_id=1)
        return clock

    def test_all_in_order(self, ledger, selector):
        rows = selector.list_transactions()
        assert [r.transaction_type for r in rows] == [
            "OPENING_BALANCE", "ORDER_PLACED", "ORDER_PLACED", "ORDER_CANCELLED",
        ]
        assert [r.created_date for r in rows] == sorted(r.created_date for r in rows)

    def test_filter_by_type(self, ledger, selector):
        rows = selector.list_transactions(TransactionFilter(transaction_types=("ORDER_PLACED",)))
        assert [r.amount for r in rows] == [Decimal("100.00"), Decimal("50.00")]

    def test_filter_by_direction_and_actor(self, ledger, selector):
        credits = selector.list_transactions(TransactionFilter(direction="credit"))
        assert len(credits) == 2
        alice = selector.list_transactions(TransactionFilter(created_by="alice"))
        assert {r.transaction_type for r in alice} == {"ORDER_PLACED", "ORDER_CANCELLED"}

    def test_date_range_start_inclusive_end_exclusive(self, ledger, selector):
        start = datetime(2024, 1, 1, 12, 0, 1, tzinfo=timezone.utc)
        rows = selector.list_transactions(
            TransactionFilter(start=start, end=start + timedelta(seconds=1))
        )
        assert [r.product_request_id for r in rows] == [1]

    def test_transactions_for_request(self, ledger, selector):
        rows = selector.transactions_for_request(1)
        assert [r.direction for r in rows] == ["debit", "credit"]
        assert sum(r.signed_amount for r in rows) == Decimal("0.00")

    def test_pagination(self, ledger, selector):
        page = selector.list_transactions(pagination=Pagination(offset=3, limit=10))
        assert len(page) == 1
        assert page[0].transaction_type == "ORDER_CANCELLED"

    def test_count(self, ledger, selector):
        assert selector.count_transactions() == 4
        assert selector.count_transactions(TransactionFilter(direction="debit")) == 2

    def test_empty_ledger(self, initialized_ledger, selector):
        assert selector.list_transactions() == []
        assert selector.count_transactions() == 0


class TestReplay:

    def test_empty_ledger_replays_to_zero(self, initialized_ledger, selector):
        report = selector.replay()
        assert report.transaction_count == 0
        assert report.final_balance == Decimal("0.00")
        assert report.is_consistent

    def test_replay_matches_history(self, fund, balance_engine, selector):
        fund(Decimal("300.00"))
        balance_engine.deduct(Decimal("120.00"), reason="a", actor=TEST_ACTOR)
        balance_engine.restore(Decimal("20.00"), reason="b", actor=TEST_ACTOR)
        balance_engine.adjust(reason="c", actor=TEST_ACTOR, budget_delta=Decimal("-50.00"))

        report = selector.replay()
        assert report.transaction_count == 4
        assert report.final_balance == Decimal("150.00")
        assert report.available_budget == Decimal("150.00")
        assert report.is_consistent

    def test_tampered_singleton_detected(self, session, fund, balance_engine, selector):
        fund(Decimal("300.00"))
        balance_engine.deduct(Decimal("100.00"), reason="a", actor=TEST_ACTOR)

        # Bypass the engine: bump the budget without a ledger row
        session.execute(
            update(CompanyRevenue.__table__).values(
                available_budget=Decimal("250.00"), current_revenue=Decimal("350.00")
            )
        )
        session.commit()
        session.expire_all()

        report = selector.check_reconciliation()
        assert not report.is_reconciled
        assert report.replayed_balance == Decimal("200.00")
        assert any("replayed balance" in v for v in report.violations)

    def test_tampered_row_detected(self, session, fund, balance_engine, selector):
        fund(Decimal("300.00"))
        tx = balance_engine.deduct(Decimal("100.00"), reason="a", actor=TEST_ACTOR)

        # Core UPDATE skips the ORM immutability listeners
        session.execute(
            update(RevenueTransaction.__table__)
            .where(RevenueTransaction.__table__.c.id == tx.id)
            .values(balance_after=Decimal("201.00"))
        )
        session.commit()
        session.expire_all()

        report = selector.replay()
        assert not report.is_consistent
        assert len(report.mismatches) == 1
        mismatch = report.mismatches[0]
        assert mismatch.transaction_id == tx.id
        assert mismatch.stored_balance_after == Decimal("201.00")
        assert mismatch.replayed_balance_after == Decimal("200.00")

    def test_broken_equation_detected(self, session, fund, selector):
        fund(Decimal("300.00"))
        session.execute(
            update(CompanyRevenue.__table__).values(total_spent=Decimal("5.00"))
        )
        session.commit()
        session.expire_all()

        report = selector.check_reconciliation()
        assert any("current_revenue" in v for v in report.violations)


class TestStatistics:

    def test_zero_revenue(self, initialized_ledger, selector, clock):
        stats = selector.statistics(clock.now())
        assert stats.utilization_percentage == Decimal("0.00")
        assert stats.budget_status is BudgetStatus.HEALTHY
        assert stats.last_30_days_spending == Decimal("0.00")
        assert stats.transaction_count == 0

    def test_utilization_and_status(self, fund, balance_engine, selector, clock):
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("800.00"), reason="big", actor=TEST_ACTOR)

        stats = selector.statistics(clock.now())
        assert stats.utilization_percentage == Decimal("80.00")
        assert stats.budget_status is BudgetStatus.HIGH
        assert stats.total_spent == Decimal("800.00")
        assert stats.available_budget == Decimal("200.00")
        assert stats.transaction_count == 2

    def test_utilization_rounds(self, fund, balance_engine, selector, clock):
        fund(Decimal("300.00"))
        balance_engine.deduct(Decimal("100.00"), reason="third", actor=TEST_ACTOR)
        assert selector.statistics(clock.now()).utilization_percentage == Decimal("33.33")

    def test_last_30_days_window(self, fund, balance_engine, selector, clock):
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("10.00"), reason="old", actor=TEST_ACTOR)
        clock.advance(31 * 24 * 3600)
        balance_engine.deduct(Decimal("20.00"), reason="recent", actor=TEST_ACTOR)
        balance_engine.restore(Decimal("5.00"), reason="not an order", actor=TEST_ACTOR)

        stats = selector.statistics(clock.now())
        assert stats.last_30_days_spending == Decimal("20.00")

    def test_as_of_excludes_future_rows(self, fund, balance_engine, selector, clock):
        fund(Decimal("1000.00"))
        as_of = clock.now()
        clock.tick()
        balance_engine.deduct(Decimal("10.00"), reason="later", actor=TEST_ACTOR)
        assert selector.statistics(as_of).last_30_days_spending == Decimal("0.00")

    def test_naive_as_of_treated_as_utc(self, fund, balance_engine, selector, clock):
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("10.00"), reason="x", actor=TEST_ACTOR)
        naive = clock.now().replace(tzinfo=None)
        stats = selector.statistics(naive)
        assert stats.as_of.tzinfo is not None
        assert stats.last_30_days_spending == Decimal("10.00")


class TestMonthlySpending:

    def test_current_and_previous_month(self, fund, balance_engine, selector, clock):
        clock.set_time(datetime(2024, 2, 10, tzinfo=timezone.utc))
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("40.00"), reason="feb", actor=TEST_ACTOR)
        clock.set_time(datetime(2024, 3, 1, tzinfo=timezone.utc))
        balance_engine.deduct(Decimal("15.00"), reason="mar 1", actor=TEST_ACTOR)
        clock.set_time(datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc))
        balance_engine.deduct(Decimal("5.00"), reason="mar 31", actor=TEST_ACTOR)

        monthly = selector.monthly_spending(datetime(2024, 3, 15, tzinfo=timezone.utc))
        assert (monthly.year, monthly.month) == (2024, 3)
        assert monthly.current_month == Decimal("20.00")
        assert monthly.previous_month == Decimal("40.00")
        assert monthly.change == Decimal("-20.00")

    def test_january_rolls_back_to_december(self, fund, balance_engine, selector, clock):
        clock.set_time(datetime(2023, 12, 31, tzinfo=timezone.utc))
        fund(Decimal("1000.00"))
        balance_engine.deduct(Decimal("70.00"), reason="dec", actor=TEST_ACTOR)

        monthly = selector.monthly_spending(datetime(2024, 1, 5, tzinfo=timezone.utc))
        assert monthly.current_month == Decimal("0.00")
        assert monthly.previous_month == Decimal("70.00")

    def test_excludes_non_order_rows(self, fund, balance_engine, selector, clock):
        fund(Decimal("1000.00"))
        balance_engine.adjust(reason="x", actor=TEST_ACTOR, budget_delta=Decimal("-100.00"))
        assert selector.monthly_spending(clock.now()).current_month == Decimal("0.00")

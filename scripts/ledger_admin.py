#!/usr/bin/env python3
"""
Revenue ledger administration.

Usage:
    python scripts/ledger_admin.py init [--opening-balance 100000.00]
    python scripts/ledger_admin.py adjust --reason "Q3 revenue" --revenue 150000.00
    python scripts/ledger_admin.py adjust --reason "Write-off" --delta -250.00
    python scripts/ledger_admin.py stats [--as-of 2024-06-30T00:00:00+00:00]
    python scripts/ledger_admin.py transactions [--type ORDER_PLACED] [--limit 20]
    python scripts/ledger_admin.py verify

Settings come from revenue_config (defaults.yaml, $REVENUE_LEDGER_CONFIG,
$REVENUE_LEDGER_DATABASE_URL).  --config overrides the file.

Exit codes: 0 success, 1 ledger/validation error, 2 verification failed.
"""

import argparse
import sys
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from revenue_config import get_settings
from revenue_config.bridges import build_balance_engine, build_ledger_store, init_database
from revenue_kernel.db.engine import session_scope
from revenue_kernel.domain.dtos import Pagination, TransactionFilter
from revenue_kernel.exceptions import RevenueLedgerError
from revenue_kernel.models.revenue_transaction import TransactionType
from revenue_kernel.selectors.ledger_selector import LedgerSelector
from revenue_modules._orm_registry import create_all_tables


def _money(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {text!r}") from exc


def _timestamp(text: str) -> datetime:
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def cmd_init(args, settings) -> int:
    create_all_tables()
    with session_scope() as session:
        build_ledger_store(session, settings).initialize(actor=args.actor)
        unfunded = LedgerSelector(session).count_transactions() == 0
    print("Ledger initialized.")

    if args.opening_balance is not None:
        if not unfunded:
            print("Ledger already funded; use 'adjust' instead.", file=sys.stderr)
            return 1
        with session_scope() as session:
            tx = build_balance_engine(session, settings).adjust(
                reason="Opening balance",
                actor=args.actor,
                budget_delta=args.opening_balance,
                transaction_type=TransactionType.OPENING_BALANCE.value,
            )
        print(f"Opening balance {tx.amount} recorded (transaction #{tx.id}).")
    return 0


def cmd_adjust(args, settings) -> int:
    with session_scope() as session:
        tx = build_balance_engine(session, settings).adjust(
            reason=args.reason,
            actor=args.actor,
            new_current_revenue=args.revenue,
            budget_delta=args.delta,
        )
    sign = "+" if tx.direction == "credit" else "-"
    print(f"Adjustment #{tx.id}: {sign}{tx.amount}, available budget {tx.balance_after}")
    return 0


def cmd_stats(args, settings) -> int:
    as_of = args.as_of or datetime.now(timezone.utc)
    with session_scope() as session:
        selector = LedgerSelector(session)
        stats = selector.statistics(as_of)
        monthly = selector.monthly_spending(as_of)

    print(f"As of:               {stats.as_of.isoformat()}")
    print(f"Current revenue:     {stats.current_revenue}")
    print(f"Available budget:    {stats.available_budget}")
    print(f"Total spent:         {stats.total_spent}")
    print(f"Utilization:         {stats.utilization_percentage}% ({stats.budget_status.value})")
    print(f"Transactions:        {stats.transaction_count}")
    print(f"Last 30 days orders: {stats.last_30_days_spending}")
    print(f"Orders {monthly.year}-{monthly.month:02d}:      "
          f"{monthly.current_month} (previous month {monthly.previous_month})")
    return 0


def cmd_transactions(args, settings) -> int:
    criteria = TransactionFilter(
        transaction_types=tuple(args.type or ()),
        product_request_id=args.request_id,
    )
    with session_scope() as session:
        rows = build_ledger_store(session, settings).list_transactions(
            criteria, Pagination(offset=args.offset, limit=args.limit)
        )
    for tx in rows:
        print(
            f"#{tx.id:<6} {tx.created_date.isoformat()}  {tx.transaction_type:<16} "
            f"{tx.direction:<6} {tx.amount:>14}  -> {tx.balance_after:>14}  "
            f"{tx.created_by or ''}"
        )
    return 0


def cmd_verify(args, settings) -> int:
    with session_scope() as session:
        report = LedgerSelector(session).check_reconciliation()
    print(f"Replayed balance: {report.replayed_balance}")
    print(f"Available budget: {report.snapshot.available_budget}")
    if report.is_reconciled:
        print("Ledger reconciles.")
        return 0
    print("LEDGER DOES NOT RECONCILE:")
    for violation in report.violations:
        print(f"  - {violation}")
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Administer the revenue ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--actor", default="admin", help="Actor recorded on writes")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="Create tables and seed the ledger")
    p_init.add_argument("--opening-balance", type=_money, default=None)
    p_init.set_defaults(func=cmd_init)

    p_adjust = sub.add_parser("adjust", help="Administrative adjustment")
    p_adjust.add_argument("--reason", required=True)
    p_adjust.add_argument("--revenue", type=_money, default=None,
                          help="New current revenue")
    p_adjust.add_argument("--delta", type=_money, default=None,
                          help="Change to available budget (may be negative)")
    p_adjust.set_defaults(func=cmd_adjust)

    p_stats = sub.add_parser("stats", help="Utilization and spending summary")
    p_stats.add_argument("--as-of", type=_timestamp, default=None)
    p_stats.set_defaults(func=cmd_stats)

    p_tx = sub.add_parser("transactions", help="List ledger rows")
    p_tx.add_argument("--type", action="append", help="Transaction type (repeatable)")
    p_tx.add_argument("--request-id", type=int, default=None)
    p_tx.add_argument("--offset", type=int, default=0)
    p_tx.add_argument("--limit", type=int, default=50)
    p_tx.set_defaults(func=cmd_transactions)

    p_verify = sub.add_parser("verify", help="Replay the ledger and check reconciliation")
    p_verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings(args.config)
    init_database(settings)
    if args.command != "init":
        create_all_tables()
    try:
        return args.func(args, settings)
    except RevenueLedgerError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

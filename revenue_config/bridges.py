"""
Config -> Kernel Bridges.

Functions that turn ``RevenueSettings`` into kernel objects.  They live here
because the kernel must never import ``revenue_config``; the kernel takes
plain constructor arguments and this module supplies them.

Usage:
    settings = get_settings()
    init_database(settings)
    with session_scope() as session:
        engine = build_balance_engine(session, settings)
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from revenue_config.schema import RevenueSettings
from revenue_kernel.db.engine import init_engine_from_url
from revenue_kernel.domain.clock import Clock
from revenue_kernel.logging_config import configure_logging
from revenue_kernel.selectors.ledger_selector import LedgerSelector
from revenue_kernel.services.balance_engine import BalanceEngine
from revenue_kernel.services.balance_gate import get_default_gate
from revenue_kernel.services.ledger_store import LedgerStore


def init_database(settings: RevenueSettings) -> Engine:
    """Configure logging and initialize the engine from settings."""
    configure_logging(level=getattr(logging, settings.logging.level))
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout_seconds,
        pool_recycle=db.pool_recycle_seconds,
        statement_timeout_seconds=db.statement_timeout_seconds,
    )


def build_ledger_store(
    session: Session,
    settings: RevenueSettings,
    clock: Clock | None = None,
) -> LedgerStore:
    return LedgerStore(session, clock, max_page_size=settings.ledger.max_page_size)


def build_balance_engine(
    session: Session,
    settings: RevenueSettings,
    clock: Clock | None = None,
    auto_commit: bool = True,
) -> BalanceEngine:
    """A BalanceEngine wired to the process-wide gate with the configured policy."""
    return BalanceEngine(
        session,
        store=build_ledger_store(session, settings, clock),
        clock=clock,
        gate=get_default_gate(settings.ledger.lock_timeout_seconds),
        strict_restore=settings.ledger.strict_restore,
        auto_commit=auto_commit,
    )


def build_ledger_selector(session: Session) -> LedgerSelector:
    return LedgerSelector(session)

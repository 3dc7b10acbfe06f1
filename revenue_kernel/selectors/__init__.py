"""Read-only query selectors."""

from revenue_kernel.selectors.base import BaseSelector
from revenue_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["BaseSelector", "LedgerSelector"]

"""
Revenue Kernel

The company-wide operating budget and its append-only transaction ledger:
- One CompanyRevenue singleton reconciled against the ledger
- Immutable RevenueTransaction rows with balance snapshots
- A single-writer Balance Engine with atomic commit-or-abort
- Replayable history (every balance_after can be recomputed)
"""

__version__ = "0.1.0"

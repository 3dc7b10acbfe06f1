"""
Product Request Domain Models.

The nouns of the request workflow: request states, catalog products, and
the read-only view returned by the service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class RequestStatus(str, Enum):
    """Product request lifecycle states."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"


class RequestAction(str, Enum):
    """Actions accepted by the request workflow."""
    APPROVE = "approve"
    REJECT = "reject"
    RECEIVE = "receive"
    CANCEL = "cancel"
    AMEND = "amend"


@dataclass(frozen=True)
class ProductInfo:
    """A product as the catalog reports it.  Read-only to this module."""
    product_id: int
    name: str
    unit_price: Decimal
    sku: str | None = None


@dataclass(frozen=True)
class ProductRequestView:
    """Immutable snapshot of a product request."""
    id: int
    product_id: int
    requested_quantity: int
    requested_by: str
    request_status: RequestStatus
    request_date: datetime
    total_cost: Decimal
    notes: str | None = None
    approval_date: datetime | None = None
    approved_by: str | None = None
    received_date: datetime | None = None
    received_by: str | None = None
    rejected_date: datetime | None = None
    rejected_by: str | None = None
    cancelled_date: datetime | None = None
    cancelled_by: str | None = None
    created_by: str | None = None
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.request_status in (
            RequestStatus.RECEIVED,
            RequestStatus.REJECTED,
            RequestStatus.CANCELLED,
        )

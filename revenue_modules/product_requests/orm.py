"""
SQLAlchemy ORM persistence model for product requests.

Responsibility
--------------
Database-backed persistence for ``ProductRequest`` rows and the listeners
that freeze a request's cost once it has been approved.

Architecture position
---------------------
**Modules layer** -- consumed by ``ProductRequestService``.  Inherits from
the kernel ``Base``.  Product references are plain integers with no foreign
key; the catalog is an external collaborator.

Invariants enforced
-------------------
* ``requested_quantity > 0`` and ``total_cost >= 0`` (CHECK constraints).
* ``request_status`` is one of the five workflow states.
* Once approved, ``total_cost``, ``product_id`` and ``requested_quantity``
  cannot change, and the row cannot be deleted (ORM listeners).
* ``version`` is bumped on every UPDATE, so a lost update between two
  sessions raises ``StaleDataError`` at flush.

Audit relevance
---------------
Each transition stamps who and when (approved_by/approval_date, ...) and
appends a tagged line to ``notes``.  The money side of the story lives in
``revenue_transactions`` rows linked by ``product_request_id``.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, event, inspect
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base
from revenue_kernel.db.types import ZERO
from revenue_kernel.domain.dtos import as_utc
from revenue_kernel.exceptions import ImmutabilityViolationError
from revenue_kernel.logging_config import get_logger
from revenue_modules.product_requests.models import ProductRequestView, RequestStatus

logger = get_logger("modules.product_requests.orm")

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in RequestStatus)

# Fields frozen by approval
COST_FIELDS = ("total_cost", "product_id", "requested_quantity")


class ProductRequestModel(Base):
    """
    A request to purchase a quantity of one catalog product.

    Maps to the ``ProductRequestView`` DTO in
    ``revenue_modules.product_requests.models``.
    """

    __tablename__ = "product_requests"

    __table_args__ = (
        CheckConstraint("requested_quantity > 0", name="ck_product_request_quantity_positive"),
        CheckConstraint("total_cost >= 0", name="ck_product_request_cost_non_negative"),
        CheckConstraint(
            f"request_status IN ({_STATUS_VALUES})", name="ck_product_request_status"
        ),
        Index("idx_product_request_status", "request_status"),
        Index("idx_product_request_requested_by", "requested_by"),
        Index("idx_product_request_date", "request_date", "id"),
    )

    product_id: Mapped[int] = mapped_column(nullable=False)
    requested_quantity: Mapped[int] = mapped_column(nullable=False)
    requested_by: Mapped[str] = mapped_column(String(50), nullable=False)
    request_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.PENDING.value
    )
    request_date: Mapped[datetime] = mapped_column(nullable=False)

    approval_date: Mapped[datetime | None]
    approved_by: Mapped[str | None] = mapped_column(String(50))
    received_date: Mapped[datetime | None]
    received_by: Mapped[str | None] = mapped_column(String(50))
    rejected_date: Mapped[datetime | None]
    rejected_by: Mapped[str | None] = mapped_column(String(50))
    cancelled_date: Mapped[datetime | None]
    cancelled_by: Mapped[str | None] = mapped_column(String(50))

    notes: Mapped[str | None] = mapped_column(Text)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    created_by: Mapped[str | None] = mapped_column(String(50))

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def append_note(self, tag: str, text: str | None) -> None:
        """Append ``[TAG] text`` on a new line; no-op for empty text."""
        if not text or not text.strip():
            return
        line = f"[{tag}] {text.strip()}"
        self.notes = line if not self.notes else f"{self.notes}\n{line}"

    def to_dto(self) -> ProductRequestView:
        return ProductRequestView(
            id=self.id,
            product_id=self.product_id,
            requested_quantity=self.requested_quantity,
            requested_by=self.requested_by,
            request_status=RequestStatus(self.request_status),
            request_date=as_utc(self.request_date),
            total_cost=self.total_cost,
            notes=self.notes,
            approval_date=as_utc(self.approval_date),
            approved_by=self.approved_by,
            received_date=as_utc(self.received_date),
            received_by=self.received_by,
            rejected_date=as_utc(self.rejected_date),
            rejected_by=self.rejected_by,
            cancelled_date=as_utc(self.cancelled_date),
            cancelled_by=self.cancelled_by,
            created_by=self.created_by,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<ProductRequest #{self.id} product={self.product_id} "
            f"qty={self.requested_quantity} {self.request_status} cost={self.total_cost}>"
        )


# ---------------------------------------------------------------------------
# Approved-cost immutability
# ---------------------------------------------------------------------------


def _was_approved(target: ProductRequestModel) -> bool:
    """True if approval_date was already set before the pending flush."""
    history = inspect(target).attrs.approval_date.history
    if history.has_changes():
        return bool(history.deleted) and history.deleted[0] is not None
    return target.approval_date is not None


def _check_approved_cost_update(mapper, connection, target):
    if not _was_approved(target):
        return
    state = inspect(target)
    changed = [name for name in COST_FIELDS if state.attrs[name].history.has_changes()]
    if not changed:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ProductRequest",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ProductRequest",
        entity_id=str(target.id),
        reason=f"Approved request fields cannot be modified: {', '.join(changed)}",
    )


def _check_approved_request_delete(mapper, connection, target):
    if target.approval_date is None:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ProductRequest",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ProductRequest",
        entity_id=str(target.id),
        reason="Approved requests cannot be deleted",
    )


def register_request_immutability_listeners() -> None:
    """Install the approved-cost listeners.  Idempotent."""
    if not event.contains(ProductRequestModel, "before_update", _check_approved_cost_update):
        event.listen(ProductRequestModel, "before_update", _check_approved_cost_update)
    if not event.contains(ProductRequestModel, "before_delete", _check_approved_request_delete):
        event.listen(ProductRequestModel, "before_delete", _check_approved_request_delete)


def unregister_request_immutability_listeners() -> None:
    """Remove the approved-cost listeners.  TESTS ONLY."""
    for name, fn in (
        ("before_update", _check_approved_cost_update),
        ("before_delete", _check_approved_request_delete),
    ):
        if event.contains(ProductRequestModel, name, fn):
            event.remove(ProductRequestModel, name, fn)

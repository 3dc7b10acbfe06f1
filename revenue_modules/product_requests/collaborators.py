"""
External collaborators of the request workflow.

The product catalog (read-only prices) and the inventory system (told when
goods arrive) are owned elsewhere.  The service depends only on these
protocols; the concrete classes here cover local use and tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from revenue_kernel.logging_config import get_logger
from revenue_modules.product_requests.models import ProductInfo, ProductRequestView

logger = get_logger("modules.product_requests.collaborators")


@runtime_checkable
class ProductCatalog(Protocol):
    def get_product(self, product_id: int) -> ProductInfo | None:
        """Return the product, or None if the catalog has no such id."""
        ...


@runtime_checkable
class InventoryNotifier(Protocol):
    def notify_received(self, request: ProductRequestView) -> None:
        """Called once a request has been committed as Received."""
        ...


class StaticProductCatalog:
    """Dict-backed catalog."""

    def __init__(self, products: Iterable[ProductInfo] = ()):
        self._products: dict[int, ProductInfo] = {p.product_id: p for p in products}

    def add(self, product: ProductInfo) -> None:
        self._products[product.product_id] = product

    def get_product(self, product_id: int) -> ProductInfo | None:
        return self._products.get(product_id)


class NullInventoryNotifier:
    """Default notifier: records nothing beyond a debug log line."""

    def notify_received(self, request: ProductRequestView) -> None:
        logger.debug(
            "inventory_notification_skipped",
            extra={"product_id": request.product_id, "quantity": request.requested_quantity},
        )

"""
Product Requests Module (``revenue_modules.product_requests``).

Responsibility
--------------
The purchase request approval workflow that gates every spend against the
company budget: Pending -> Approved -> Received, Pending -> Rejected, and
Pending/Approved -> Cancelled.

Architecture position
---------------------
**Modules layer** -- ORM model, workflow declaration, collaborator
protocols, and a service facade that delegates every balance movement to
``revenue_kernel.services.balance_engine``.

Invariants enforced
-------------------
* A request is deducted only on approval and restored only when an
  approved request is cancelled.
* Request status change and ledger row share one transaction.
* Approved cost is immutable (ORM listener).
"""

from revenue_modules.product_requests.collaborators import (
    InventoryNotifier,
    NullInventoryNotifier,
    ProductCatalog,
    StaticProductCatalog,
)
from revenue_modules.product_requests.models import (
    ProductInfo,
    ProductRequestView,
    RequestAction,
    RequestStatus,
)
from revenue_modules.product_requests.orm import (
    ProductRequestModel,
    register_request_immutability_listeners,
    unregister_request_immutability_listeners,
)
from revenue_modules.product_requests.service import ProductRequestService
from revenue_modules.product_requests.workflows import PRODUCT_REQUEST_WORKFLOW

__all__ = [
    "InventoryNotifier",
    "NullInventoryNotifier",
    "PRODUCT_REQUEST_WORKFLOW",
    "ProductCatalog",
    "ProductInfo",
    "ProductRequestModel",
    "ProductRequestService",
    "ProductRequestView",
    "RequestAction",
    "RequestStatus",
    "StaticProductCatalog",
    "register_request_immutability_listeners",
    "unregister_request_immutability_listeners",
]

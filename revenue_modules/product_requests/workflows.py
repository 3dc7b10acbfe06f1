"""
Product Request Workflow.

State machine for purchase requests.  Approve and cancel-after-approve move
money through the Balance Engine; everything else only changes the request.
"""

from revenue_kernel.domain.workflow import Guard, Transition, Workflow
from revenue_kernel.logging_config import get_logger
from revenue_modules.product_requests.models import RequestAction, RequestStatus

logger = get_logger("modules.product_requests.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BUDGET_AVAILABLE = Guard(
    name="budget_available",
    description="Available budget covers the request's total cost",
)

REASON_GIVEN = Guard(
    name="reason_given",
    description="A non-empty rejection reason was supplied",
)

logger.info(
    "product_request_workflow_guards_defined",
    extra={"guards": [BUDGET_AVAILABLE.name, REASON_GIVEN.name]},
)


# -----------------------------------------------------------------------------
# Product Request Workflow
# -----------------------------------------------------------------------------

_PENDING = RequestStatus.PENDING.value
_APPROVED = RequestStatus.APPROVED.value
_REJECTED = RequestStatus.REJECTED.value
_RECEIVED = RequestStatus.RECEIVED.value
_CANCELLED = RequestStatus.CANCELLED.value

PRODUCT_REQUEST_WORKFLOW = Workflow(
    name="product_request",
    description="Purchase request approval lifecycle",
    initial_state=_PENDING,
    states=(_PENDING, _APPROVED, _REJECTED, _RECEIVED, _CANCELLED),
    transitions=(
        Transition(_PENDING, _APPROVED, action=RequestAction.APPROVE.value,
                   guard=BUDGET_AVAILABLE, moves_funds=True),
        Transition(_PENDING, _REJECTED, action=RequestAction.REJECT.value,
                   guard=REASON_GIVEN),
        Transition(_PENDING, _CANCELLED, action=RequestAction.CANCEL.value),
        Transition(_PENDING, _PENDING, action=RequestAction.AMEND.value),
        Transition(_APPROVED, _RECEIVED, action=RequestAction.RECEIVE.value),
        Transition(_APPROVED, _CANCELLED, action=RequestAction.CANCEL.value,
                   moves_funds=True),
    ),
    terminal_states=(_REJECTED, _RECEIVED, _CANCELLED),
)

logger.info(
    "product_request_workflow_defined",
    extra={
        "workflow": PRODUCT_REQUEST_WORKFLOW.name,
        "states": list(PRODUCT_REQUEST_WORKFLOW.states),
        "transitions": len(PRODUCT_REQUEST_WORKFLOW.transitions),
    },
)

"""Booking workflows.

State machines for booking requests and vendor assignments.
"""

from booking_kernel.domain.models import AssignmentStatus, RequestStatus
from booking_kernel.domain.workflow import Transition, Workflow
from booking_kernel.logging_config import get_logger

logger = get_logger("domain.workflows")

_PENDING = RequestStatus.PENDING.value
_ACCEPTED = RequestStatus.ACCEPTED.value
_DECLINED = RequestStatus.DECLINED.value

BOOKING_REQUEST_WORKFLOW = Workflow(
    name="booking_request",
    description="Planner-to-vendor booking request lifecycle",
    initial_state=_PENDING,
    states=(_PENDING, _ACCEPTED, _DECLINED),
    transitions=(
        Transition(_PENDING, _ACCEPTED, action="accept"),
        Transition(_PENDING, _DECLINED, action="decline"),
    ),
    terminal_states=(_ACCEPTED, _DECLINED),
)

_REQUESTED = AssignmentStatus.REQUESTED.value
_CONFIRMED = AssignmentStatus.CONFIRMED.value
_ARRIVED = AssignmentStatus.ARRIVED.value
_COMPLETED = AssignmentStatus.COMPLETED.value
_CANCELLED = AssignmentStatus.CANCELLED.value

VENDOR_ASSIGNMENT_WORKFLOW = Workflow(
    name="vendor_assignment",
    description="Vendor engagement from request to on-site completion",
    initial_state=_REQUESTED,
    states=(_REQUESTED, _CONFIRMED, _ARRIVED, _COMPLETED, _CANCELLED),
    transitions=(
        Transition(_REQUESTED, _CONFIRMED, action="confirm"),
        Transition(_CONFIRMED, _ARRIVED, action="arrive"),
        Transition(_ARRIVED, _COMPLETED, action="complete"),
        Transition(_REQUESTED, _CANCELLED, action="cancel"),
        Transition(_CONFIRMED, _CANCELLED, action="cancel"),
        Transition(_ARRIVED, _CANCELLED, action="cancel"),
    ),
    terminal_states=(_COMPLETED, _CANCELLED),
)

logger.debug("booking_workflows_registered", extra={
    "workflows": [BOOKING_REQUEST_WORKFLOW.name, VENDOR_ASSIGNMENT_WORKFLOW.name],
})

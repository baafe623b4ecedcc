"""
Typed Exception Hierarchy for the Booking Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the kernel can detect is a recoverable, caller-visible error.
The UI / actions layer decides how to present it, so it must be able to
branch on the KIND of failure without parsing message strings:

    try:
        kernel.requests.accept(request_id)
    except InvalidTransitionError as e:
        show_toast(f"Request is already {e.current_state}")
    except NotFoundError as e:
        return api_response(code=e.code, id=e.entity_id)

Each class carries:
  1. A ``code`` class attribute (machine-readable, API-safe).
  2. Structured attributes describing the failure (ids, amounts, states).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BookingKernelError (base)
    |
    +-- NotFoundError
    |   +-- BookingRequestNotFoundError
    |   +-- AssignmentNotFoundError
    |   +-- TaskNotFoundError
    |   +-- AllocationNotFoundError
    |
    +-- DuplicateRequestError
    +-- InvalidTransitionError
    +-- ArrivalRequiredError
    +-- TimestampOrderError
    +-- InvalidTimestampError
    +-- OverPaymentError
    +-- InvalidAmountError
    +-- ProofRequiredError
    +-- AssignmentLockedError
    +-- PolicyConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|-----------------------------------------------------
REQUEST_NOT_FOUND       | Booking request id unknown
ASSIGNMENT_NOT_FOUND    | Assignment id unknown (or soft-removed)
TASK_NOT_FOUND          | Task id unknown within its assignment
ALLOCATION_NOT_FOUND    | Budget not initialized for event / category
DUPLICATE_REQUEST       | Live request exists for (event, function, vendor, category)
INVALID_TRANSITION      | State change not in the permitted forward set
ARRIVAL_REQUIRED        | Departure recorded before arrival
TIMESTAMP_ORDER         | Departure timestamp earlier than arrival timestamp
INVALID_TIMESTAMP       | Event-day timestamp given without a timezone
OVER_PAYMENT            | Paid amount exceeds agreed amount without override
INVALID_AMOUNT          | Negative amount, or paid amount decreasing
PROOF_REQUIRED          | Task completed without required proof reference
ASSIGNMENT_LOCKED       | Operation not allowed in the assignment's status
INVALID_POLICY          | Budget policy configuration is inconsistent

All exceptions inherit from Exception (not ValueError etc.) so domain
errors are catchable as a group without mixing in programming errors.
"""


class BookingKernelError(Exception):
    """
    Base exception for all booking kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "BOOKING_KERNEL_ERROR"


# Lookup failures


class NotFoundError(BookingKernelError):
    """Referenced id does not exist."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity} not found: {self.entity_id}")


class BookingRequestNotFoundError(NotFoundError):
    """Booking request with given id was not found."""

    code: str = "REQUEST_NOT_FOUND"
    entity: str = "Booking request"


class AssignmentNotFoundError(NotFoundError):
    """Vendor assignment with given id was not found (or was removed)."""

    code: str = "ASSIGNMENT_NOT_FOUND"
    entity: str = "Vendor assignment"


class TaskNotFoundError(NotFoundError):
    """Task id does not exist on the given assignment."""

    code: str = "TASK_NOT_FOUND"
    entity: str = "Vendor task"

    def __init__(self, entity_id: str, assignment_id: str):
        self.assignment_id = str(assignment_id)
        super().__init__(entity_id)


class AllocationNotFoundError(NotFoundError):
    """No budget allocation exists for the event (or category)."""

    code: str = "ALLOCATION_NOT_FOUND"
    entity: str = "Budget allocation"

    def __init__(self, event_id: str, category: str | None = None):
        self.event_id = event_id
        self.category = category
        key = f"{event_id}/{category}" if category else event_id
        super().__init__(key)


# Booking request failures


class DuplicateRequestError(BookingKernelError):
    """A live request already exists for the same booking key."""

    code: str = "DUPLICATE_REQUEST"

    def __init__(
        self,
        event_id: str,
        function_id: str | None,
        vendor_id: str,
        category: str,
        existing_request_id: str,
    ):
        self.event_id = event_id
        self.function_id = function_id
        self.vendor_id = vendor_id
        self.category = category
        self.existing_request_id = str(existing_request_id)
        super().__init__(
            f"Live booking request {self.existing_request_id} already exists for "
            f"event={event_id} function={function_id} vendor={vendor_id} "
            f"category={category!r}"
        )


# State machine failures


class InvalidTransitionError(BookingKernelError):
    """Requested state change is not in the permitted forward set."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        workflow: str,
        entity_id: str,
        current_state: str,
        requested_state: str,
    ):
        self.workflow = workflow
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(
            f"Invalid {workflow} transition for {self.entity_id}: "
            f"{current_state} -> {requested_state}"
        )


class ArrivalRequiredError(BookingKernelError):
    """Departure recorded for a vendor with no arrival timestamp."""

    code: str = "ARRIVAL_REQUIRED"

    def __init__(self, assignment_id: str):
        self.assignment_id = str(assignment_id)
        super().__init__(
            f"Cannot record departure for assignment {self.assignment_id}: "
            f"no arrival recorded"
        )


class TimestampOrderError(BookingKernelError):
    """Departure timestamp precedes the recorded arrival."""

    code: str = "TIMESTAMP_ORDER"

    def __init__(self, assignment_id: str, arrived_at: str, departed_at: str):
        self.assignment_id = str(assignment_id)
        self.arrived_at = arrived_at
        self.departed_at = departed_at
        super().__init__(
            f"Departure {departed_at} precedes arrival {arrived_at} "
            f"for assignment {self.assignment_id}"
        )


class InvalidTimestampError(BookingKernelError):
    """Timestamp has no timezone, so it cannot be ordered against kernel times."""

    code: str = "INVALID_TIMESTAMP"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be timezone-aware, got {value}")


# Money failures


class OverPaymentError(BookingKernelError):
    """Paid amount would exceed the agreed amount."""

    code: str = "OVER_PAYMENT"

    def __init__(self, assignment_id: str, paid_amount: str, agreed_amount: str):
        self.assignment_id = str(assignment_id)
        self.paid_amount = paid_amount
        self.agreed_amount = agreed_amount
        super().__init__(
            f"Payment {paid_amount} exceeds agreed amount {agreed_amount} "
            f"for assignment {self.assignment_id}"
        )


class InvalidAmountError(BookingKernelError):
    """Amount is negative, or a cumulative amount would decrease."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str, reason: str):
        self.field = field
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} {amount}: {reason}")


# Assignment failures


class ProofRequiredError(BookingKernelError):
    """Task marked completed without the required proof reference."""

    code: str = "PROOF_REQUIRED"

    def __init__(self, assignment_id: str, task_id: str):
        self.assignment_id = str(assignment_id)
        self.task_id = str(task_id)
        super().__init__(
            f"Task {self.task_id} on assignment {self.assignment_id} "
            f"requires proof of completion"
        )


class AssignmentLockedError(BookingKernelError):
    """Operation not permitted in the assignment's current status."""

    code: str = "ASSIGNMENT_LOCKED"

    def __init__(self, assignment_id: str, status: str, operation: str):
        self.assignment_id = str(assignment_id)
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} assignment {self.assignment_id} "
            f"in status {status}"
        )


# Configuration failures


class PolicyConfigError(BookingKernelError):
    """Budget policy configuration is inconsistent."""

    code: str = "INVALID_POLICY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid budget policy: {reason}")

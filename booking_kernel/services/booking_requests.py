"""
Booking Request Registry (``booking_kernel.services.booking_requests``).

Responsibility
--------------
Owns the planner-to-vendor booking request: creation with duplicate
protection, the ``pending -> accepted | declined`` transition, and
creation-ordered listings by event, vendor or planner.

Acceptance is a composite unit: under the event lock the registry asks
``VendorAssignmentRegistry`` to BUILD the assignment, then commits the
accepted request and the new assignment together.  If building fails the
request stays ``pending``; a second acceptance finds the request already
``accepted`` and fails with ``InvalidTransitionError``.  Either way at most
one assignment exists per request.

Invariants enforced
-------------------
* At most one live (non-declined) request per
  (event, function, vendor, category); category compared case- and
  whitespace-insensitively.
* Status changes follow ``BOOKING_REQUEST_WORKFLOW``.
* Requests are never deleted.

Failure modes
-------------
* ``DuplicateRequestError`` -- live request exists for the key.
* ``InvalidTransitionError`` -- not ``pending``, or unknown target status.
* ``BookingRequestNotFoundError`` -- unknown id.
* ``InvalidAmountError`` -- negative / non-numeric amount.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal
from uuid import UUID, uuid4

from booking_kernel.domain.categories import normalize_category
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.events import DomainEvent, RequestAccepted
from booking_kernel.domain.models import BookingRequest, RequestStatus, as_amount
from booking_kernel.domain.workflows import BOOKING_REQUEST_WORKFLOW
from booking_kernel.exceptions import (
    BookingRequestNotFoundError,
    DuplicateRequestError,
    InvalidTransitionError,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.dispatcher import EventDispatcher
from booking_kernel.services.vendor_assignments import VendorAssignmentRegistry
from booking_kernel.store import BookingStore, EventLedger

logger = get_logger("services.booking_requests")


def _booking_key(
    function_id: str | None,
    vendor_id: str,
    category: str,
) -> tuple[str | None, str, str]:
    return (function_id, vendor_id, normalize_category(category))


def _ordered(requests: Iterable[BookingRequest]) -> tuple[BookingRequest, ...]:
    return tuple(sorted(requests, key=lambda r: (r.created_at, r.sequence)))


class BookingRequestRegistry:
    """
    Booking requests and their acceptance into vendor assignments.

    Contract
    --------
    * ``create`` and ``transition`` are not idempotent: repeats are rejected
      with ``DuplicateRequestError`` / ``InvalidTransitionError``.
    * ``list_for`` returns a finite tuple snapshot.
    * ``RequestAccepted`` is published after the acceptance unit commits.
    """

    def __init__(
        self,
        store: BookingStore,
        assignments: VendorAssignmentRegistry,
        dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._assignments = assignments
        self._dispatcher = dispatcher or EventDispatcher()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        event_id: str,
        vendor_id: str,
        category: str,
        amount: Decimal | int | str,
        *,
        function_id: str | None = None,
        notes: str | None = None,
        vendor_name: str | None = None,
        planner_id: str | None = None,
        service: str | None = None,
    ) -> BookingRequest:
        """Open a ``pending`` request to ``vendor_id`` for ``category``."""
        budget = as_amount(amount, "amount")
        key = _booking_key(function_id, vendor_id, category)

        with LogContext.bind(event_id=event_id):
            with self._store.write(event_id) as ledger:
                existing = self._live_request(ledger, key)
                if existing is not None:
                    logger.warning("booking_request_duplicate_rejected", extra={
                        "vendor_id": vendor_id,
                        "category": category,
                        "existing_request_id": str(existing.id),
                    })
                    raise DuplicateRequestError(
                        event_id, function_id, vendor_id, category, str(existing.id),
                    )
                now = self._clock.now()
                request = BookingRequest(
                    id=uuid4(),
                    event_id=event_id,
                    vendor_id=vendor_id,
                    category=category,
                    amount=budget,
                    created_at=now,
                    updated_at=now,
                    sequence=self._store.next_sequence(),
                    function_id=function_id,
                    vendor_name=vendor_name,
                    planner_id=planner_id,
                    service=service,
                    notes=notes,
                )
                self._store.commit(ledger, requests=[request])

            logger.info("booking_request_created", extra={
                "request_id": str(request.id),
                "vendor_id": vendor_id,
                "category": category,
                "amount": str(budget),
            })
        return request

    # =========================================================================
    # Transitions
    # =========================================================================

    def transition(
        self,
        request_id: UUID,
        new_status: RequestStatus | str,
    ) -> BookingRequest:
        """
        Accept or decline a pending request.

        Acceptance also creates the request's vendor assignment in the same
        unit of work; see the module docstring.
        """
        event_id = self._store.event_of_request(request_id)
        events: list[DomainEvent] = []

        with LogContext.bind(event_id=event_id, request_id=request_id):
            with self._store.write(event_id) as ledger:
                current = ledger.requests.get(request_id)
                if current is None:
                    raise BookingRequestNotFoundError(str(request_id))
                target = self._coerce_status(current, new_status)
                BOOKING_REQUEST_WORKFLOW.require(
                    current.id, current.status.value, target.value,
                )
                now = self._clock.now()

                if target is RequestStatus.ACCEPTED:
                    assignment = self._assignments.build_from_request(ledger, current, now)
                    updated = replace(
                        current,
                        status=target,
                        updated_at=now,
                        assignment_id=assignment.id,
                    )
                    self._store.commit(ledger, requests=[updated], assignments=[assignment])
                    events.append(RequestAccepted(
                        event_id=event_id,
                        occurred_at=now,
                        request_id=updated.id,
                        assignment_id=assignment.id,
                        vendor_id=updated.vendor_id,
                        budget_category=assignment.budget_category,
                        agreed_amount=assignment.agreed_amount,
                    ))
                else:
                    updated = replace(current, status=target, updated_at=now)
                    self._store.commit(ledger, requests=[updated])

            logger.info("booking_request_transitioned", extra={
                "from_status": current.status.value,
                "to_status": updated.status.value,
                "assignment_id": str(updated.assignment_id) if updated.assignment_id else None,
            })
            self._dispatcher.publish(events)
        return updated

    def accept(self, request_id: UUID) -> BookingRequest:
        return self.transition(request_id, RequestStatus.ACCEPTED)

    def decline(self, request_id: UUID) -> BookingRequest:
        return self.transition(request_id, RequestStatus.DECLINED)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, request_id: UUID) -> BookingRequest:
        event_id = self._store.event_of_request(request_id)
        for r in self._store.snapshot(event_id).requests:
            if r.id == request_id:
                return r
        raise BookingRequestNotFoundError(str(request_id))

    def list_for(
        self,
        *,
        event_id: str | None = None,
        vendor_id: str | None = None,
        planner_id: str | None = None,
    ) -> tuple[BookingRequest, ...]:
        """Requests for exactly one of event / vendor / planner, oldest first."""
        selectors = [s for s in (event_id, vendor_id, planner_id) if s is not None]
        if len(selectors) != 1:
            raise ValueError("list_for needs exactly one of event_id, vendor_id, planner_id")

        if event_id is not None:
            return _ordered(self._store.snapshot(event_id).requests)

        found: list[BookingRequest] = []
        for snap in self._store.snapshots():
            for r in snap.requests:
                if vendor_id is not None and r.vendor_id == vendor_id:
                    found.append(r)
                elif planner_id is not None and r.planner_id == planner_id:
                    found.append(r)
        return _ordered(found)

    def find_existing(
        self,
        event_id: str,
        vendor_id: str,
        category: str,
        function_id: str | None = None,
    ) -> BookingRequest | None:
        """The live request for this booking key, if any."""
        key = _booking_key(function_id, vendor_id, category)
        for r in self.list_for(event_id=event_id):
            if r.is_live and _booking_key(r.function_id, r.vendor_id, r.category) == key:
                return r
        return None

    def pending_count(self, vendor_id: str) -> int:
        return sum(
            1 for r in self.list_for(vendor_id=vendor_id)
            if r.status is RequestStatus.PENDING
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _live_request(
        ledger: EventLedger,
        key: tuple[str | None, str, str],
    ) -> BookingRequest | None:
        for r in ledger.requests.values():
            if r.is_live and _booking_key(r.function_id, r.vendor_id, r.category) == key:
                return r
        return None

    @staticmethod
    def _coerce_status(
        current: BookingRequest,
        new_status: RequestStatus | str,
    ) -> RequestStatus:
        try:
            return RequestStatus(new_status)
        except ValueError:
            raise InvalidTransitionError(
                BOOKING_REQUEST_WORKFLOW.name,
                str(current.id),
                current.status.value,
                str(new_status),
            ) from None

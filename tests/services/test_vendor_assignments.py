"""Tests for VendorAssignmentRegistry: lifecycle, event day, payments, tasks, rollups."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.domain.events import AssignmentStatusChanged
from booking_kernel.domain.models import AssignmentStatus, TaskStatus
from booking_kernel.exceptions import (
    ArrivalRequiredError,
    AssignmentLockedError,
    AssignmentNotFoundError,
    InvalidAmountError,
    InvalidTimestampError,
    InvalidTransitionError,
    OverPaymentError,
    ProofRequiredError,
    TaskNotFoundError,
    TimestampOrderError,
)


class TestCreate:

    def test_initial_state(self, kernel, event_id):
        assignment = kernel.assignments.create(
            event_id, "sangeet", "v-dj-max", "DJ", None, "75000",
            vendor_name="DJ Max", vendor_phone="+91-98765-43210",
        )
        assert assignment.status is AssignmentStatus.REQUESTED
        assert assignment.paid_amount == Decimal("0")
        assert assignment.tasks == ()
        assert assignment.budget_category is BudgetCategory.ENTERTAINMENT
        assert assignment.balance_due == Decimal("75000")
        assert kernel.assignments.get(assignment.id) == assignment

    def test_explicit_budget_category_wins(self, kernel, event_id):
        assignment = kernel.assignments.create(
            event_id, "haldi", "v-1", "Caterer", BudgetCategory.GUEST, "1000",
        )
        assert assignment.budget_category is BudgetCategory.GUEST

    def test_text_budget_category_is_mapped(self, kernel, event_id):
        assignment = kernel.assignments.create(
            event_id, "haldi", "v-1", "Vendor", "Flowers", "1000",
        )
        assert assignment.budget_category is BudgetCategory.DECOR

    def test_unknown_assignment(self, kernel):
        with pytest.raises(AssignmentNotFoundError):
            kernel.assignments.get(uuid4())


class TestSetStatus:

    def test_forward_progression(self, kernel, create_assignment):
        assignment = create_assignment()
        for status in ("confirmed", "arrived", "completed"):
            assignment = kernel.assignments.set_status(assignment.id, status)
            assert assignment.status.value == status
        assert assignment.arrived_at is not None
        assert assignment.departed_at >= assignment.arrived_at

    @pytest.mark.parametrize("status", [
        AssignmentStatus.REQUESTED,
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.ARRIVED,
    ])
    def test_cancel_from_open_states(self, kernel, create_assignment, status):
        assignment = create_assignment(status=status)
        assert kernel.assignments.cancel(assignment.id).status is AssignmentStatus.CANCELLED

    @pytest.mark.parametrize("terminal", [AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(AssignmentStatus))
    def test_terminal_states_are_final(self, kernel, create_assignment, terminal, target):
        assignment = create_assignment(status=terminal)
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.set_status(assignment.id, target)
        assert kernel.assignments.get(assignment.id).status is terminal

    def test_regression_rejected(self, kernel, create_assignment):
        assignment = create_assignment(status=AssignmentStatus.ARRIVED)
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.set_status(assignment.id, AssignmentStatus.CONFIRMED)

    def test_skip_rejected(self, kernel, create_assignment):
        assignment = create_assignment()
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.set_status(assignment.id, "arrived")

    def test_unknown_status_rejected(self, kernel, create_assignment):
        assignment = create_assignment()
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.set_status(assignment.id, "on_the_way")

    def test_status_change_published(self, kernel, create_assignment):
        received = []
        kernel.subscribe(AssignmentStatusChanged, received.append)
        assignment = create_assignment()
        kernel.assignments.confirm(assignment.id)
        assert len(received) == 1
        assert received[0].from_status is AssignmentStatus.REQUESTED
        assert received[0].to_status is AssignmentStatus.CONFIRMED
        assert received[0].assignment_id == assignment.id


class TestArrivalAndDeparture:

    def test_arrival_then_departure_completes(self, kernel, create_assignment, deterministic_clock):
        assignment = create_assignment()
        arrived = kernel.assignments.record_arrival(assignment.id)
        assert arrived.arrived_at == deterministic_clock.now()
        assert arrived.status is AssignmentStatus.REQUESTED

        deterministic_clock.advance(3600)
        departed = kernel.assignments.record_departure(assignment.id)
        assert departed.status is AssignmentStatus.COMPLETED
        assert departed.departed_at >= departed.arrived_at

    def test_arrival_advances_confirmed_assignment(self, kernel, create_assignment):
        assignment = create_assignment(status=AssignmentStatus.CONFIRMED)
        assert kernel.assignments.record_arrival(assignment.id).status is AssignmentStatus.ARRIVED

    def test_explicit_arrival_time(self, kernel, create_assignment, deterministic_clock):
        assignment = create_assignment()
        at = deterministic_clock.now() - timedelta(minutes=15)
        assert kernel.assignments.record_arrival(assignment.id, at=at).arrived_at == at

    def test_departure_requires_arrival(self, kernel, create_assignment):
        assignment = create_assignment(status=AssignmentStatus.CONFIRMED)
        with pytest.raises(ArrivalRequiredError) as exc:
            kernel.assignments.record_departure(assignment.id)
        assert exc.value.code == "ARRIVAL_REQUIRED"
        assert kernel.assignments.get(assignment.id).status is AssignmentStatus.CONFIRMED

    def test_departure_before_arrival_rejected(self, kernel, create_assignment, deterministic_clock):
        assignment = create_assignment()
        kernel.assignments.record_arrival(assignment.id)
        with pytest.raises(TimestampOrderError):
            kernel.assignments.record_departure(
                assignment.id, at=deterministic_clock.now() - timedelta(seconds=1),
            )

    @pytest.mark.parametrize("terminal", [AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED])
    def test_no_event_day_updates_after_terminal(self, kernel, create_assignment, terminal):
        assignment = create_assignment(status=terminal)
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.record_arrival(assignment.id)
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.record_departure(assignment.id)

    def test_naive_arrival_rejected_and_assignment_still_completes(
        self, kernel, create_assignment, deterministic_clock,
    ):
        assignment = create_assignment(status=AssignmentStatus.CONFIRMED)
        with pytest.raises(InvalidTimestampError) as exc:
            kernel.assignments.record_arrival(assignment.id, at=datetime(2025, 1, 15, 8, 0))
        assert exc.value.code == "INVALID_TIMESTAMP"
        assert exc.value.field == "arrived_at"
        assert kernel.assignments.get(assignment.id).arrived_at is None

        kernel.assignments.record_arrival(assignment.id)
        deterministic_clock.advance_hours(2)
        done = kernel.assignments.set_status(assignment.id, AssignmentStatus.COMPLETED)
        assert done.status is AssignmentStatus.COMPLETED

    def test_naive_departure_rejected(self, kernel, create_assignment):
        assignment = create_assignment()
        kernel.assignments.record_arrival(assignment.id)
        with pytest.raises(InvalidTimestampError):
            kernel.assignments.record_departure(assignment.id, at=datetime(2025, 1, 15, 23, 0))
        assert kernel.assignments.get(assignment.id).status is AssignmentStatus.REQUESTED

    def test_offset_timestamps_stored_as_utc(self, kernel, create_assignment):
        ist = timezone(timedelta(hours=5, minutes=30))
        assignment = create_assignment()
        arrived = kernel.assignments.record_arrival(
            assignment.id, at=datetime(2025, 1, 15, 14, 30, tzinfo=ist),
        )
        assert arrived.arrived_at == datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert arrived.arrived_at.tzinfo is timezone.utc

    def test_naive_expected_arrival_and_due_time_rejected(
        self, kernel, create_assignment, event_id,
    ):
        with pytest.raises(InvalidTimestampError):
            kernel.assignments.create(
                event_id, "fn-1", "v-naive", "Decor", None, "1000",
                expected_arrival=datetime(2025, 1, 15, 7, 0),
            )
        assert kernel.assignments.list_for_event(event_id) == ()

        assignment = create_assignment()
        with pytest.raises(InvalidTimestampError):
            kernel.assignments.add_task(assignment.id, "Set up", due_time=datetime(2025, 1, 15, 7, 0))
        assert kernel.assignments.get(assignment.id).tasks == ()


class TestPayments:

    def test_record_payment_sets_cumulative_amount(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="50000")
        kernel.assignments.record_payment(assignment.id, "20000")
        paid = kernel.assignments.record_payment(assignment.id, "35000")
        assert paid.paid_amount == Decimal("35000")
        assert paid.balance_due == Decimal("15000")

    def test_overpayment_rejected(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="50000")
        with pytest.raises(OverPaymentError) as exc:
            kernel.assignments.record_payment(assignment.id, "60000")
        assert exc.value.code == "OVER_PAYMENT"
        assert kernel.assignments.get(assignment.id).paid_amount == Decimal("0")

    def test_overpayment_with_override(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="50000")
        paid = kernel.assignments.record_payment(assignment.id, "60000", allow_overpayment=True)
        assert paid.paid_amount == Decimal("60000")

    def test_paid_amount_cannot_decrease(self, kernel, create_assignment):
        assignment = create_assignment()
        kernel.assignments.record_payment(assignment.id, "30000")
        with pytest.raises(InvalidAmountError):
            kernel.assignments.record_payment(assignment.id, "10000")

    def test_paying_exactly_agreed_is_allowed(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="50000")
        assert kernel.assignments.record_payment(assignment.id, "50000").balance_due == Decimal("0")

    def test_add_payment_increments(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="50000")
        kernel.assignments.add_payment(assignment.id, "10000")
        kernel.assignments.add_payment(assignment.id, "15000.50")
        assert kernel.assignments.get(assignment.id).paid_amount == Decimal("25000.50")
        with pytest.raises(OverPaymentError):
            kernel.assignments.add_payment(assignment.id, "25000")

    def test_negative_payment_rejected(self, kernel, create_assignment):
        assignment = create_assignment()
        with pytest.raises(InvalidAmountError):
            kernel.assignments.add_payment(assignment.id, "-1")


class TestTasks:

    def test_tasks_are_appended_in_order(self, kernel, create_assignment):
        assignment = create_assignment()
        first = kernel.assignments.add_task(assignment.id, "Set up stage")
        second = kernel.assignments.add_task(assignment.id, "Sound check", description="by 5pm")
        tasks = kernel.assignments.get(assignment.id).tasks
        assert [t.id for t in tasks] == [first.id, second.id]
        assert tasks[1].description == "by 5pm"
        assert all(t.status is TaskStatus.PENDING for t in tasks)

    def test_status_changes_are_unordered(self, kernel, create_assignment):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Mandap flowers")
        for status in ("blocked", "in_progress", "pending", "completed", "in_progress"):
            task = kernel.assignments.set_task_status(assignment.id, task.id, status)
            assert task.status.value == status
        assert task.completed_at is None

    def test_completion_stamps_time(self, kernel, create_assignment, deterministic_clock):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Light check")
        done = kernel.assignments.set_task_status(assignment.id, task.id, TaskStatus.COMPLETED)
        assert done.completed_at == deterministic_clock.now()

    def test_proof_required_to_complete(self, kernel, create_assignment):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Photo of setup", requires_proof=True)
        with pytest.raises(ProofRequiredError) as exc:
            kernel.assignments.set_task_status(assignment.id, task.id, "completed")
        assert exc.value.code == "PROOF_REQUIRED"
        with pytest.raises(ProofRequiredError):
            kernel.assignments.set_task_status(assignment.id, task.id, "completed", proof_url="   ")
        done = kernel.assignments.set_task_status(
            assignment.id, task.id, "completed", proof_url="https://cdn.example/p/1.jpg",
        )
        assert done.proof_url == "https://cdn.example/p/1.jpg"

    def test_existing_proof_satisfies_requirement(self, kernel, create_assignment):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Photo", requires_proof=True)
        kernel.assignments.set_task_status(assignment.id, task.id, "in_progress", proof_url="s3://p/2")
        done = kernel.assignments.set_task_status(assignment.id, task.id, "completed")
        assert done.status is TaskStatus.COMPLETED

    def test_policy_default_for_proof(self, kernel, create_assignment):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Anything")
        assert task.requires_proof is False

    def test_unknown_task(self, kernel, create_assignment):
        assignment = create_assignment()
        with pytest.raises(TaskNotFoundError) as exc:
            kernel.assignments.set_task_status(assignment.id, uuid4(), "completed")
        assert exc.value.assignment_id == str(assignment.id)

    def test_unknown_task_status(self, kernel, create_assignment):
        assignment = create_assignment()
        task = kernel.assignments.add_task(assignment.id, "Anything")
        with pytest.raises(InvalidTransitionError):
            kernel.assignments.set_task_status(assignment.id, task.id, "abandoned")


class TestBackupAndDelete:

    @pytest.mark.parametrize("status", [
        AssignmentStatus.REQUESTED,
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.ARRIVED,
    ])
    def test_backup_in_open_states(self, kernel, create_assignment, status):
        assignment = create_assignment(status=status)
        updated = kernel.assignments.set_backup(assignment.id, "v-backup", "Backup Caterers")
        assert updated.backup_vendor_id == "v-backup"
        assert updated.backup_vendor_name == "Backup Caterers"
        assert updated.vendor_id == assignment.vendor_id

    def test_backup_rejected_when_terminal(self, kernel, create_assignment):
        assignment = create_assignment(status=AssignmentStatus.COMPLETED)
        with pytest.raises(AssignmentLockedError):
            kernel.assignments.set_backup(assignment.id, "v-backup", "Backup")

    def test_delete_requested_assignment(self, kernel, create_assignment, event_id):
        assignment = create_assignment()
        kernel.assignments.delete(assignment.id)
        assert kernel.assignments.list_for_event(event_id) == ()
        with pytest.raises(AssignmentNotFoundError):
            kernel.assignments.get(assignment.id)
        with pytest.raises(AssignmentNotFoundError):
            kernel.assignments.confirm(assignment.id)

    @pytest.mark.parametrize("status", [
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.COMPLETED,
        AssignmentStatus.CANCELLED,
    ])
    def test_delete_locked_after_requested(self, kernel, create_assignment, status):
        assignment = create_assignment(status=status)
        with pytest.raises(AssignmentLockedError) as exc:
            kernel.assignments.delete(assignment.id)
        assert exc.value.code == "ASSIGNMENT_LOCKED"
        assert exc.value.status == status.value


class TestReadsAndRollups:

    def test_rollup_committed_and_spent(self, kernel, create_assignment, event_id):
        requested = create_assignment(vendor_id="v-1", agreed_amount="10000")
        confirmed = create_assignment(vendor_id="v-2", agreed_amount="20000",
                                      status=AssignmentStatus.CONFIRMED)
        completed = create_assignment(vendor_id="v-3", agreed_amount="30000",
                                      status=AssignmentStatus.COMPLETED)
        cancelled = create_assignment(vendor_id="v-4", agreed_amount="40000")
        kernel.assignments.record_payment(requested.id, "1000")
        kernel.assignments.record_payment(confirmed.id, "2000")
        kernel.assignments.record_payment(completed.id, "30000")
        kernel.assignments.record_payment(cancelled.id, "4000")
        kernel.assignments.cancel(cancelled.id)

        rollup = kernel.assignments.rollup(event_id)
        assert rollup[BudgetCategory.FOOD].committed == Decimal("50000")
        assert rollup[BudgetCategory.FOOD].spent == Decimal("33000")
        assert rollup[BudgetCategory.VENUE].committed == Decimal("0")
        assert set(rollup) == set(BudgetCategory)
        assert kernel.assignments.committed(event_id, BudgetCategory.FOOD) == Decimal("50000")
        assert kernel.assignments.spent(event_id, BudgetCategory.FOOD) == Decimal("33000")

    def test_removed_assignments_excluded_from_rollup(self, kernel, create_assignment, event_id):
        assignment = create_assignment()
        kernel.assignments.record_payment(assignment.id, "500")
        kernel.assignments.delete(assignment.id)
        assert kernel.assignments.spent(event_id, BudgetCategory.FOOD) == Decimal("0")

    def test_list_for_function_and_find(self, kernel, create_assignment, event_id):
        sangeet = create_assignment(vendor_id="v-dj", vendor_category="DJ", function_id="sangeet")
        create_assignment(vendor_id="v-dj", vendor_category="DJ", function_id="reception")
        assert kernel.assignments.list_for_function(event_id, "sangeet") == (sangeet,)
        assert kernel.assignments.find(event_id, "v-dj", "sangeet") == sangeet
        assert kernel.assignments.find(event_id, "v-dj", "haldi") is None

    def test_by_category(self, kernel, create_assignment, event_id):
        dj = create_assignment(vendor_id="v-dj", vendor_category="DJ")
        create_assignment(vendor_id="v-cater", vendor_category="Caterer")
        assert kernel.assignments.by_category(event_id, BudgetCategory.ENTERTAINMENT) == (dj,)

    def test_assignment_summary(self, kernel, create_assignment, event_id):
        create_assignment(vendor_id="v-1", agreed_amount="100")
        create_assignment(vendor_id="v-2", agreed_amount="200", status=AssignmentStatus.CONFIRMED)
        done = create_assignment(vendor_id="v-3", agreed_amount="300",
                                 status=AssignmentStatus.COMPLETED)
        create_assignment(vendor_id="v-4", agreed_amount="400", status=AssignmentStatus.CANCELLED)
        kernel.assignments.record_payment(done.id, "300")

        summary = kernel.assignments.assignment_summary(event_id)
        assert summary.total == 4
        assert summary.requested == 1
        assert summary.confirmed == 1
        assert summary.arrived == 1
        assert summary.completed == 1
        assert summary.cancelled == 1
        assert summary.total_agreed == Decimal("1000")
        assert summary.total_paid == Decimal("300")

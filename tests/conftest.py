"""
Pytest fixtures for the booking kernel test suite.

Provides:
- Structured logging configured for every test, plus a JSON log capture
- Deterministic clock, fresh store and fully wired BookingKernel
- A SQLite in-memory engine for the persistence adapter
- Small factories for requests and assignments
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from booking_kernel.config import BudgetPolicy
from booking_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from booking_kernel.domain.clock import DeterministicClock
from booking_kernel.domain.models import AssignmentStatus
from booking_kernel.kernel import BookingKernel
from booking_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from booking_kernel.store import BookingStore

TEST_EVENT_ID = "evt-sharma-wedding"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as running many threads against one event lock"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture booking_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, kernel):
            kernel.budget.initialize("evt-1", "1000")
            logs = captured_logs()
            assert any(r["message"] == "budget_initialized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("booking_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock / store / kernel fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def policy() -> BudgetPolicy:
    return BudgetPolicy.with_defaults()


@pytest.fixture
def store() -> BookingStore:
    return BookingStore()


@pytest.fixture
def kernel(store, deterministic_clock, policy) -> BookingKernel:
    """A kernel wired around the test store and clock."""
    return BookingKernel(store=store, clock=deterministic_clock, policy=policy)


@pytest.fixture
def event_id() -> str:
    return TEST_EVENT_ID


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_request(kernel, event_id):
    """Factory fixture to open a booking request with sensible defaults."""

    def _create(
        vendor_id: str = "v-lens-studio",
        category: str = "Videography",
        amount: Decimal | str = "50000",
        **kwargs,
    ):
        kwargs.setdefault("event_id", event_id)
        return kernel.requests.create(
            kwargs.pop("event_id"), vendor_id, category, amount, **kwargs,
        )

    return _create


@pytest.fixture
def create_assignment(kernel, event_id):
    """Factory fixture to create a vendor assignment, optionally advanced to a status."""

    def _create(
        vendor_id: str = "v-royal-caterers",
        vendor_category: str = "Caterer",
        agreed_amount: Decimal | str = "50000",
        status: AssignmentStatus = AssignmentStatus.REQUESTED,
        function_id: str | None = "sangeet",
        budget_category=None,
    ):
        assignment = kernel.assignments.create(
            event_id, function_id, vendor_id, vendor_category,
            budget_category, agreed_amount,
        )
        path = [
            AssignmentStatus.CONFIRMED,
            AssignmentStatus.ARRIVED,
            AssignmentStatus.COMPLETED,
        ]
        if status is AssignmentStatus.CANCELLED:
            return kernel.assignments.cancel(assignment.id)
        for step in path:
            if assignment.status is status:
                break
            assignment = kernel.assignments.set_status(assignment.id, step)
        return assignment

    return _create


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh SQLite in-memory engine with all tables per test."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


"""
Budget allocation arithmetic (``booking_kernel.domain.allocation``).

Responsibility
--------------
Pure functions behind the ``BudgetAllocator``: splitting a total budget
across the nine categories, expressing an amount as a percent of total,
and deriving a category's health from its spent/allocated ratio.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No clock, no store, no logging.

Invariants enforced
-------------------
* ``distribute`` returns an entry for every category and its amounts sum
  exactly to the total (rounding residue goes to the heaviest weight).
* ``derive_status`` is a pure function of (spent, allocated, thresholds).
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from booking_kernel.domain.categories import CATEGORY_INFO, BudgetCategory
from booking_kernel.domain.models import ZERO, AllocationStatus, RangeFit

HUNDRED = Decimal("100")
PERCENT_PLACES = 4


def quantize(amount: Decimal, places: int) -> Decimal:
    """Round HALF_UP to ``places`` decimal places."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def distribute(
    total: Decimal,
    weights: Mapping[BudgetCategory, Decimal],
    places: int = 2,
) -> dict[BudgetCategory, Decimal]:
    """
    Split ``total`` across every category by percentage weight.

    Weights are percents (summing to 100).  Each share is rounded to
    ``places``; the difference between the rounded sum and the total is
    added to the category with the largest weight.
    """
    weight_sum = sum(weights.values(), ZERO)
    shares: dict[BudgetCategory, Decimal] = {}
    for category in BudgetCategory:
        weight = weights.get(category, ZERO)
        if weight_sum == ZERO:
            shares[category] = quantize(ZERO, places)
        else:
            shares[category] = quantize(total * weight / weight_sum, places)

    residue = quantize(total, places) - sum(shares.values(), ZERO)
    if residue != ZERO:
        heaviest = max(BudgetCategory, key=lambda c: weights.get(c, ZERO))
        shares[heaviest] += residue
    return shares


def percent_of(amount: Decimal, total: Decimal) -> Decimal:
    """``amount`` as a percent of ``total``; zero when total is zero."""
    if total == ZERO:
        return quantize(ZERO, PERCENT_PLACES)
    return quantize(amount * HUNDRED / total, PERCENT_PLACES)


def derive_status(
    spent: Decimal,
    allocated: Decimal,
    warning_ratio: Decimal,
    over_ratio: Decimal,
) -> AllocationStatus:
    """
    Category health from the spent/allocated ratio.

    ratio <= warning_ratio -> ON_TRACK; <= over_ratio -> WARNING; else OVER.
    A zero allocation is ON_TRACK while nothing is spent, OVER otherwise.
    """
    if allocated <= ZERO:
        return AllocationStatus.ON_TRACK if spent <= ZERO else AllocationStatus.OVER
    ratio = spent / allocated
    if ratio <= warning_ratio:
        return AllocationStatus.ON_TRACK
    if ratio <= over_ratio:
        return AllocationStatus.WARNING
    return AllocationStatus.OVER


def range_fit(category: BudgetCategory, allocated_percent: Decimal) -> RangeFit:
    info = CATEGORY_INFO[category]
    if allocated_percent < info.min_percent:
        return RangeFit.BELOW_RANGE
    if allocated_percent > info.max_percent:
        return RangeFit.ABOVE_RANGE
    return RangeFit.WITHIN_RANGE

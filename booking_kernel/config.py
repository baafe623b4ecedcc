"""
Budget Policy Configuration (``booking_kernel.config``).

Responsibility
--------------
Holds the tunable defaults of the kernel -- the default budget split, the
warning / over thresholds, rounding precision, the default function id and
task-proof requirement -- and loads them from a YAML file.

The default weights and thresholds are typical wedding-planning values,
so they are configurable rather than constants.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Inconsistent values (weights not summing to 100, unknown categories,
  thresholds out of order)  -> ``PolicyConfigError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any, Self

import yaml

from booking_kernel.domain.categories import BudgetCategory, CategoryMapper
from booking_kernel.exceptions import PolicyConfigError
from booking_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_WEIGHTS: Mapping[BudgetCategory, Decimal] = MappingProxyType({
    BudgetCategory.VENUE: Decimal("30"),
    BudgetCategory.FOOD: Decimal("25"),
    BudgetCategory.DECOR: Decimal("10"),
    BudgetCategory.ENTERTAINMENT: Decimal("10"),
    BudgetCategory.PHOTOGRAPHY: Decimal("8"),
    BudgetCategory.BRIDAL: Decimal("7"),
    BudgetCategory.LOGISTICS: Decimal("5"),
    BudgetCategory.GUEST: Decimal("3"),
    BudgetCategory.MISC: Decimal("2"),
})


@dataclass(frozen=True)
class BudgetPolicy:
    """Configuration schema for the booking kernel."""

    weights: Mapping[BudgetCategory, Decimal] = field(
        default_factory=lambda: DEFAULT_WEIGHTS
    )
    warning_ratio: Decimal = Decimal("0.80")
    over_ratio: Decimal = Decimal("1.00")
    amount_places: int = 2
    default_function_id: str = "default"
    require_task_proof: bool = False
    category_aliases: Mapping[str, BudgetCategory] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        missing = [c.value for c in BudgetCategory if c not in self.weights]
        if missing:
            raise PolicyConfigError(f"weights missing categories: {', '.join(missing)}")
        if any(w < 0 for w in self.weights.values()):
            raise PolicyConfigError("weights cannot be negative")
        total = sum(self.weights.values(), Decimal("0"))
        if total != Decimal("100"):
            raise PolicyConfigError(f"weights must sum to 100, got {total}")
        if not Decimal("0") < self.warning_ratio <= self.over_ratio:
            raise PolicyConfigError(
                "thresholds must satisfy 0 < warning_ratio <= over_ratio"
            )
        if self.amount_places < 0:
            raise PolicyConfigError("amount_places cannot be negative")
        if not self.default_function_id:
            raise PolicyConfigError("default_function_id cannot be empty")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a policy from a parsed YAML / JSON mapping.

        Keys not present keep their defaults.  Weights may be given for all
        nine categories only.
        """
        kwargs: dict[str, Any] = {}
        try:
            if "weights" in data:
                kwargs["weights"] = MappingProxyType({
                    BudgetCategory(str(k)): _decimal(v, f"weights.{k}")
                    for k, v in data["weights"].items()
                })
            if "thresholds" in data:
                thresholds = data["thresholds"]
                if "warning" in thresholds:
                    kwargs["warning_ratio"] = _decimal(thresholds["warning"], "thresholds.warning")
                if "over" in thresholds:
                    kwargs["over_ratio"] = _decimal(thresholds["over"], "thresholds.over")
            if "category_aliases" in data:
                kwargs["category_aliases"] = MappingProxyType({
                    str(alias): BudgetCategory(str(cat))
                    for alias, cat in data["category_aliases"].items()
                })
            if "amount_places" in data:
                kwargs["amount_places"] = int(data["amount_places"])
        except ValueError as e:
            raise PolicyConfigError(str(e)) from e

        if "default_function_id" in data:
            kwargs["default_function_id"] = str(data["default_function_id"])
        if "require_task_proof" in data:
            flag = data["require_task_proof"]
            if not isinstance(flag, bool):
                raise PolicyConfigError(f"require_task_proof must be true or false, got {flag!r}")
            kwargs["require_task_proof"] = flag

        policy = cls(**kwargs)
        logger.info("budget_policy_loaded", extra={
            "warning_ratio": str(policy.warning_ratio),
            "over_ratio": str(policy.over_ratio),
            "alias_count": len(policy.category_aliases),
        })
        return policy

    def mapper(self) -> CategoryMapper:
        """Category mapper including this policy's extra aliases."""
        return CategoryMapper(self.category_aliases)


def _decimal(value: Any, name: str) -> Decimal:
    # str() first so YAML floats like 0.8 become Decimal("0.8"), not binary noise
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise PolicyConfigError(f"{name} is not a number: {value!r}") from e


def load_policy(path: str | Path) -> BudgetPolicy:
    """
    Load a ``BudgetPolicy`` from a YAML file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        PolicyConfigError: if the values are inconsistent.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, Mapping):
        raise PolicyConfigError(f"{path}: top level must be a mapping")
    return BudgetPolicy.from_dict(data.get("budget_policy", data))

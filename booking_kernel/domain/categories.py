"""
Budget categories and the service-category mapper.

Responsibility
--------------
Defines the closed set of nine budget buckets an event budget is split
across, and ``map_category`` -- the pure, total function that files a
vendor's free-text service category ("Videography", "DJ", "Mehendi
Artist") under one of them.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O, no dependencies.

Invariants enforced
-------------------
* ``map_category`` never raises and always returns a ``BudgetCategory``.
* Identical input always yields identical output.
* Unrecognized input maps to ``BudgetCategory.MISC``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType


class BudgetCategory(Enum):
    """The fixed budget buckets of an event."""
    VENUE = "venue"
    FOOD = "food"
    DECOR = "decor"
    ENTERTAINMENT = "entertainment"
    PHOTOGRAPHY = "photography"
    BRIDAL = "bridal"
    LOGISTICS = "logistics"
    GUEST = "guest"
    MISC = "misc"

    @property
    def info(self) -> "CategoryInfo":
        return CATEGORY_INFO[self]


@dataclass(frozen=True)
class CategoryInfo:
    """Display name and the industry-standard share of total budget."""
    name: str
    min_percent: Decimal
    max_percent: Decimal


CATEGORY_INFO: Mapping[BudgetCategory, CategoryInfo] = MappingProxyType({
    BudgetCategory.VENUE: CategoryInfo("Venue & Infrastructure", Decimal("20"), Decimal("30")),
    BudgetCategory.FOOD: CategoryInfo("Food & Beverage", Decimal("25"), Decimal("35")),
    BudgetCategory.DECOR: CategoryInfo("Decoration & Design", Decimal("15"), Decimal("25")),
    BudgetCategory.ENTERTAINMENT: CategoryInfo("Entertainment", Decimal("5"), Decimal("10")),
    BudgetCategory.PHOTOGRAPHY: CategoryInfo("Photography & Video", Decimal("5"), Decimal("10")),
    BudgetCategory.BRIDAL: CategoryInfo("Bridal & Groom", Decimal("3"), Decimal("8")),
    BudgetCategory.LOGISTICS: CategoryInfo("Logistics", Decimal("3"), Decimal("8")),
    BudgetCategory.GUEST: CategoryInfo("Guest Experience", Decimal("2"), Decimal("5")),
    BudgetCategory.MISC: CategoryInfo("Miscellaneous", Decimal("5"), Decimal("10")),
})


# Keys are normalized (see ``normalize_category``).
DEFAULT_ALIASES: Mapping[str, BudgetCategory] = MappingProxyType({
    # photography
    "photography": BudgetCategory.PHOTOGRAPHY,
    "photographer": BudgetCategory.PHOTOGRAPHY,
    "photo": BudgetCategory.PHOTOGRAPHY,
    "videography": BudgetCategory.PHOTOGRAPHY,
    "videographer": BudgetCategory.PHOTOGRAPHY,
    "video": BudgetCategory.PHOTOGRAPHY,
    "photo video": BudgetCategory.PHOTOGRAPHY,
    "drone": BudgetCategory.PHOTOGRAPHY,
    "candid photography": BudgetCategory.PHOTOGRAPHY,
    # entertainment
    "entertainment": BudgetCategory.ENTERTAINMENT,
    "music": BudgetCategory.ENTERTAINMENT,
    "dj": BudgetCategory.ENTERTAINMENT,
    "live band": BudgetCategory.ENTERTAINMENT,
    "band": BudgetCategory.ENTERTAINMENT,
    "anchor": BudgetCategory.ENTERTAINMENT,
    "emcee": BudgetCategory.ENTERTAINMENT,
    "choreographer": BudgetCategory.ENTERTAINMENT,
    # food
    "catering": BudgetCategory.FOOD,
    "caterer": BudgetCategory.FOOD,
    "food": BudgetCategory.FOOD,
    "food beverage": BudgetCategory.FOOD,
    "beverage": BudgetCategory.FOOD,
    "bar": BudgetCategory.FOOD,
    "bakery": BudgetCategory.FOOD,
    # decor
    "decor": BudgetCategory.DECOR,
    "decoration": BudgetCategory.DECOR,
    "decorator": BudgetCategory.DECOR,
    "florist": BudgetCategory.DECOR,
    "flowers": BudgetCategory.DECOR,
    "lighting": BudgetCategory.DECOR,
    "tent house": BudgetCategory.DECOR,
    # bridal
    "bridal": BudgetCategory.BRIDAL,
    "makeup": BudgetCategory.BRIDAL,
    "makeup artist": BudgetCategory.BRIDAL,
    "mehendi": BudgetCategory.BRIDAL,
    "mehndi": BudgetCategory.BRIDAL,
    "styling": BudgetCategory.BRIDAL,
    "bridal wear": BudgetCategory.BRIDAL,
    # venue
    "venue": BudgetCategory.VENUE,
    "venues": BudgetCategory.VENUE,
    "banquet hall": BudgetCategory.VENUE,
    "hall": BudgetCategory.VENUE,
    # logistics
    "logistics": BudgetCategory.LOGISTICS,
    "transport": BudgetCategory.LOGISTICS,
    "transportation": BudgetCategory.LOGISTICS,
    "valet": BudgetCategory.LOGISTICS,
    "hotel": BudgetCategory.LOGISTICS,
    "accommodation": BudgetCategory.LOGISTICS,
    # guest
    "guest": BudgetCategory.GUEST,
    "guest experience": BudgetCategory.GUEST,
    "gifting": BudgetCategory.GUEST,
    "invitations": BudgetCategory.GUEST,
    "signage": BudgetCategory.GUEST,
    "welcome kits": BudgetCategory.GUEST,
    # misc
    "misc": BudgetCategory.MISC,
    "miscellaneous": BudgetCategory.MISC,
    "pandit": BudgetCategory.MISC,
    "priest": BudgetCategory.MISC,
})

_SEPARATORS = re.compile(r"[\s&/,+\-_.]+")


def normalize_category(raw: object) -> str:
    """Lower-case, trim and collapse separators: ``" Photo & Video "`` -> ``"photo video"``."""
    if raw is None:
        return ""
    text = str(raw).strip().casefold()
    return _SEPARATORS.sub(" ", text).strip()


class CategoryMapper:
    """
    Maps free-text vendor categories to ``BudgetCategory``.

    Lookup order: exact alias (every enum value is its own alias), then the
    alias with a trailing plural ``s`` removed.  Anything else is ``MISC``.
    """

    def __init__(self, extra_aliases: Mapping[str, BudgetCategory] | None = None):
        aliases = dict(DEFAULT_ALIASES)
        for raw, category in (extra_aliases or {}).items():
            aliases[normalize_category(raw)] = BudgetCategory(category)
        self._aliases: Mapping[str, BudgetCategory] = MappingProxyType(aliases)

    def map(self, raw: object) -> BudgetCategory:
        key = normalize_category(raw)
        if not key:
            return BudgetCategory.MISC
        found = self._aliases.get(key)
        if found is not None:
            return found
        if key.endswith("s"):
            found = self._aliases.get(key[:-1])
            if found is not None:
                return found
        return BudgetCategory.MISC

    __call__ = map


_DEFAULT_MAPPER = CategoryMapper()


def map_category(raw: object) -> BudgetCategory:
    """Map a free-text service category using the default alias table."""
    return _DEFAULT_MAPPER.map(raw)

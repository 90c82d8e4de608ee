"""
Tiered Pricing Resolver  (Strategy Pattern)
===========================================

Price per person depends on the total number of passengers on a trip and
is looked up in the destination's tier table:

* **No tiers**      -- flat rate of 1 credit per seat, whatever the count.
* **Exact tier**    -- the tier whose ``passenger_count`` equals the count.
* **No exact tier** -- degraded mode: the tier with the highest
  ``passenger_count`` is used and a warning is logged.  With sparse tier
  tables this can charge more than expected; the fallback is kept as-is.

Everything here is pure: no I/O, safe to call concurrently.
Complexity: O(t) per lookup, t = number of tiers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class TierLike(Protocol):
    passenger_count: int
    cost_per_person: int


@dataclass(frozen=True)
class Tier:
    passenger_count: int
    cost_per_person: int


@dataclass(frozen=True)
class PricingInfo:
    cost_per_person: int
    total_cost: int
    passenger_count: int
    savings: Optional[int] = None


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def cost_per_person(self, passenger_count: int) -> int: ...


class FlatRatePricing(PricingStrategy):
    RATE = 1

    def cost_per_person(self, passenger_count: int) -> int:
        return self.RATE


class TieredPricing(PricingStrategy):
    def __init__(self, tiers: Iterable[TierLike]):
        self.tiers: list[Tier] = sorted(
            (Tier(t.passenger_count, t.cost_per_person) for t in tiers),
            key=lambda t: t.passenger_count,
        )
        if not self.tiers:
            raise ValueError("TieredPricing needs at least one tier")

    def cost_per_person(self, passenger_count: int) -> int:
        for tier in self.tiers:
            if tier.passenger_count == passenger_count:
                return tier.cost_per_person

        highest = self.tiers[-1]
        logger.warning(
            "No pricing tier for %d passengers, using max tier (%d passengers)",
            passenger_count,
            highest.passenger_count,
        )
        return highest.cost_per_person

    def single_passenger_cost(self) -> Optional[int]:
        for tier in self.tiers:
            if tier.passenger_count == 1:
                return tier.cost_per_person
        return None


# ── Facade ────────────────────────────────────────────────────────────


def has_dynamic_pricing(tiers: Sequence[TierLike]) -> bool:
    return len(tiers) > 0


def pricing_for(tiers: Sequence[TierLike]) -> PricingStrategy:
    if not has_dynamic_pricing(tiers):
        return FlatRatePricing()
    return TieredPricing(tiers)


def resolve_price(tiers: Sequence[TierLike], passenger_count: int) -> int:
    """Per-person price for a trip carrying *passenger_count* passengers."""
    return pricing_for(tiers).cost_per_person(passenger_count)


def price_info(tiers: Sequence[TierLike], passenger_count: int) -> PricingInfo:
    strategy = pricing_for(tiers)
    cost = strategy.cost_per_person(passenger_count)

    savings = None
    if isinstance(strategy, TieredPricing) and passenger_count > 1:
        single = strategy.single_passenger_cost()
        if single is not None:
            savings = single - cost

    return PricingInfo(
        cost_per_person=cost,
        total_cost=cost * passenger_count,
        passenger_count=passenger_count,
        savings=savings,
    )


def pricing_table(tiers: Sequence[TierLike]) -> list[dict]:
    """Rows for displaying a destination's tier table."""
    if not has_dynamic_pricing(tiers):
        return []
    strategy = TieredPricing(tiers)
    single = strategy.single_passenger_cost() or 0
    return [
        {
            "passengers": t.passenger_count,
            "cost_per_person": t.cost_per_person,
            "total_cost": t.cost_per_person * t.passenger_count,
            "savings": single - t.cost_per_person if t.passenger_count > 1 else None,
        }
        for t in strategy.tiers
    ]

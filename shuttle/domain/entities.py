"""
Domain value objects and business rules shared by the services.

Patterns used
-------------
- **State Pattern**: ``ensure_transition`` enforces the lifecycle tables in
  ``enums`` for trips, reservations and payment transactions.
- ``Occupancy.can_accommodate`` encapsulates the seat-capacity invariant.
- ``OriginalCost`` is a tagged state (``Unset | Recorded``) for the
  first-write-wins original price of a reservation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping, TypeVar, Union

from .errors import InvalidStateTransition

S = TypeVar("S", bound=enum.Enum)


def ensure_transition(
    current: S, new: S, transitions: Mapping[S, set[S]]
) -> S:
    """Return *new* if moving from *current* is legal, else raise."""
    allowed = transitions.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {new.value}"
        )
    return new


# ── Capacity ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Occupancy:
    seats_taken: int
    capacity: int

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.seats_taken)

    def can_accommodate(self, seats: int = 1) -> bool:
        return self.seats_taken + seats <= self.capacity


# ── First-write-wins original price ───────────────────────────────────


@dataclass(frozen=True)
class Unset:
    pass


@dataclass(frozen=True)
class Recorded:
    value: int


UNSET = Unset()

OriginalCost = Union[Unset, Recorded]


def original_cost_from(raw: int | None) -> OriginalCost:
    """Lift a nullable column value into the tagged state (0 is a value)."""
    return UNSET if raw is None else Recorded(raw)


def record_first(current: OriginalCost, value: int) -> OriginalCost:
    """Record *value* only if nothing was recorded yet."""
    if isinstance(current, Recorded):
        return current
    return Recorded(value)

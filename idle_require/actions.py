from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Union

Order = Union[int, Fraction]

MIN_PUBLIC_ORDER = -1_000_000
MAX_PUBLIC_ORDER = 1_000_000

# Reserved slots outside the public range.
LOAD_CACHE_ORDER = MIN_PUBLIC_ORDER - 1
FALLBACK_ORDER = MAX_PUBLIC_ORDER + 1


class ActionKind(str, Enum):
    """
    Closed vocabulary of deferred work units.
    """

    LOAD_CACHE = "LOAD_CACHE"
    REQUIRE = "REQUIRE"
    IDLE_REQUIRE = "IDLE_REQUIRE"
    DEPENDENCY_REQUIRE = "DEPENDENCY_REQUIRE"


@dataclass(frozen=True, slots=True)
class Action:
    """
    One unit of deferred work.

    LOAD_CACHE carries no feature; every other kind names exactly one.
    """

    kind: ActionKind
    feature: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ActionKind.LOAD_CACHE:
            if self.feature is not None:
                raise ValueError("LOAD_CACHE does not take a feature")
        elif not isinstance(self.feature, str) or not self.feature:
            raise ValueError(f"{self.kind.value} requires a non-empty feature name")

    @classmethod
    def load_cache(cls) -> Action:
        return cls(ActionKind.LOAD_CACHE)

    @classmethod
    def require(cls, feature: str) -> Action:
        return cls(ActionKind.REQUIRE, feature)

    @classmethod
    def idle_require(cls, feature: str) -> Action:
        return cls(ActionKind.IDLE_REQUIRE, feature)

    @classmethod
    def dependency_require(cls, feature: str) -> Action:
        return cls(ActionKind.DEPENDENCY_REQUIRE, feature)

    def __str__(self) -> str:
        if self.feature is None:
            return self.kind.value
        return f"{self.kind.value}({self.feature})"


@dataclass(frozen=True, order=True, slots=True)
class QueueEntry:
    """
    Heap element. Sorts by (order, seq); seq is assigned by the scheduler
    on insertion so equal orders dequeue first-in first-out.
    """

    order: Order
    seq: int
    action: Action = field(compare=False)


def sub_orders(parent: Order, count: int) -> list[Order]:
    """
    Exact, strictly increasing orders for `count` children of `parent`.

    Every value lies in the open interval (parent, parent + 1), so children
    never cross into the next integer caller order and never reorder
    relative to each other.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    return [parent + Fraction(i + 1, count + 1) for i in range(count)]

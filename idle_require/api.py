from __future__ import annotations

import logging
from numbers import Real

from idle_require.actions import LOAD_CACHE_ORDER, MAX_PUBLIC_ORDER, MIN_PUBLIC_ORDER, Action
from idle_require.scheduler import IdleScheduler

logger = logging.getLogger(__name__)


class InvalidOrderError(ValueError):
    """Raised when a caller-supplied order is not a legal public priority."""

    def __init__(self, order: object, reason: str) -> None:
        super().__init__(f"illegal order {order!r}: {reason}")
        self.order = order


def validate_order(order: object) -> int:
    """
    Return `order` as an int if it is an integer-valued number in
    [MIN_PUBLIC_ORDER, MAX_PUBLIC_ORDER]; raise InvalidOrderError otherwise.
    """
    if isinstance(order, bool) or not isinstance(order, Real):
        raise InvalidOrderError(order, "must be a number")
    if order != order or order in (float("inf"), float("-inf")):
        raise InvalidOrderError(order, "must be finite")
    if int(order) != order:
        raise InvalidOrderError(order, "must be integer-valued")
    value = int(order)
    if not MIN_PUBLIC_ORDER <= value <= MAX_PUBLIC_ORDER:
        raise InvalidOrderError(
            order, f"must be within [{MIN_PUBLIC_ORDER}, {MAX_PUBLIC_ORDER}]"
        )
    return value


def idle_require(scheduler: IdleScheduler, feature: str, order: int = 0) -> None:
    """Load `feature` the next time the host is idle.

    Smaller orders are serviced first. Returns immediately; the load may
    happen arbitrarily later, or only at close(run_pending=True) if the
    host never goes idle.
    """
    value = validate_order(order)
    action = Action.idle_require(feature)
    scheduler.schedule(Action.load_cache(), LOAD_CACHE_ORDER)
    scheduler.schedule(action, value)
    logger.debug("Deferred %s at order %d", feature, value)

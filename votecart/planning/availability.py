"""Which curves a new vote may use, given positions and pending cart items.

Linear and progressive vaults are independent: holding support on one curve
and oppose on the other is allowed. The only forbidden combination is support
and oppose on the same curve of the same triple, so a vote is blocked exactly
on the curves where the opposite direction is already held or queued.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from votecart.types import CurveId, Direction, Position, VoteCartItem, opposite

CURVE_LABELS = {CurveId.LINEAR: "Linear", CurveId.PROGRESSIVE: "Progressive"}


@dataclass(frozen=True)
class CurveFlags:
    """One boolean per curve."""

    linear: bool = False
    progressive: bool = False

    def __or__(self, other: CurveFlags) -> CurveFlags:
        return CurveFlags(linear=self.linear or other.linear, progressive=self.progressive or other.progressive)

    def any(self) -> bool:
        return self.linear or self.progressive


NO_FLAGS = CurveFlags()


@dataclass(frozen=True)
class CurveAvailability:
    linear: bool
    progressive: bool
    blocked_reason: Optional[str] = None
    all_blocked: bool = False

    def is_available(self, curve_id: int) -> bool:
        return self.linear if curve_id == CurveId.LINEAR else self.progressive


def _flag_curve(flags: CurveFlags, curve_id: int) -> CurveFlags:
    if curve_id == CurveId.LINEAR:
        return CurveFlags(linear=True, progressive=flags.progressive)
    if curve_id == CurveId.PROGRESSIVE:
        return CurveFlags(linear=flags.linear, progressive=True)
    return flags


def opposite_position_flags(direction: Direction, positions: Iterable[Position]) -> CurveFlags:
    """Curves on which a position in the opposite direction is held."""
    flags = NO_FLAGS
    blocking = opposite(direction)
    for position in positions:
        if position.direction == blocking and position.shares > 0:
            flags = _flag_curve(flags, position.curve_id)
    return flags


def opposite_cart_flags(direction: Direction, items: Iterable[VoteCartItem], totem_id: str) -> CurveFlags:
    """Curves on which the cart already queues the opposite direction for `totem_id`."""
    flags = NO_FLAGS
    blocking = opposite(direction)
    for item in items:
        if item.totem_id == totem_id and item.direction == blocking:
            flags = _flag_curve(flags, item.curve_id)
    return flags


def _blocked_reason(direction: Direction, blocked: CurveFlags, from_cart: bool) -> str:
    opposite_label = opposite(direction).capitalize()
    current_label = direction.capitalize()
    source = " (including cart)" if from_cart else ""
    curves = [label for curve, label in CURVE_LABELS.items() if _is_flagged(blocked, curve)]
    if blocked.linear and blocked.progressive:
        return (
            f"You hold {opposite_label} on {' + '.join(curves)}{source}. "
            f"Redeem it before voting {current_label}."
        )
    free_curve = "Progressive" if blocked.linear else "Linear"
    return f"{curves[0]} is blocked by your {opposite_label} position{source}. {free_curve} is still available."


def _is_flagged(flags: CurveFlags, curve_id: CurveId) -> bool:
    return flags.linear if curve_id == CurveId.LINEAR else flags.progressive


def resolve_curve_availability(
    direction: Optional[Direction],
    has_opposite_position: CurveFlags = NO_FLAGS,
    has_opposite_cart_item: CurveFlags = NO_FLAGS,
) -> CurveAvailability:
    """Pure availability rule.

    `direction` None means no direction selected (or a withdrawal), in which
    case nothing is blocked.
    """
    if direction is None:
        return CurveAvailability(linear=True, progressive=True)

    blocked = has_opposite_position | has_opposite_cart_item
    if not blocked.any():
        return CurveAvailability(linear=True, progressive=True)

    return CurveAvailability(
        linear=not blocked.linear,
        progressive=not blocked.progressive,
        blocked_reason=_blocked_reason(direction, blocked, has_opposite_cart_item.any()),
        all_blocked=blocked.linear and blocked.progressive,
    )


def availability_for(
    direction: Optional[Direction],
    *,
    positions: Iterable[Position] = (),
    cart_items: Iterable[VoteCartItem] = (),
    totem_id: Optional[str] = None,
) -> CurveAvailability:
    """Derive the per-curve flags from raw positions and cart items, then resolve."""
    if direction is None:
        return resolve_curve_availability(None)
    position_flags = opposite_position_flags(direction, positions)
    cart_flags = opposite_cart_flags(direction, cart_items, totem_id) if totem_id else NO_FLAGS
    return resolve_curve_availability(direction, position_flags, cart_flags)

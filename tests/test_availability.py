"""Tests for per-curve vote availability."""

from __future__ import annotations

import pytest

from votecart.planning.availability import (
    NO_FLAGS,
    CurveFlags,
    availability_for,
    resolve_curve_availability,
)
from votecart.types import CurveId, Position


def test_nothing_blocked_without_opposite_positions():
    result = resolve_curve_availability("support", NO_FLAGS, NO_FLAGS)
    assert result.linear and result.progressive
    assert not result.all_blocked
    assert result.blocked_reason is None


def test_no_direction_means_nothing_blocked():
    result = resolve_curve_availability(None, CurveFlags(linear=True, progressive=True))
    assert result.linear and result.progressive


def test_both_curves_blocked():
    result = resolve_curve_availability("oppose", CurveFlags(linear=True), CurveFlags(progressive=True))
    assert not result.linear and not result.progressive
    assert result.all_blocked
    assert "Redeem" in result.blocked_reason
    assert "(including cart)" in result.blocked_reason


def test_existing_oppose_position_blocks_only_linear():
    """Oppose-linear position of 500 shares, user wants to support linear."""
    positions = [Position(direction="oppose", curve_id=CurveId.LINEAR, shares=500)]
    result = availability_for("support", positions=positions)

    assert not result.linear
    assert result.progressive
    assert not result.all_blocked
    assert result.is_available(CurveId.PROGRESSIVE)
    assert result.blocked_reason.startswith("Linear is blocked by your Oppose position")


def test_zero_share_position_does_not_block():
    positions = [Position(direction="oppose", curve_id=CurveId.LINEAR, shares=0)]
    result = availability_for("support", positions=positions)
    assert result.linear and result.progressive


def test_same_direction_position_does_not_block():
    positions = [Position(direction="support", curve_id=CurveId.PROGRESSIVE, shares=10)]
    assert availability_for("support", positions=positions).progressive


@pytest.mark.parametrize("direction,expected_linear", [("oppose", False), ("support", True)])
def test_cart_items_block_their_curve(make_item, direction, expected_linear):
    cart_items = [make_item("a", direction="support"), make_item("b", direction="oppose")]
    result = availability_for(direction, cart_items=cart_items, totem_id="a")
    assert result.linear is expected_linear
    assert result.progressive


def test_cart_items_for_other_totems_are_ignored(make_item):
    result = availability_for("oppose", cart_items=[make_item("b")], totem_id="a")
    assert result.linear and result.progressive

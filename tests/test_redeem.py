"""Tests for redemptions that precede deposits."""

from __future__ import annotations

import pytest

from votecart.chain.preview import ContractPreviewClient
from votecart.execution.redeem import RedeemOrchestrator
from votecart.types import CurveId, Position

from conftest import OWNER, term


@pytest.fixture
def redeemer(gateway) -> RedeemOrchestrator:
    return RedeemOrchestrator(gateway, ContractPreviewClient(gateway), OWNER, max_batch_size=2)


def _support_linear(shares: int) -> Position:
    return Position(direction="support", curve_id=CurveId.LINEAR, shares=shares)


def test_uses_live_shares_not_cached_snapshot(gateway, redeemer, make_item):
    gateway.shares[(OWNER, term(1), 1)] = 700
    item = make_item("a", direction="oppose", term_id=term(1), position=_support_linear(500))

    result = redeemer.redeem_positions([item])

    assert result.count == 1
    assert result.total_shares == 700
    name, args = gateway.writes()[0]
    assert name == "redeem_batch"
    assert args[1:] == ([term(1)], [1], [700], [686])
    assert gateway.shares[(OWNER, term(1), 1)] == 0


def test_oppose_position_redeems_from_counter_vault(gateway, redeemer, make_item):
    gateway.shares[(OWNER, term(2), 2)] = 50
    position = Position(direction="oppose", curve_id=CurveId.PROGRESSIVE, shares=50)
    item = make_item("a", curve=CurveId.PROGRESSIVE, term_id=term(1), counter_term_id=term(2), position=position)

    [instruction] = redeemer.collect_redeems([item])
    assert instruction.term_id == term(2)
    assert instruction.curve_id == 2


def test_counter_term_id_is_looked_up_when_missing(gateway, redeemer, make_item):
    position = Position(direction="oppose", curve_id=CurveId.LINEAR, shares=5)
    item = make_item("a", term_id=term(1), position=position)
    counter = gateway.get_counter_term_id(term(1))
    gateway.shares[(OWNER, counter, 1)] = 5

    [instruction] = redeemer.collect_redeems([item])
    assert instruction.term_id == counter


def test_stale_positions_are_skipped(gateway, redeemer, make_item):
    live = make_item("live", direction="oppose", term_id=term(1), position=_support_linear(10))
    stale = make_item("stale", direction="oppose", term_id=term(2), position=_support_linear(10))
    gateway.shares[(OWNER, term(1), 1)] = 10

    result = redeemer.redeem_positions([live, stale])
    assert result.count == 1


def test_nothing_to_redeem_returns_none(gateway, redeemer, make_item):
    item = make_item("a", direction="oppose", term_id=term(1), position=_support_linear(10))
    assert redeemer.redeem_positions([item]) is None
    assert redeemer.redeem_positions([make_item("b")]) is None
    assert gateway.writes() == []


def test_redeems_are_chunked(gateway, redeemer, make_item):
    items = []
    for n in range(1, 4):
        gateway.shares[(OWNER, term(n), 1)] = 10
        items.append(make_item(f"t{n}", direction="oppose", term_id=term(n), position=_support_linear(10)))

    result = redeemer.redeem_positions(items)
    assert len(result.tx_hashes) == 2
    assert result.tx_hash == result.tx_hashes[-1]


def test_blocking_for_positions(gateway, redeemer, make_item):
    gateway.shares[(OWNER, term(1), 2)] = 40
    blocked = make_item("a", direction="oppose", curve=CurveId.PROGRESSIVE, term_id=term(1))
    free = make_item("b", direction="oppose", curve=CurveId.PROGRESSIVE, term_id=term(2))

    tx_hashes = redeemer.redeem_blocking_for_positions([blocked, free], CurveId.PROGRESSIVE)
    assert len(tx_hashes) == 1
    assert gateway.writes()[0][1][1] == [term(1)]
    assert redeemer.redeem_blocking_for_positions([blocked, free], CurveId.PROGRESSIVE) == []


def test_blocking_redeems_report_every_chunk(gateway, redeemer, make_item):
    items = []
    for n in range(1, 4):
        gateway.shares[(OWNER, term(n), 1)] = 10
        items.append(make_item(f"t{n}", direction="oppose", term_id=term(n)))

    tx_hashes = redeemer.redeem_blocking_for_positions(items, CurveId.LINEAR)

    assert len(tx_hashes) == 2
    assert len(set(tx_hashes)) == 2


def test_init_redeem_leaves_ghost_shares(gateway, redeemer):
    gateway.deposit_batch(OWNER, [term(1)], [2], [100], [0])
    result = redeemer.redeem_init_positions([term(1), term(1)])

    assert result.count == 1
    assert gateway.shares[(OWNER, term(1), 2)] == 0
    assert gateway.vault_shares[(term(1), 2)] == 1

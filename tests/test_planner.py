"""Tests for batch planning: step order, transaction estimates and chunking."""

from __future__ import annotations

import pytest

from votecart.config import EngineConfig
from votecart.errors import InsufficientBalanceError, ValidationError
from votecart.planning.dedup import triple_key
from votecart.planning.planner import (
    BatchPlanner,
    StepKind,
    TransactionCountParams,
    calculate_total_transactions,
    chunk_batch_arrays,
)
from votecart.types import CurveId, Position, VoteCart

from conftest import MIN_DEPOSIT, PREDICATE, SUBJECT, TRIPLE_COST, term


def _cart(*items) -> VoteCart:
    return VoteCart(subject_id=SUBJECT, subject_name="Subject", items=list(items))


@pytest.fixture
def planner() -> BatchPlanner:
    return BatchPlanner(EngineConfig(max_batch_size=2))


class TestCalculateTotalTransactions:
    def test_new_totem_linear_support_only(self):
        params = TransactionCountParams(has_new_totems=True, has_new_triples=True, new_triples_linear_support_only=True)
        assert calculate_total_transactions(params) == 3

    def test_new_totem_mixed_curves(self):
        params = TransactionCountParams(has_new_totems=True, has_new_triples=True)
        assert calculate_total_transactions(params) == 4

    def test_existing_triple_with_uninitialized_progressive_oppose(self):
        params = TransactionCountParams(
            has_existing_triple_deposits=True, uninitialized_progressive_oppose_count=1
        )
        assert calculate_total_transactions(params) == 3

    def test_redeem_plus_existing_deposit(self):
        params = TransactionCountParams(has_redeems=True, has_existing_triple_deposits=True)
        assert calculate_total_transactions(params) == 2

    def test_degenerate_input_is_at_least_one(self):
        assert calculate_total_transactions(TransactionCountParams()) == 1


class TestChunkBatchArrays:
    @pytest.mark.parametrize("n,k", [(0, 3), (1, 3), (5, 2), (6, 3), (7, 50)])
    def test_chunks_reconstruct_input(self, n, k):
        term_ids = [term(i) for i in range(n)]
        curve_ids = [1 + i % 2 for i in range(n)]
        values = list(range(100, 100 + n))
        mins = list(range(n))
        chunks = chunk_batch_arrays(term_ids, curve_ids, values, mins, k)

        assert len(chunks) == -(-n // k)
        assert all(len(c.term_ids) == len(c.curve_ids) == len(c.values) == len(c.min_values) for c in chunks)
        assert [t for c in chunks for t in c.term_ids] == term_ids
        assert [v for c in chunks for v in c.curve_ids] == curve_ids
        assert [v for c in chunks for v in c.values] == values
        assert [v for c in chunks for v in c.min_values] == mins

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            chunk_batch_arrays([term(1)], [1], [1], [1], 0)
        with pytest.raises(ValueError):
            chunk_batch_arrays([term(1)], [1, 1], [1], [1], 5)


def test_new_totem_linear_support_folds_deposit(planner, contract_config, make_item):
    item = make_item("new", is_new_totem=True)
    plan = planner.plan(_cart(item), config=contract_config)

    assert plan.step_kinds == [StepKind.CREATE_ATOMS, StepKind.CREATE_TRIPLES]
    assert plan.estimated_steps == 3
    assert plan.folded_triple_keys == (triple_key(PREDICATE, "new"),)
    assert plan.step(StepKind.CREATE_TRIPLES).items == (item,)
    assert plan.required_total == item.amount + TRIPLE_COST


def test_new_triple_with_progressive_gets_separate_deposit(planner, contract_config, make_item):
    lin = make_item("new", is_new_totem=True)
    prog = make_item("new", is_new_totem=True, curve=CurveId.PROGRESSIVE)
    plan = planner.plan(_cart(lin, prog), config=contract_config)

    assert plan.step_kinds == [StepKind.CREATE_ATOMS, StepKind.CREATE_TRIPLES, StepKind.DEPOSIT_NEW]
    assert plan.estimated_steps == 4
    assert plan.step(StepKind.CREATE_TRIPLES).items == ()
    assert plan.step(StepKind.DEPOSIT_NEW).items == (lin, prog)


def test_new_linear_oppose_triple_is_not_folded(planner, contract_config, make_item):
    item = make_item("fresh", direction="oppose")
    plan = planner.plan(_cart(item), config=contract_config)

    assert plan.step_kinds == [StepKind.CREATE_TRIPLES, StepKind.DEPOSIT_NEW]
    assert plan.estimated_steps == 2
    assert plan.folded_triple_keys == ()


def test_full_step_order(planner, contract_config, make_item):
    held = Position(direction="support", curve_id=CurveId.LINEAR, shares=10**15)
    switching = make_item("held", direction="oppose", term_id=term(1), counter_term_id=term(2), position=held)
    new_totem = make_item("new", is_new_totem=True, curve=CurveId.PROGRESSIVE)
    uninit = make_item("cold", direction="oppose", curve=CurveId.PROGRESSIVE, term_id=term(3))
    plain = make_item("warm", term_id=term(4))

    plan = planner.plan(
        _cart(switching, new_totem, uninit, plain), config=contract_config, vault_status={term(3): False}
    )

    assert plan.step_kinds == [
        StepKind.REDEEM,
        StepKind.CREATE_ATOMS,
        StepKind.CREATE_TRIPLES,
        StepKind.DEPOSIT_NEW,
        StepKind.INIT_DEPOSIT,
        StepKind.INIT_REDEEM,
        StepKind.DEPOSIT,
    ]
    assert plan.step(StepKind.REDEEM).items == (switching,)
    assert plan.step(StepKind.INIT_DEPOSIT).items == (uninit,)
    # init items are deposited last
    assert plan.step(StepKind.DEPOSIT).items == (switching, plain, uninit)
    assert plan.funds.init_deposits == MIN_DEPOSIT


def test_initialized_vault_needs_no_init(planner, contract_config, make_item):
    item = make_item("warm", direction="oppose", curve=CurveId.PROGRESSIVE, term_id=term(3))
    plan = planner.plan(_cart(item), config=contract_config, vault_status={term(3): True})

    assert plan.step_kinds == [StepKind.DEPOSIT]
    assert plan.estimated_steps == 1
    assert plan.required_total == item.amount


def test_uninitialized_vault_estimates_three_steps(planner, contract_config, make_item):
    item = make_item("cold", direction="oppose", curve=CurveId.PROGRESSIVE, term_id=term(3))
    plan = planner.plan(_cart(item), config=contract_config)

    assert plan.step_kinds == [StepKind.INIT_DEPOSIT, StepKind.INIT_REDEEM, StepKind.DEPOSIT]
    assert plan.estimated_steps == 3


def test_conflicting_directions_on_one_curve(planner, contract_config, make_item):
    items = [make_item("a", term_id=term(1)), make_item("a", term_id=term(1), direction="oppose")]
    with pytest.raises(ValidationError, match="same curve"):
        planner.plan(_cart(*items), config=contract_config)


def test_opposite_directions_on_different_curves_are_allowed(planner, contract_config, make_item):
    items = [
        make_item("a", term_id=term(1)),
        make_item("a", term_id=term(1), direction="oppose", curve=CurveId.PROGRESSIVE),
    ]
    plan = planner.plan(_cart(*items), config=contract_config, vault_status={term(1): True})
    assert plan.step_kinds == [StepKind.DEPOSIT]


def test_balance_is_checked_when_given(planner, contract_config, make_item):
    item = make_item("a", term_id=term(1), amount=5 * MIN_DEPOSIT)
    with pytest.raises(InsufficientBalanceError) as exc_info:
        planner.plan(_cart(item), config=contract_config, balance=4 * MIN_DEPOSIT)
    assert exc_info.value.deficit == MIN_DEPOSIT


def test_planning_does_not_mutate_the_cart(planner, contract_config, make_item):
    item = make_item("a", term_id=term(1), amount=MIN_DEPOSIT - 1)
    cart = _cart(item)
    plan = planner.plan(cart, config=contract_config)

    assert plan.items[0].amount == MIN_DEPOSIT
    assert cart.items[0].amount == MIN_DEPOSIT - 1


def test_empty_cart_cannot_be_planned(planner, contract_config):
    with pytest.raises(ValidationError):
        planner.plan(_cart(), config=contract_config)

"""Turn a cart into the ordered list of on-chain steps that executes it.

Planning is a pure function of a snapshot: cart items, contract config and
the vault initialization status read for this pass. Nothing here talks to the
chain; the session takes the snapshot and the executor runs the plan.

Step order is fixed:

1. REDEEM           positions held in the opposite direction on the same curve
2. CREATE_ATOMS     totems that do not exist yet
3. CREATE_TRIPLES   triples that do not exist yet (pure linear-support triples
                    carry their deposit in the creation value)
4. DEPOSIT_NEW      remaining deposits on the triples just created
5. INIT_DEPOSIT     seed the FOR progressive vault of uninitialized triples
6. INIT_REDEEM      redeem the seed so only ghost shares remain
7. DEPOSIT          deposits on existing triples, plus the AGAINST
                    progressive deposits unlocked by the init sequence
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from votecart.chain.vault_gate import INIT_SEQUENCE_STEPS, needs_init_sequence, required_step_count
from votecart.config import EngineConfig
from votecart.errors import ValidationError
from votecart.planning.dedup import categorize_triples, deduplicate_to_triples, triple_key
from votecart.planning.funds import FundsBreakdown, ensure_sufficient_balance, funds_breakdown, normalize_amounts
from votecart.types import BatchChunk, ContractConfig, CurveId, UniqueTriple, VoteCart, VoteCartItem

logger = logging.getLogger(__name__)


class StepKind(str, Enum):
    REDEEM = "redeem"
    CREATE_ATOMS = "create_atoms"
    CREATE_TRIPLES = "create_triples"
    DEPOSIT_NEW = "deposit_new"
    INIT_DEPOSIT = "init_deposit"
    INIT_REDEEM = "init_redeem"
    DEPOSIT = "deposit"


@dataclass(frozen=True)
class TransactionCountParams:
    has_new_totems: bool = False
    has_new_triples: bool = False
    has_redeems: bool = False
    has_existing_triple_deposits: bool = False
    new_triples_linear_support_only: bool = False
    uninitialized_progressive_oppose_count: int = 0


def calculate_total_transactions(params: TransactionCountParams) -> int:
    """Estimated number of transactions the user will sign (at least 1).

    New totems cost 2 (createAtoms + createTriples). New triples cost 1 when
    every deposit folds into createTriples, 2 otherwise. Redeems cost 1.
    Existing-triple deposits cost 1, or 3 when a progressive oppose deposit
    needs the init sequence.
    """
    steps = 0
    if params.has_new_totems:
        steps += 2
    if params.has_new_triples:
        steps += 1 if params.new_triples_linear_support_only else 2
    if params.has_redeems:
        steps += 1
    if params.has_existing_triple_deposits:
        steps += 3 if params.uninitialized_progressive_oppose_count > 0 else 1
    return max(steps, 1)


def chunk_batch_arrays(
    term_ids: Sequence[str],
    curve_ids: Sequence[int],
    values: Sequence[int],
    min_values: Sequence[int],
    max_chunk_size: int,
) -> list[BatchChunk]:
    """Split four parallel arrays into chunks of at most `max_chunk_size`.

    Order is preserved and the last chunk may be shorter. Empty input gives
    an empty list.
    """
    if max_chunk_size < 1:
        raise ValueError(f"max_chunk_size must be >= 1, got {max_chunk_size}")
    n = len(term_ids)
    if not (len(curve_ids) == len(values) == len(min_values) == n):
        raise ValueError(
            "Parallel arrays must have the same length "
            f"(term_ids={n}, curve_ids={len(curve_ids)}, values={len(values)}, min_values={len(min_values)})"
        )
    return [
        BatchChunk(
            term_ids=tuple(term_ids[start : start + max_chunk_size]),
            curve_ids=tuple(int(c) for c in curve_ids[start : start + max_chunk_size]),
            values=tuple(values[start : start + max_chunk_size]),
            min_values=tuple(min_values[start : start + max_chunk_size]),
        )
        for start in range(0, n, max_chunk_size)
    ]


@dataclass(frozen=True)
class PlannedStep:
    kind: StepKind
    items: tuple[VoteCartItem, ...] = ()
    triple_keys: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class PlanningSnapshot:
    """Immutable inputs of one planning pass.

    `vault_status` maps FOR term ids to whether their progressive vault holds
    shares. Missing entries count as uninitialized.
    """

    cart: VoteCart
    config: ContractConfig
    vault_status: Mapping[str, bool] = field(default_factory=dict)
    balance: Optional[int] = None


@dataclass(frozen=True)
class ExecutionPlan:
    subject_id: str
    subject_name: str
    steps: tuple[PlannedStep, ...]
    estimated_steps: int
    required_total: int
    funds: FundsBreakdown
    triples: Mapping[str, UniqueTriple]
    items: tuple[VoteCartItem, ...]
    config: ContractConfig

    @property
    def step_kinds(self) -> list[StepKind]:
        return [step.kind for step in self.steps]

    def step(self, kind: StepKind) -> Optional[PlannedStep]:
        for step in self.steps:
            if step.kind == kind:
                return step
        return None

    @property
    def folded_triple_keys(self) -> tuple[str, ...]:
        return tuple(key for key, triple in self.triples.items() if triple.is_new and triple.is_linear_support_only)


def needs_redeem(item: VoteCartItem) -> bool:
    """Item switches direction on a curve where a position is held."""
    position = item.current_position
    return (
        position is not None
        and position.shares > 0
        and position.curve_id == item.curve_id
        and position.direction != item.direction
    )


def vault_initialized(item: VoteCartItem, vault_status: Mapping[str, bool]) -> bool:
    """New triples have empty vaults; unknown existing vaults count as empty."""
    return item.term_id is not None and vault_status.get(item.term_id, False)


def check_curve_conflicts(triples: Mapping[str, UniqueTriple]) -> None:
    """Support and oppose on the same curve of one triple cannot coexist."""
    for triple in triples.values():
        seen: dict[int, str] = {}
        for item in triple.items:
            curve = int(item.curve_id)
            other = seen.get(curve)
            if other is not None and other != item.direction:
                raise ValidationError(
                    f"Cannot support and oppose {triple.totem_name or triple.totem_id} on the same curve "
                    f"({CurveId(curve).name.lower()})",
                    item_id=item.id,
                )
            seen[curve] = item.direction


class BatchPlanner:
    def __init__(self, engine: Optional[EngineConfig] = None) -> None:
        self.engine = engine or EngineConfig()

    def plan(
        self,
        cart: VoteCart,
        *,
        config: ContractConfig,
        vault_status: Optional[Mapping[str, bool]] = None,
        balance: Optional[int] = None,
    ) -> ExecutionPlan:
        snapshot = PlanningSnapshot(cart=cart, config=config, vault_status=dict(vault_status or {}), balance=balance)
        return self.plan_snapshot(snapshot)

    def plan_snapshot(self, snapshot: PlanningSnapshot) -> ExecutionPlan:
        cart = snapshot.cart
        config = snapshot.config
        items = normalize_amounts(cart.items, config, tolerance_wei=self.engine.tolerance_wei)
        triples = deduplicate_to_triples(items)
        check_curve_conflicts(triples)

        new_triples = {key: t for key, t in triples.items() if t.is_new}
        # Only linear-only triples can be pure linear support.
        folded_keys = {
            triple_key(t.predicate_id, t.totem_id)
            for t in categorize_triples(new_triples).linear_only
            if t.is_linear_support_only
        }

        redeem_items = [i for i in items if needs_redeem(i)]
        new_totem_items = [i for i in items if i.is_new_totem]
        init_items = [
            i
            for i in items
            if needs_init_sequence(i.direction, i.curve_id, vault_initialized(i, snapshot.vault_status))
        ]
        init_ids = {i.id for i in init_items}

        folded_items = [i for key in folded_keys for i in new_triples[key].items]
        deposit_new_items = [
            i
            for i in items
            if i.is_new_triple
            and triple_key(i.predicate_id, i.totem_id) not in folded_keys
            and i.id not in init_ids
        ]
        existing_items = [i for i in items if not i.is_new_triple]
        # AGAINST progressive deposits go last, once their vault has been seeded.
        deposit_items = [i for i in existing_items if i.id not in init_ids] + init_items

        steps: list[PlannedStep] = []
        if redeem_items:
            steps.append(
                PlannedStep(StepKind.REDEEM, tuple(redeem_items), description="Redeem positions changing direction")
            )
        if new_totem_items:
            steps.append(PlannedStep(StepKind.CREATE_ATOMS, tuple(new_totem_items), description="Create totem atoms"))
        if new_triples:
            steps.append(
                PlannedStep(
                    StepKind.CREATE_TRIPLES,
                    tuple(folded_items),
                    triple_keys=tuple(new_triples),
                    description="Create triples",
                )
            )
        if deposit_new_items:
            steps.append(
                PlannedStep(StepKind.DEPOSIT_NEW, tuple(deposit_new_items), description="Deposit on new triples")
            )
        if init_items:
            steps.append(
                PlannedStep(StepKind.INIT_DEPOSIT, tuple(init_items), description="Initialize progressive vaults")
            )
            steps.append(
                PlannedStep(StepKind.INIT_REDEEM, tuple(init_items), description="Redeem initialization shares")
            )
        if deposit_items:
            steps.append(PlannedStep(StepKind.DEPOSIT, tuple(deposit_items), description="Deposit"))

        estimated = calculate_total_transactions(
            TransactionCountParams(
                has_new_totems=bool(new_totem_items),
                has_new_triples=bool(new_triples),
                has_redeems=bool(redeem_items),
                has_existing_triple_deposits=bool(existing_items),
                new_triples_linear_support_only=bool(new_triples) and len(folded_keys) == len(new_triples),
                uninitialized_progressive_oppose_count=sum(
                    1
                    for i in existing_items
                    if required_step_count(i.direction, i.curve_id, vault_initialized(i, snapshot.vault_status))
                    == INIT_SEQUENCE_STEPS
                ),
            )
        )

        init_triples = len({triple_key(i.predicate_id, i.totem_id) for i in init_items})
        funds = funds_breakdown(items, triples.values(), config, init_count=init_triples)
        if snapshot.balance is not None:
            ensure_sufficient_balance(funds.total, snapshot.balance)

        plan = ExecutionPlan(
            subject_id=cart.subject_id,
            subject_name=cart.subject_name,
            steps=tuple(steps),
            estimated_steps=estimated,
            required_total=funds.total,
            funds=funds,
            triples=triples,
            items=tuple(items),
            config=config,
        )
        logger.info(
            "Planned %d steps (estimated %d transactions) for %s: %s",
            len(plan.steps),
            plan.estimated_steps,
            cart.subject_id,
            ", ".join(kind.value for kind in plan.step_kinds),
        )
        return plan

"""Sequential execution of a planned cart.

Each step is submitted and awaited to confirmation before the next one, since
later steps consume identifiers emitted by earlier ones (atom ids feed triple
creation, triple ids feed deposits). The first failure halts the run.
Confirmed steps are final on-chain and are not rolled back. Their effects are
written back into the cart as each step confirms, so a retry only runs what is
left.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Sequence

from votecart.amounts.math import format_wei
from votecart.cart.model import CartModel, MultiCart
from votecart.cart.storage import CartStore
from votecart.chain.interfaces import ContractGateway
from votecart.chain.preview import ContractPreviewClient
from votecart.chain.vault_gate import VaultInitGate
from votecart.config import EngineConfig
from votecart.errors import TransactionFailedError, ValidationError, VoteCartError, error_kind
from votecart.execution.audit import ExecutionAuditLog
from votecart.execution.redeem import RedeemOrchestrator
from votecart.planning.dedup import triple_key
from votecart.planning.planner import (
    BatchPlanner,
    ExecutionPlan,
    PlannedStep,
    PlanningSnapshot,
    StepKind,
    chunk_batch_arrays,
)
from votecart.types import CurveId, ErrorKind, Result, VoteCart, VoteCartItem

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    REDEEMING = "redeeming"
    CREATING = "creating"
    DEPOSITING = "depositing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_RUNNING_STATES = {
    ExecutorState.PLANNING,
    ExecutorState.REDEEMING,
    ExecutorState.CREATING,
    ExecutorState.DEPOSITING,
}

# Steps after which the items they carry hold their final deposit.
_DEPOSIT_STEPS = {StepKind.CREATE_TRIPLES, StepKind.DEPOSIT_NEW, StepKind.DEPOSIT}

STEP_STATES: dict[StepKind, ExecutorState] = {
    StepKind.REDEEM: ExecutorState.REDEEMING,
    StepKind.CREATE_ATOMS: ExecutorState.CREATING,
    StepKind.CREATE_TRIPLES: ExecutorState.CREATING,
    StepKind.DEPOSIT_NEW: ExecutorState.DEPOSITING,
    StepKind.INIT_DEPOSIT: ExecutorState.DEPOSITING,
    StepKind.INIT_REDEEM: ExecutorState.REDEEMING,
    StepKind.DEPOSIT: ExecutorState.DEPOSITING,
}


@dataclass(frozen=True)
class StepProgress:
    """Progress notification: step `index` of `total` (1-based)."""

    subject_id: str
    index: int
    total: int
    kind: Optional[StepKind]
    state: ExecutorState


@dataclass(frozen=True)
class StepOutcome:
    kind: StepKind
    tx_hashes: tuple[str, ...] = ()


@dataclass
class ExecutionReport:
    subject_id: str
    state: ExecutorState = ExecutorState.IDLE
    plan: Optional[ExecutionPlan] = None
    completed: list[StepOutcome] = field(default_factory=list)
    failed_step: Optional[StepKind] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.state == ExecutorState.COMPLETED

    @property
    def tx_hashes(self) -> list[str]:
        return [tx for outcome in self.completed for tx in outcome.tx_hashes]

    def as_result(self) -> Result[ExecutionReport]:
        if self.ok:
            return Result.success(self)
        return Result.failure(self.error or "unknown", self.message)


@dataclass
class _RunContext:
    """Identifiers learned while the plan runs."""

    atom_ids: dict[str, str] = field(default_factory=dict)
    triple_ids: dict[str, str] = field(default_factory=dict)
    counter_ids: dict[str, str] = field(default_factory=dict)


def take_snapshot(
    gateway: ContractGateway,
    gate: VaultInitGate,
    cart: VoteCart,
    *,
    owner: Optional[str] = None,
) -> PlanningSnapshot:
    """Read everything one planning pass needs, once."""
    config = gateway.get_contract_config()
    term_ids = [
        item.term_id
        for item in cart.items
        if item.term_id is not None and item.direction == "oppose" and item.curve_id == CurveId.PROGRESSIVE
    ]
    vault_status = gate.check_many(term_ids, CurveId.PROGRESSIVE) if term_ids else {}
    balance = gateway.get_balance(owner) if owner else None
    return PlanningSnapshot(cart=copy.deepcopy(cart), config=config, vault_status=vault_status, balance=balance)


class BatchExecutor:
    def __init__(
        self,
        *,
        gateway: ContractGateway,
        owner: str,
        preview: ContractPreviewClient,
        gate: VaultInitGate,
        planner: Optional[BatchPlanner] = None,
        redeemer: Optional[RedeemOrchestrator] = None,
        engine: Optional[EngineConfig] = None,
        store: Optional[CartStore] = None,
        audit: Optional[ExecutionAuditLog] = None,
        on_progress: Optional[Callable[[StepProgress], None]] = None,
    ) -> None:
        self.engine = engine or EngineConfig()
        self._gateway = gateway
        self.owner = owner
        self._preview = preview
        self._gate = gate
        self._planner = planner or BatchPlanner(self.engine)
        self._redeemer = redeemer or RedeemOrchestrator(
            gateway, preview, owner, max_batch_size=self.engine.max_batch_size
        )
        self._store = store
        self.audit = audit or ExecutionAuditLog()
        self._on_progress = on_progress
        self._cancel = threading.Event()
        self.state = ExecutorState.IDLE

    # ---- control -------------------------------------------------------------

    def cancel(self) -> None:
        """Stop before the next step. The step in flight still completes."""
        self._cancel.set()

    @property
    def is_running(self) -> bool:
        return self.state in _RUNNING_STATES

    def _notify(self, subject_id: str, index: int, total: int, kind: Optional[StepKind]) -> None:
        if self._on_progress is not None:
            self._on_progress(StepProgress(subject_id, index, total, kind, self.state))

    def _fail(self, report: ExecutionReport, kind: Optional[StepKind], exc: Exception) -> ExecutionReport:
        self.state = ExecutorState.FAILED
        report.state = ExecutorState.FAILED
        report.failed_step = kind
        report.error = error_kind(exc)
        report.message = str(exc)
        self.audit.log_step_failed(report.subject_id, kind.value if kind else None, report.error, report.message)
        self._notify(report.subject_id, len(report.completed), len(report.plan.steps) if report.plan else 0, kind)
        return report

    # ---- entry points ----------------------------------------------------------

    def execute(self, cart: CartModel) -> ExecutionReport:
        if self.is_running:
            raise RuntimeError("Executor is already running")
        self._cancel.clear()
        subject_id = cart.subject_id
        report = ExecutionReport(subject_id=subject_id)

        self.state = ExecutorState.PLANNING
        self._notify(subject_id, 0, 0, None)
        try:
            snapshot = take_snapshot(self._gateway, self._gate, cart.cart, owner=self.owner)
            plan = self._planner.plan_snapshot(snapshot)
        except VoteCartError as exc:
            logger.warning("Planning failed for %s: %s", subject_id, exc)
            return self._fail(report, None, exc)
        except Exception as exc:
            logger.exception("Planning failed for %s", subject_id)
            return self._fail(report, None, exc)

        report.plan = plan
        self.audit.log_plan(subject_id, [k.value for k in plan.step_kinds], plan.estimated_steps, plan.required_total)
        logger.info("Executing %d steps for %s (required %s)", len(plan.steps), subject_id, format_wei(plan.required_total))

        ctx = _RunContext()
        total = len(plan.steps)
        for index, step in enumerate(plan.steps, start=1):
            if self._cancel.is_set():
                self.state = ExecutorState.CANCELLED
                report.state = ExecutorState.CANCELLED
                report.error = "cancelled"
                report.message = f"Cancelled before step {index}/{total}"
                self.audit.log_cancelled(subject_id, len(report.completed))
                logger.info("Execution for %s cancelled before step %d/%d", subject_id, index, total)
                self._notify(subject_id, index - 1, total, None)
                return report

            self.state = STEP_STATES[step.kind]
            self._notify(subject_id, index, total, step.kind)
            self.audit.log_step_started(subject_id, index, total, step.kind.value)
            logger.info("Step %d/%d for %s: %s", index, total, subject_id, step.description or step.kind.value)
            try:
                tx_hashes = self._run_step(step, plan, ctx)
            except Exception as exc:
                logger.exception("Step %d/%d (%s) failed for %s", index, total, step.kind.value, subject_id)
                return self._fail(report, step.kind, exc)
            report.completed.append(StepOutcome(step.kind, tuple(tx_hashes)))
            self.audit.log_step_completed(subject_id, index, total, step.kind.value, tx_hashes)
            self._record_step(cart, step, ctx)

        self.state = ExecutorState.COMPLETED
        report.state = ExecutorState.COMPLETED
        cart.clear()
        if self._store is not None:
            self._store.delete(subject_id)
        self.audit.log_completed(subject_id, len(report.tx_hashes))
        self._notify(subject_id, total, total, None)
        return report

    def execute_all(self, carts: MultiCart) -> list[ExecutionReport]:
        """Run subjects one after another, stopping at the first that does not complete."""
        reports: list[ExecutionReport] = []
        for model in carts:
            if model.is_empty():
                continue
            report = self.execute(model)
            reports.append(report)
            if not report.ok:
                break
            carts.clear_founder(model.subject_id)
        return reports

    def _record_step(self, cart: CartModel, step: PlannedStep, ctx: _RunContext) -> None:
        """Apply a confirmed step to the live cart and persist it."""
        if step.kind == StepKind.REDEEM:
            redeemed = {item.id for item in step.items}
            for item in cart.items:
                if item.id in redeemed:
                    item.current_position = None
        elif step.kind == StepKind.CREATE_ATOMS:
            for item in cart.items:
                atom_id = ctx.atom_ids.get(item.totem_id)
                if item.is_new_totem and atom_id is not None:
                    item.totem_id = atom_id
                    item.is_new_totem = False
        elif step.kind == StepKind.CREATE_TRIPLES:
            provisional = {atom_id: totem for totem, atom_id in ctx.atom_ids.items()}
            for item in cart.items:
                if item.term_id is not None:
                    continue
                totem = provisional.get(item.totem_id, item.totem_id)
                item.term_id = ctx.triple_ids.get(triple_key(item.predicate_id, totem))

        if step.kind in _DEPOSIT_STEPS:
            for item in step.items:
                if cart.get(item.id) is not None:
                    cart.remove(item.id)
        if self._store is not None:
            self._store.save(cart.cart)

    # ---- steps ---------------------------------------------------------------

    def _run_step(self, step: PlannedStep, plan: ExecutionPlan, ctx: _RunContext) -> list[str]:
        if step.kind == StepKind.REDEEM:
            result = self._redeemer.redeem_positions(step.items)
            return list(result.tx_hashes) if result else []
        if step.kind == StepKind.CREATE_ATOMS:
            return self._create_atoms(step, plan, ctx)
        if step.kind == StepKind.CREATE_TRIPLES:
            return self._create_triples(step, plan, ctx)
        if step.kind in (StepKind.DEPOSIT_NEW, StepKind.DEPOSIT):
            return self._deposit_items(step.items, ctx)
        if step.kind == StepKind.INIT_DEPOSIT:
            term_ids = self._init_term_ids(step.items, ctx)
            amounts = [plan.config.min_deposit] * len(term_ids)
            return self._deposit(term_ids, [int(CurveId.PROGRESSIVE)] * len(term_ids), amounts)
        if step.kind == StepKind.INIT_REDEEM:
            result = self._redeemer.redeem_init_positions(self._init_term_ids(step.items, ctx), CurveId.PROGRESSIVE)
            return list(result.tx_hashes) if result else []
        raise ValueError(f"Unknown step kind: {step.kind}")

    def _slices(self, n: int) -> list[slice]:
        size = self.engine.max_batch_size
        return [slice(start, start + size) for start in range(0, n, size)]

    def _create_atoms(self, step: PlannedStep, plan: ExecutionPlan, ctx: _RunContext) -> list[str]:
        names: dict[str, str] = {}
        for item in step.items:
            if item.totem_id not in ctx.atom_ids:
                names.setdefault(item.totem_id, item.totem_name or item.totem_id)
        totems = list(names)
        data = [names[t].encode("utf-8") for t in totems]
        assets = [plan.config.atom_base_cost] * len(totems)

        tx_hashes: list[str] = []
        for part in self._slices(len(totems)):
            receipt = self._gateway.create_atoms(data[part], assets[part])
            expected = totems[part]
            if len(receipt.term_ids) != len(expected):
                raise TransactionFailedError(
                    f"createAtoms reported {len(receipt.term_ids)} atoms for {len(expected)} created",
                    tx_hash=receipt.tx_hash,
                )
            ctx.atom_ids.update(zip(expected, receipt.term_ids))
            tx_hashes.append(receipt.tx_hash)
        return tx_hashes

    def _create_triples(self, step: PlannedStep, plan: ExecutionPlan, ctx: _RunContext) -> list[str]:
        keys = [key for key in step.triple_keys if key not in ctx.triple_ids]
        folded = set(plan.folded_triple_keys)
        triples = [plan.triples[key] for key in keys]
        subject_ids = [plan.subject_id] * len(keys)
        predicate_ids = [t.predicate_id for t in triples]
        object_ids = [ctx.atom_ids.get(t.totem_id, t.totem_id) for t in triples]
        base = plan.config.triple_base_cost
        assets = [base + (t.deposit_total if key in folded else 0) for key, t in zip(keys, triples)]

        tx_hashes: list[str] = []
        for part in self._slices(len(keys)):
            receipt = self._gateway.create_triples(
                subject_ids[part], predicate_ids[part], object_ids[part], assets[part]
            )
            expected = keys[part]
            if len(receipt.term_ids) != len(expected):
                raise TransactionFailedError(
                    f"createTriples reported {len(receipt.term_ids)} triples for {len(expected)} created",
                    tx_hash=receipt.tx_hash,
                )
            ctx.triple_ids.update(zip(expected, receipt.term_ids))
            tx_hashes.append(receipt.tx_hash)
        return tx_hashes

    def _resolve(self, item: VoteCartItem, ctx: _RunContext) -> VoteCartItem:
        """Fill in the term ids learned during this run."""
        key = triple_key(item.predicate_id, item.totem_id)
        term_id = item.term_id or ctx.triple_ids.get(key)
        if term_id is None:
            raise ValidationError(f"No triple id known for {item.totem_name or item.totem_id}", item_id=item.id)
        counter_term_id = item.counter_term_id
        if item.direction == "oppose" and counter_term_id is None:
            counter_term_id = ctx.counter_ids.get(term_id)
            if counter_term_id is None:
                counter_term_id = self._gateway.get_counter_term_id(term_id)
                ctx.counter_ids[term_id] = counter_term_id
        return replace(
            item,
            term_id=term_id,
            counter_term_id=counter_term_id,
            totem_id=ctx.atom_ids.get(item.totem_id, item.totem_id),
            is_new_totem=False,
        )

    def _init_term_ids(self, items: Sequence[VoteCartItem], ctx: _RunContext) -> list[str]:
        return list(dict.fromkeys(self._resolve(item, ctx).term_id for item in items))  # type: ignore[misc]

    def _deposit_items(self, items: Sequence[VoteCartItem], ctx: _RunContext) -> list[str]:
        resolved = [self._resolve(item, ctx) for item in items]
        tx_hashes: list[str] = []
        for curve in (CurveId.LINEAR, CurveId.PROGRESSIVE):
            opposing = [i for i in resolved if i.direction == "oppose" and i.curve_id == curve]
            if opposing:
                tx_hashes += self._redeemer.redeem_blocking_for_positions(opposing, curve)
        term_ids = [i.deposit_term_id for i in resolved]
        curve_ids = [int(i.curve_id) for i in resolved]
        amounts = [i.amount for i in resolved]
        tx_hashes += self._deposit(term_ids, curve_ids, amounts)  # type: ignore[arg-type]
        return tx_hashes

    def _deposit(self, term_ids: list[str], curve_ids: list[int], amounts: list[int]) -> list[str]:
        if not term_ids:
            return []
        min_shares = self._preview.calculate_min_shares(term_ids, curve_ids, amounts)
        tx_hashes: list[str] = []
        for chunk in chunk_batch_arrays(term_ids, curve_ids, amounts, min_shares, self.engine.max_batch_size):
            receipt = self._gateway.deposit_batch(
                self.owner, chunk.term_ids, chunk.curve_ids, chunk.values, chunk.min_values
            )
            tx_hashes.append(receipt.tx_hash)
        return tx_hashes

"""VoteSession: the explicitly constructed context owning all collaborators.

Nothing in votecart keeps process-wide state; a session is built once (per
wallet) and passed to whoever needs it, e.g. the HTTP API.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Iterable, Mapping, Optional

from votecart.cart.model import CartModel, MultiCart
from votecart.cart.storage import CartStore, InMemoryCartStore, SqlCartStore, load_multi_cart
from votecart.chain.interfaces import AtomDirectory, ContractGateway
from votecart.chain.preview import ContractPreviewClient
from votecart.chain.throttle import RateLimitedChannel, RetryPolicy
from votecart.chain.vault_gate import VaultInitGate
from votecart.chain.web3_gateway import Web3MultiVaultGateway
from votecart.claims.service import ClaimService
from votecart.config import ChainConfig, EngineConfig, StoreConfig
from votecart.execution.audit import ExecutionAuditLog
from votecart.execution.executor import BatchExecutor, ExecutionReport, StepProgress, take_snapshot
from votecart.execution.redeem import RedeemOrchestrator
from votecart.planning.availability import CurveAvailability, availability_for
from votecart.planning.planner import BatchPlanner, ExecutionPlan
from votecart.types import Direction, Position, VoteCartItem

logger = logging.getLogger(__name__)


class VoteSession:
    def __init__(
        self,
        *,
        gateway: ContractGateway,
        owner: str,
        engine: Optional[EngineConfig] = None,
        store: Optional[CartStore] = None,
        directory: Optional[AtomDirectory] = None,
        on_progress: Optional[Callable[[StepProgress], None]] = None,
    ) -> None:
        self.engine = engine or EngineConfig()
        self.gateway = gateway
        self.owner = owner
        self.store: CartStore = store or InMemoryCartStore()
        self.audit = ExecutionAuditLog()
        self.preview = ContractPreviewClient(gateway, slippage_bps=self.engine.slippage_bps)
        self.gate = VaultInitGate(gateway)
        self.planner = BatchPlanner(self.engine)
        self.redeemer = RedeemOrchestrator(gateway, self.preview, owner, max_batch_size=self.engine.max_batch_size)
        self.executor = BatchExecutor(
            gateway=gateway,
            owner=owner,
            preview=self.preview,
            gate=self.gate,
            planner=self.planner,
            redeemer=self.redeemer,
            engine=self.engine,
            store=self.store,
            audit=self.audit,
            on_progress=on_progress,
        )
        self.claims = ClaimService(gateway=gateway, directory=directory, owner=owner) if directory else None
        self.carts: MultiCart = load_multi_cart(self.store)

    @classmethod
    def from_env(
        cls,
        *,
        signer: Any = None,
        directory: Optional[AtomDirectory] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> VoteSession:
        """Build a web3-backed session from VOTECART_* / DATABASE_URL settings.

        Without a signer the session is read-only (planning, previews) for
        the wallet named by VOTECART_OWNER_ADDRESS.
        """
        env = os.environ if env is None else env
        owner = signer.address if signer is not None else env.get("VOTECART_OWNER_ADDRESS", "")
        if not owner:
            raise ValueError("A signer or VOTECART_OWNER_ADDRESS is required")
        engine = EngineConfig.from_env(env)
        chain = ChainConfig.from_env(env)
        store_config = StoreConfig.from_env(env)
        gateway = Web3MultiVaultGateway(
            config=chain,
            channel=RateLimitedChannel(retry_policy=RetryPolicy()),
            signer=signer,
        )
        store: CartStore = SqlCartStore(config=store_config) if store_config.database_url else InMemoryCartStore()
        return cls(gateway=gateway, owner=owner, engine=engine, store=store, directory=directory)

    # ---- cart ----------------------------------------------------------------

    def cart(self, subject_id: str, subject_name: str = "") -> CartModel:
        return self.carts.cart_for(subject_id, subject_name)

    def persist(self, subject_id: str) -> None:
        model = self.carts.get(subject_id)
        if model is None or model.is_empty():
            self.store.delete(subject_id)
        else:
            self.store.save(model.cart)

    def add_item(self, item: VoteCartItem, subject_name: str = "") -> VoteCartItem:
        held = self.cart(item.subject_id, subject_name).add(item)
        self.persist(item.subject_id)
        return held

    def remove_item(self, subject_id: str, item_id: str) -> VoteCartItem:
        model = self.carts.get(subject_id)
        if model is None:
            raise KeyError(item_id)
        removed = model.remove(item_id)
        if model.is_empty():
            self.carts.clear_founder(subject_id)
        self.persist(subject_id)
        return removed

    def update_amount(self, subject_id: str, item_id: str, amount: int) -> VoteCartItem:
        model = self.carts.get(subject_id)
        if model is None:
            raise KeyError(item_id)
        item = model.update_amount(item_id, amount)
        self.persist(subject_id)
        return item

    def reset(self, subject_id: Optional[str] = None) -> None:
        """Explicit reset of one cart, or of every cart."""
        subject_ids = [subject_id] if subject_id else self.carts.subject_ids()
        for sid in subject_ids:
            self.carts.clear_founder(sid)
            self.store.delete(sid)

    # ---- planning ------------------------------------------------------------

    def plan(self, subject_id: str, *, check_balance: bool = False) -> ExecutionPlan:
        model = self.carts.get(subject_id)
        if model is None:
            raise KeyError(subject_id)
        snapshot = take_snapshot(
            self.gateway, self.gate, model.cart, owner=self.owner if check_balance else None
        )
        return self.planner.plan_snapshot(snapshot)

    def availability(
        self,
        direction: Optional[Direction],
        *,
        subject_id: Optional[str] = None,
        totem_id: Optional[str] = None,
        positions: Iterable[Position] = (),
    ) -> CurveAvailability:
        model = self.carts.get(subject_id) if subject_id else None
        return availability_for(
            direction,
            positions=positions,
            cart_items=model.items if model else (),
            totem_id=totem_id,
        )

    # ---- execution -----------------------------------------------------------

    def execute(self, subject_id: str) -> ExecutionReport:
        model = self.carts.get(subject_id)
        if model is None:
            raise KeyError(subject_id)
        report = self.executor.execute(model)
        if report.ok:
            self.carts.clear_founder(subject_id)
        return report

    def execute_all(self) -> list[ExecutionReport]:
        return self.executor.execute_all(self.carts)

    def cancel(self) -> None:
        self.executor.cancel()

"""Shared test fixtures for pytest.

Provides an in-memory MultiVault gateway, cart item factories and common
constants used across multiple test files.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from votecart.chain.interfaces import CallResult, TxReceipt
from votecart.errors import TransactionFailedError, TransportError
from votecart.session import VoteSession
from votecart.types import ContractConfig, CurveId, Position, VoteCartItem

OWNER = "0x00000000000000000000000000000000000000aa"
SUBJECT = "0x" + "5" * 64
PREDICATE = "0x" + "7" * 64

TRIPLE_COST = 500_000_000_000_000  # 0.0005
MIN_DEPOSIT = 100_000_000_000_000  # 0.0001


def term(n: int) -> str:
    return "0x" + f"{n:064x}"


class FakeGateway:
    """In-memory ContractGateway.

    Previews are 1:1 (shares == assets). Redeeming leaves one ghost share in
    the vault, as the contract does.
    """

    def __init__(self, config: Optional[ContractConfig] = None, balance: int = 10**18) -> None:
        self.config = config or ContractConfig(triple_base_cost=TRIPLE_COST, min_deposit=MIN_DEPOSIT)
        self.balance = balance
        self.shares: dict[tuple[str, str, int], int] = {}
        self.vault_shares: dict[tuple[str, int], int] = {}
        self.counters: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_on: set[str] = set()
        self.failed_previews: set[str] = set()
        self.multicall_error: Optional[Exception] = None
        self._ids = itertools.count(1000)
        self._txs = itertools.count(1)

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def writes(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [c for c in self.calls if c[0] in {"create_atoms", "create_triples", "deposit_batch", "redeem_batch"}]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise TransactionFailedError(f"{name} reverted", tx_hash="0xdead")

    def _receipt(self, term_ids: Sequence[str] = ()) -> TxReceipt:
        n = next(self._txs)
        return TxReceipt(tx_hash=f"0x{n:064x}", block_number=n, term_ids=tuple(term_ids))

    # reads

    def get_contract_config(self) -> ContractConfig:
        self._record("get_contract_config")
        return self.config

    def get_balance(self, owner: str) -> int:
        self._record("get_balance", owner)
        return self.balance

    def get_vault(self, term_id: str, curve_id: int) -> tuple[int, int]:
        self._record("get_vault", term_id, curve_id)
        shares = self.vault_shares.get((term_id, int(curve_id)), 0)
        return shares, shares

    def get_shares(self, owner: str, term_id: str, curve_id: int) -> int:
        self._record("get_shares", owner, term_id, curve_id)
        return self.shares.get((owner, term_id, int(curve_id)), 0)

    def get_counter_term_id(self, term_id: str) -> str:
        self._record("get_counter_term_id", term_id)
        if term_id not in self.counters:
            self.counters[term_id] = term(next(self._ids))
        return self.counters[term_id]

    def multicall(self, function_name: str, args_list: Sequence[tuple[Any, ...]]) -> list[CallResult]:
        self._record("multicall", function_name, list(args_list))
        if self.multicall_error is not None:
            raise self.multicall_error
        results = []
        for args in args_list:
            if args[0] in self.failed_previews:
                results.append(CallResult(success=False))
            elif function_name == "getVault":
                shares = self.vault_shares.get((args[0], int(args[1])), 0)
                results.append(CallResult(success=True, value=(shares, shares)))
            else:
                results.append(CallResult(success=True, value=(args[2], args[2])))
        return results

    # writes

    def create_atoms(self, data: Sequence[bytes], assets: Sequence[int]) -> TxReceipt:
        self._record("create_atoms", list(data), list(assets))
        return self._receipt([term(next(self._ids)) for _ in data])

    def create_triples(
        self,
        subject_ids: Sequence[str],
        predicate_ids: Sequence[str],
        object_ids: Sequence[str],
        assets: Sequence[int],
    ) -> TxReceipt:
        self._record("create_triples", list(subject_ids), list(predicate_ids), list(object_ids), list(assets))
        return self._receipt([term(next(self._ids)) for _ in subject_ids])

    def deposit_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        assets: Sequence[int],
        min_shares: Sequence[int],
    ) -> TxReceipt:
        self._record("deposit_batch", owner, list(term_ids), list(curve_ids), list(assets), list(min_shares))
        for term_id, curve_id, amount in zip(term_ids, curve_ids, assets):
            key = (owner, term_id, int(curve_id))
            self.shares[key] = self.shares.get(key, 0) + amount
            vault = (term_id, int(curve_id))
            self.vault_shares[vault] = self.vault_shares.get(vault, 0) + amount
        return self._receipt()

    def redeem_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        shares: Sequence[int],
        min_assets: Sequence[int],
    ) -> TxReceipt:
        self._record("redeem_batch", owner, list(term_ids), list(curve_ids), list(shares), list(min_assets))
        for term_id, curve_id, amount in zip(term_ids, curve_ids, shares):
            key = (owner, term_id, int(curve_id))
            self.shares[key] = max(self.shares.get(key, 0) - amount, 0)
            vault = (term_id, int(curve_id))
            self.vault_shares[vault] = max(self.vault_shares.get(vault, 0) - amount, 1)
        return self._receipt()


class FlakyCall:
    """Callable failing with `errors` in order, then returning `value`."""

    def __init__(self, errors: Sequence[Exception], value: Any = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0
        self.__name__ = "flaky_call"

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def contract_config() -> ContractConfig:
    return ContractConfig(triple_base_cost=TRIPLE_COST, min_deposit=MIN_DEPOSIT)


@pytest.fixture
def make_item() -> Callable[..., VoteCartItem]:
    """Factory for cart items on SUBJECT / PREDICATE with sensible defaults."""
    counter = itertools.count(1)

    def _make(
        totem: str = "totem-a",
        *,
        direction: str = "support",
        curve: CurveId = CurveId.LINEAR,
        amount: int = 2 * MIN_DEPOSIT,
        term_id: Optional[str] = None,
        counter_term_id: Optional[str] = None,
        is_new_totem: bool = False,
        position: Optional[Position] = None,
        item_id: Optional[str] = None,
        subject_id: str = SUBJECT,
        predicate_id: str = PREDICATE,
    ) -> VoteCartItem:
        return VoteCartItem(
            id=item_id or f"item-{next(counter)}",
            subject_id=subject_id,
            totem_id=totem,
            totem_name=totem.title(),
            predicate_id=predicate_id,
            direction=direction,  # type: ignore[arg-type]
            curve_id=curve,
            amount=amount,
            term_id=term_id,
            counter_term_id=counter_term_id,
            is_new_totem=is_new_totem,
            current_position=position,
        )

    return _make


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("rpc unavailable")


@pytest.fixture
def session(gateway) -> VoteSession:
    """Session over the in-memory gateway with an in-memory cart store."""
    return VoteSession(gateway=gateway, owner=OWNER)


@pytest.fixture
def client(session) -> TestClient:
    """Test client for the vote cart API."""
    return TestClient(create_app(session))

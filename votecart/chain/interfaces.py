from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from votecart.types import ContractConfig


@dataclass(frozen=True)
class CallResult:
    """One element of a multicall: failed elements carry no value."""

    success: bool
    value: Any = None


@dataclass(frozen=True)
class TxReceipt:
    """Confirmed transaction.

    `term_ids` lists ids emitted by creation calls, in call order.
    """

    tx_hash: str
    block_number: Optional[int] = None
    term_ids: tuple[str, ...] = ()


class ContractGateway(Protocol):
    """MultiVault operations consumed by the planner and executor.

    Every call goes through the rate-limited call channel. Write calls return
    only once the transaction is confirmed and raise TransactionFailedError on
    revert. Implementations may block; callers run them sequentially.
    """

    def get_contract_config(self) -> ContractConfig:
        """Read triple/atom base costs and the minimum deposit."""

    def get_balance(self, owner: str) -> int:
        """Native token balance of `owner` in wei."""

    def get_vault(self, term_id: str, curve_id: int) -> tuple[int, int]:
        """Return (total_assets, total_shares) for a vault."""

    def get_shares(self, owner: str, term_id: str, curve_id: int) -> int:
        """Live share balance of `owner` in a vault."""

    def get_counter_term_id(self, term_id: str) -> str:
        """AGAINST vault id for a triple's FOR term id."""

    def multicall(self, function_name: str, args_list: Sequence[tuple[Any, ...]]) -> list[CallResult]:
        """Run one read-only function for many argument tuples in a single call."""

    def create_atoms(self, data: Sequence[bytes], assets: Sequence[int]) -> TxReceipt:
        """Create atoms; `term_ids` of the receipt follow `data` order."""

    def create_triples(
        self,
        subject_ids: Sequence[str],
        predicate_ids: Sequence[str],
        object_ids: Sequence[str],
        assets: Sequence[int],
    ) -> TxReceipt:
        """Create triples; each asset value includes the triple base cost."""

    def deposit_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        assets: Sequence[int],
        min_shares: Sequence[int],
    ) -> TxReceipt:
        """Deposit into many vaults in one transaction."""

    def redeem_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        shares: Sequence[int],
        min_assets: Sequence[int],
    ) -> TxReceipt:
        """Redeem shares from many vaults in one transaction."""


class AtomDirectory(Protocol):
    """Indexer lookups used to resolve labels and detect existing claims."""

    def find_atom(self, label: str) -> Optional[str]:
        """Return the term id of an atom with this label, if any."""

    def find_triple(self, subject_id: str, predicate_id: str, object_id: str) -> Optional[dict[str, str]]:
        """Return {term_id, subject_label, predicate_label, object_label} if the triple exists."""

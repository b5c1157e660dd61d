from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Generic, Literal, Optional, TypeVar

Direction = Literal["support", "oppose"]

ErrorKind = Literal[
    "validation",
    "claim_exists",
    "insufficient_balance",
    "transport",
    "transaction_failed",
    "stale_state",
    "cancelled",
    "unknown",
]

T = TypeVar("T")


class CurveId(IntEnum):
    """Bonding curve ids as registered in the MultiVault contract."""

    LINEAR = 1
    PROGRESSIVE = 2


def opposite(direction: Direction) -> Direction:
    return "oppose" if direction == "support" else "support"


@dataclass(frozen=True)
class Position:
    """On-chain position snapshot (borrowed, never mutated by the cart)."""

    direction: Direction
    curve_id: CurveId
    shares: int


@dataclass
class VoteCartItem:
    """A pending vote on one (subject, predicate, totem) triple.

    `term_id` is None while the triple does not exist on-chain. For new totems
    `totem_id` is a provisional key until the atom is created.
    """

    id: str
    subject_id: str
    totem_id: str
    totem_name: str
    predicate_id: str
    direction: Direction
    curve_id: CurveId
    amount: int
    term_id: Optional[str] = None
    counter_term_id: Optional[str] = None
    is_new_totem: bool = False
    current_position: Optional[Position] = None

    @property
    def is_new_triple(self) -> bool:
        return self.term_id is None

    @property
    def key(self) -> tuple[str, str, int, str]:
        """One item per (totem, predicate, curve, direction) in a cart."""
        return (self.totem_id, self.predicate_id, int(self.curve_id), self.direction)

    @property
    def deposit_term_id(self) -> Optional[str]:
        """Vault receiving this item's deposit (FOR or AGAINST side)."""
        return self.term_id if self.direction == "support" else self.counter_term_id


@dataclass
class VoteCart:
    subject_id: str
    subject_name: str
    items: list[VoteCartItem] = field(default_factory=list)


@dataclass
class UniqueTriple:
    """Cart items sharing one (predicate, object) pair for the cart's subject."""

    predicate_id: str
    totem_id: str
    totem_name: str
    items: list[VoteCartItem] = field(default_factory=list)

    @property
    def term_id(self) -> Optional[str]:
        for item in self.items:
            if item.term_id is not None:
                return item.term_id
        return None

    @property
    def is_new(self) -> bool:
        return self.term_id is None

    @property
    def is_new_totem(self) -> bool:
        return any(item.is_new_totem for item in self.items)

    @property
    def is_linear_support_only(self) -> bool:
        return all(
            item.curve_id == CurveId.LINEAR and item.direction == "support" for item in self.items
        )

    @property
    def deposit_total(self) -> int:
        return sum((item.amount for item in self.items), 0)


@dataclass(frozen=True)
class ContractConfig:
    """Protocol costs, refreshed once per planning session."""

    triple_base_cost: int
    min_deposit: int
    atom_base_cost: int = 0


@dataclass(frozen=True)
class BatchChunk:
    """One slice of parallel batch arrays, sized for a single transaction."""

    term_ids: tuple[str, ...]
    curve_ids: tuple[int, ...]
    values: tuple[int, ...]
    min_values: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.term_ids)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Explicit success/failure value used at transport and step boundaries."""

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> Result[T]:
        return cls(error=error, message=message)

    def unwrap(self) -> T:
        if self.error is not None:
            raise RuntimeError(f"unwrap on failed result ({self.error}): {self.message}")
        return self.value  # type: ignore[return-value]

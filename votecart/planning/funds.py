"""Amount normalization, minimum-deposit validation and balance checks.

Item amounts are the deposit only. Creation costs (triple base cost per new
triple, atom cost per new atom) are added on top when computing what the
wallet must hold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from votecart.amounts.math import auto_adjust_amount, format_wei, min_required_amount
from votecart.errors import InsufficientBalanceError, ValidationError
from votecart.types import ContractConfig, UniqueTriple, VoteCartItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FundsBreakdown:
    deposits: int
    triple_costs: int
    atom_costs: int
    # Seed deposits for uninitialized progressive vaults, redeemed right after.
    init_deposits: int = 0

    @property
    def total(self) -> int:
        return self.deposits + self.triple_costs + self.atom_costs + self.init_deposits


def normalize_amounts(
    items: Sequence[VoteCartItem], config: ContractConfig, *, tolerance_wei: int
) -> list[VoteCartItem]:
    """Auto-adjust near-minimum amounts, then enforce the minimum deposit.

    Returns copies; the cart's own items are not modified.
    """
    if not items:
        raise ValidationError("Cart is empty")

    # Item amounts are the deposit only; creation costs are added separately.
    minimum = min_required_amount(config, is_new_triple=False)
    normalized: list[VoteCartItem] = []
    for item in items:
        if item.amount <= 0:
            raise ValidationError(f"Amount for {item.totem_name or item.totem_id} must be positive", item_id=item.id)
        amount = auto_adjust_amount(item.amount, minimum, tolerance_wei, item.totem_name)
        if amount < minimum:
            raise ValidationError(
                f"Amount for {item.totem_name or item.totem_id} is below the minimum deposit: "
                f"{format_wei(amount)} < {format_wei(minimum)}",
                item_id=item.id,
            )
        normalized.append(item if amount == item.amount else replace(item, amount=amount))
    return normalized


def new_atom_count(items: Iterable[VoteCartItem]) -> int:
    """Distinct totems that still need their atom created."""
    return len({item.totem_id for item in items if item.is_new_totem})


def funds_breakdown(
    items: Sequence[VoteCartItem],
    triples: Iterable[UniqueTriple],
    config: ContractConfig,
    *,
    init_count: int = 0,
) -> FundsBreakdown:
    new_triples = sum(1 for triple in triples if triple.is_new)
    return FundsBreakdown(
        deposits=sum((item.amount for item in items), 0),
        triple_costs=config.triple_base_cost * new_triples,
        atom_costs=config.atom_base_cost * new_atom_count(items),
        init_deposits=config.min_deposit * init_count,
    )


def required_total(
    items: Sequence[VoteCartItem],
    triples: Iterable[UniqueTriple],
    config: ContractConfig,
    *,
    init_count: int = 0,
) -> int:
    """Deposits plus creation costs, in wei."""
    return funds_breakdown(items, triples, config, init_count=init_count).total


def ensure_sufficient_balance(required: int, balance: int) -> None:
    if balance < required:
        error = InsufficientBalanceError(required=required, balance=balance)
        logger.warning(
            "Insufficient balance: have %s, need %s (missing %s)",
            format_wei(balance),
            format_wei(required),
            format_wei(error.deficit),
        )
        raise error

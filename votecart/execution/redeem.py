"""Redemptions that must happen before deposits.

Share balances are always re-read from the contract: the cart's position
snapshot can be stale if the position changed out-of-band.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from votecart.amounts.math import format_wei
from votecart.chain.interfaces import ContractGateway
from votecart.chain.preview import ContractPreviewClient
from votecart.config import DEFAULT_MAX_BATCH_SIZE
from votecart.errors import StaleStateError
from votecart.planning.planner import chunk_batch_arrays
from votecart.types import CurveId, VoteCartItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedeemInstruction:
    item_id: str
    term_id: str
    curve_id: int
    shares: int


@dataclass(frozen=True)
class RedeemResult:
    tx_hashes: tuple[str, ...]
    total_shares: int
    count: int

    @property
    def tx_hash(self) -> str:
        return self.tx_hashes[-1]


class RedeemOrchestrator:
    def __init__(
        self,
        gateway: ContractGateway,
        preview: ContractPreviewClient,
        owner: str,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ) -> None:
        self._gateway = gateway
        self._preview = preview
        self.owner = owner
        self.max_batch_size = max_batch_size

    def _position_term_id(self, item: VoteCartItem) -> Optional[str]:
        """Vault holding the item's current position (FOR or AGAINST side)."""
        position = item.current_position
        if position is None or item.term_id is None:
            return None
        if position.direction == "support":
            return item.term_id
        return item.counter_term_id or self._gateway.get_counter_term_id(item.term_id)

    def _live_shares(self, item_label: str, term_id: str, curve_id: int) -> int:
        shares = self._gateway.get_shares(self.owner, term_id, curve_id)
        if shares <= 0:
            raise StaleStateError(f"No shares left for {item_label} in {term_id} (curve {curve_id})")
        return shares

    def collect_redeems(self, items: Iterable[VoteCartItem]) -> list[RedeemInstruction]:
        instructions: list[RedeemInstruction] = []
        for item in items:
            term_id = self._position_term_id(item)
            if term_id is None:
                continue
            curve_id = int(item.current_position.curve_id)  # type: ignore[union-attr]
            try:
                shares = self._live_shares(item.totem_name or item.totem_id, term_id, curve_id)
            except StaleStateError as exc:
                logger.warning("%s, skipping", exc)
                continue
            logger.debug(
                "Verified shares for %s: cached=%s live=%s",
                item.totem_name,
                item.current_position.shares,  # type: ignore[union-attr]
                shares,
            )
            instructions.append(RedeemInstruction(item.id, term_id, curve_id, shares))
        return instructions

    def _submit(self, instructions: Sequence[RedeemInstruction]) -> RedeemResult:
        term_ids = [i.term_id for i in instructions]
        curve_ids = [i.curve_id for i in instructions]
        shares = [i.shares for i in instructions]
        min_assets = self._preview.calculate_min_assets(term_ids, curve_ids, shares)

        tx_hashes: list[str] = []
        for chunk in chunk_batch_arrays(term_ids, curve_ids, shares, min_assets, self.max_batch_size):
            receipt = self._gateway.redeem_batch(
                self.owner, chunk.term_ids, chunk.curve_ids, chunk.values, chunk.min_values
            )
            tx_hashes.append(receipt.tx_hash)

        total = sum(shares)
        logger.info("Redeemed %d positions (%s shares) in %d tx", len(instructions), format_wei(total), len(tx_hashes))
        return RedeemResult(tx_hashes=tuple(tx_hashes), total_shares=total, count=len(instructions))

    def redeem_positions(self, items: Iterable[VoteCartItem]) -> Optional[RedeemResult]:
        """Redeem the current positions of `items`. None when nothing is left to redeem."""
        instructions = self.collect_redeems(items)
        if not instructions:
            logger.info("No valid positions to redeem")
            return None
        return self._submit(instructions)

    def redeem_blocking_for_positions(self, items: Iterable[VoteCartItem], curve_id: int) -> list[str]:
        """Redeem FOR shares on `curve_id` that would block AGAINST deposits on the same curve.

        Returns one transaction hash per submitted chunk, empty when nothing blocks.
        """
        instructions: list[RedeemInstruction] = []
        for item in items:
            if item.term_id is None:
                continue
            shares = self._gateway.get_shares(self.owner, item.term_id, int(curve_id))
            if shares > 0:
                logger.info("Blocking FOR position on %s: %s shares", item.totem_name, format_wei(shares))
                instructions.append(RedeemInstruction(item.id, item.term_id, int(curve_id), shares))
        if not instructions:
            return []
        return list(self._submit(instructions).tx_hashes)

    def redeem_init_positions(
        self, term_ids: Sequence[str], curve_id: int = CurveId.PROGRESSIVE
    ) -> Optional[RedeemResult]:
        """Redeem the FOR shares minted by an init deposit, leaving ghost shares behind."""
        instructions: list[RedeemInstruction] = []
        for term_id in dict.fromkeys(term_ids):
            try:
                shares = self._live_shares(term_id, term_id, int(curve_id))
            except StaleStateError as exc:
                logger.warning("%s, skipping", exc)
                continue
            instructions.append(RedeemInstruction(term_id, term_id, int(curve_id), shares))
        if not instructions:
            return None
        return self._submit(instructions)

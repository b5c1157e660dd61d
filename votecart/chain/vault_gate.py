"""Vault initialization checks for oppose deposits on the progressive curve.

An AGAINST deposit on the progressive curve needs that curve's vault to hold
shares already. The check reads `getVault` from the contract because the
indexer reports zero after a full redeem while ghost shares persist on-chain.
Uninitialized vaults need three transactions: init FOR, redeem FOR, deposit
AGAINST.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from votecart.chain.interfaces import ContractGateway
from votecart.types import CurveId, Direction

logger = logging.getLogger(__name__)

INIT_SEQUENCE_STEPS = 3


def needs_init_sequence(direction: Optional[Direction], curve_id: int, is_initialized: bool) -> bool:
    return direction == "oppose" and curve_id == CurveId.PROGRESSIVE and not is_initialized


def required_step_count(direction: Optional[Direction], curve_id: int, is_initialized: bool) -> int:
    """1 for a plain deposit, 3 when the init sequence is required."""
    return INIT_SEQUENCE_STEPS if needs_init_sequence(direction, curve_id, is_initialized) else 1


class VaultInitGate:
    def __init__(self, gateway: ContractGateway) -> None:
        self._gateway = gateway

    def total_shares(self, term_id: str, curve_id: int) -> int:
        _total_assets, total_shares = self._gateway.get_vault(term_id, int(curve_id))
        return int(total_shares)

    def is_initialized(self, term_id: str, curve_id: int) -> bool:
        """True when the vault holds shares. Read failures count as uninitialized."""
        try:
            return self.total_shares(term_id, curve_id) > 0
        except Exception as exc:
            logger.warning("Could not read vault %s (curve %s): %s", term_id, curve_id, exc)
            return False

    def check_many(self, term_ids: Sequence[str], curve_id: int = CurveId.PROGRESSIVE) -> dict[str, bool]:
        """Batch `is_initialized` for many vaults through one multicall."""
        unique = list(dict.fromkeys(term_ids))
        if not unique:
            return {}
        try:
            results = self._gateway.multicall("getVault", [(term_id, int(curve_id)) for term_id in unique])
        except Exception as exc:
            logger.warning("getVault multicall failed, reading %d vaults one by one: %s", len(unique), exc)
            return {term_id: self.is_initialized(term_id, curve_id) for term_id in unique}

        status: dict[str, bool] = {}
        for term_id, result in zip(unique, results):
            if not result.success or result.value is None:
                status[term_id] = False
                continue
            _total_assets, total_shares = result.value
            status[term_id] = int(total_shares) > 0
        for term_id in unique[len(results):]:
            status[term_id] = False
        return status

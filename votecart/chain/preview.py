"""Batched deposit/redeem previews with slippage-protected minimums.

Previews never fail the caller: a failed element maps to 0 and a transport
failure maps the whole batch to zeros. An all-zero vector means "no estimate
available", not "nothing to deposit".
"""

from __future__ import annotations

import logging
from typing import Sequence

from votecart.amounts.math import apply_slippage
from votecart.chain.interfaces import ContractGateway
from votecart.config import DEFAULT_SLIPPAGE_BPS

logger = logging.getLogger(__name__)


def has_estimate(values: Sequence[int]) -> bool:
    return any(v > 0 for v in values)


class ContractPreviewClient:
    def __init__(self, gateway: ContractGateway, *, slippage_bps: int = DEFAULT_SLIPPAGE_BPS) -> None:
        if not 0 <= slippage_bps <= 10_000:
            raise ValueError(f"slippage_bps must be within [0, 10000], got {slippage_bps}")
        self._gateway = gateway
        self.slippage_bps = slippage_bps

    def _preview(
        self,
        function_name: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        values: Sequence[int],
    ) -> list[int]:
        if not (len(term_ids) == len(curve_ids) == len(values)):
            raise ValueError("term_ids, curve_ids and values must have the same length")
        if not term_ids:
            return []

        args = [(term_id, int(curve_id), value) for term_id, curve_id, value in zip(term_ids, curve_ids, values)]
        try:
            results = self._gateway.multicall(function_name, args)
        except Exception as exc:
            logger.warning("%s multicall failed, no estimate available: %s", function_name, exc)
            return [0] * len(term_ids)

        out: list[int] = []
        for index, result in enumerate(results):
            if not result.success or result.value is None:
                logger.debug("%s failed for index %d (%s)", function_name, index, term_ids[index])
                out.append(0)
                continue
            # Both previews return a pair; the first element is the quantity we want.
            value = result.value
            out.append(int(value[0]) if isinstance(value, (tuple, list)) else int(value))
        if len(out) != len(term_ids):
            logger.warning(
                "%s returned %d results for %d calls, no estimate available",
                function_name,
                len(out),
                len(term_ids),
            )
            return [0] * len(term_ids)
        return out

    def preview_deposit(
        self, term_ids: Sequence[str], curve_ids: Sequence[int], amounts: Sequence[int]
    ) -> list[int]:
        """Expected shares per deposit."""
        return self._preview("previewDeposit", term_ids, curve_ids, amounts)

    def preview_redeem(
        self, term_ids: Sequence[str], curve_ids: Sequence[int], shares: Sequence[int]
    ) -> list[int]:
        """Expected assets per redemption."""
        return self._preview("previewRedeem", term_ids, curve_ids, shares)

    def calculate_min_shares(
        self, term_ids: Sequence[str], curve_ids: Sequence[int], amounts: Sequence[int]
    ) -> list[int]:
        previews = self.preview_deposit(term_ids, curve_ids, amounts)
        return [apply_slippage(p, self.slippage_bps) for p in previews]

    def calculate_min_assets(
        self, term_ids: Sequence[str], curve_ids: Sequence[int], shares: Sequence[int]
    ) -> list[int]:
        previews = self.preview_redeem(term_ids, curve_ids, shares)
        return [apply_slippage(p, self.slippage_bps) for p in previews]

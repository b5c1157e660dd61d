"""Exact wei arithmetic."""

from .math import (
    BPS_DENOMINATOR,
    WEI_PER_TOKEN,
    apply_slippage,
    auto_adjust_amount,
    format_wei,
    min_required_amount,
    to_wei,
)

__all__ = [
    "BPS_DENOMINATOR",
    "WEI_PER_TOKEN",
    "apply_slippage",
    "auto_adjust_amount",
    "format_wei",
    "min_required_amount",
    "to_wei",
]

from __future__ import annotations

import logging
from decimal import Decimal

from votecart.types import ContractConfig

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000
WEI_PER_TOKEN = 10**18


def apply_slippage(expected: int, tolerance_bps: int) -> int:
    """Return the minimum acceptable value after slippage.

    `expected * (10000 - bps) // 10000`, truncating toward zero. Never uses
    floating point.
    """
    if expected < 0:
        raise ValueError("expected must be non-negative")
    if not 0 <= tolerance_bps <= BPS_DENOMINATOR:
        raise ValueError(f"tolerance_bps must be within [0, {BPS_DENOMINATOR}], got {tolerance_bps}")
    return expected * (BPS_DENOMINATOR - tolerance_bps) // BPS_DENOMINATOR


def auto_adjust_amount(amount: int, min_required: int, tolerance_wei: int, label: str = "") -> int:
    """Round `amount` up to `min_required` when the shortfall is display rounding.

    Shortfalls larger than `tolerance_wei` are left untouched so validation can
    report them.
    """
    if amount >= min_required:
        return amount
    missing = min_required - amount
    if missing > tolerance_wei:
        return amount
    logger.info(
        "Auto-adjusting amount%s: %s -> %s (missing %s wei)",
        f" for {label}" if label else "",
        format_wei(amount),
        format_wei(min_required),
        missing,
    )
    return min_required


def min_required_amount(config: ContractConfig, *, is_new_triple: bool) -> int:
    """Minimum total value for a vote: base cost + min deposit for a new triple."""
    if is_new_triple:
        return config.triple_base_cost + config.min_deposit
    return config.min_deposit


def to_wei(tokens: str | int | Decimal) -> int:
    """Convert a whole-token amount (e.g. "0.002") into wei exactly."""
    value = Decimal(str(tokens)) * WEI_PER_TOKEN
    if value != value.to_integral_value():
        raise ValueError(f"{tokens} has more than 18 decimals")
    return int(value)


def format_wei(amount: int) -> str:
    """Render wei as an exact token amount string (no trailing zeros)."""
    text = format(Decimal(amount) / WEI_PER_TOKEN, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"

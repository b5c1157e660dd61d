"""Engine, chain and store configuration.

Values default to safe settings and can be overridden from the environment
via each class's `from_env()` constructor.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_SLIPPAGE_BPS = 200  # 2%
DEFAULT_MAX_BATCH_SIZE = 50
# Display rounding compensation; a policy knob, not a protocol constant.
DEFAULT_TOLERANCE_WEI = 10_000_000
DEFAULT_RECEIPT_TIMEOUT = 120

# Multicall3 is deployed at the same address on most EVM chains.
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class EngineConfig:
    """Planner and executor policy settings."""

    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    tolerance_wei: int = DEFAULT_TOLERANCE_WEI

    def __post_init__(self) -> None:
        if not 0 <= self.slippage_bps <= 10_000:
            raise ValueError(f"slippage_bps must be within [0, 10000], got {self.slippage_bps}")
        if self.max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {self.max_batch_size}")
        if self.tolerance_wei < 0:
            raise ValueError(f"tolerance_wei must be >= 0, got {self.tolerance_wei}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> EngineConfig:
        env = os.environ if env is None else env
        return cls(
            slippage_bps=_env_int(env, "VOTECART_SLIPPAGE_BPS", DEFAULT_SLIPPAGE_BPS),
            max_batch_size=_env_int(env, "VOTECART_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE),
            tolerance_wei=_env_int(env, "VOTECART_TOLERANCE_WEI", DEFAULT_TOLERANCE_WEI),
        )


@dataclass(frozen=True)
class ChainConfig:
    """RPC connection settings for the web3 gateway."""

    rpc_url: str
    multivault_address: str
    multicall_address: str = MULTICALL3_ADDRESS
    receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT  # seconds

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> ChainConfig:
        env = os.environ if env is None else env
        rpc_url = env.get("VOTECART_RPC_URL", "")
        multivault_address = env.get("VOTECART_MULTIVAULT_ADDRESS", "")
        if not rpc_url:
            raise ValueError("VOTECART_RPC_URL environment variable is required")
        if not multivault_address:
            raise ValueError("VOTECART_MULTIVAULT_ADDRESS environment variable is required")
        return cls(
            rpc_url=rpc_url,
            multivault_address=multivault_address,
            multicall_address=env.get("VOTECART_MULTICALL_ADDRESS") or MULTICALL3_ADDRESS,
            receipt_timeout=_env_int(env, "VOTECART_RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT),
        )


@dataclass(frozen=True)
class StoreConfig:
    """Cart store settings.

    `database_url` should come from environment (DATABASE_URL). Do not log it.
    An empty URL selects the in-memory store.
    """

    database_url: str = ""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> StoreConfig:
        env = os.environ if env is None else env
        return cls(database_url=env.get("DATABASE_URL", ""))

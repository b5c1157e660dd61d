"""Chain boundary: contract gateway, previews, vault checks, call throttling."""

from votecart.chain.interfaces import AtomDirectory, CallResult, ContractGateway, TxReceipt
from votecart.chain.preview import ContractPreviewClient, has_estimate
from votecart.chain.throttle import NO_RETRY, RateLimitedChannel, RetryPolicy
from votecart.chain.vault_gate import VaultInitGate, needs_init_sequence, required_step_count

__all__ = [
    "AtomDirectory",
    "CallResult",
    "ContractGateway",
    "ContractPreviewClient",
    "NO_RETRY",
    "RateLimitedChannel",
    "RetryPolicy",
    "TxReceipt",
    "VaultInitGate",
    "has_estimate",
    "needs_init_sequence",
    "required_step_count",
]

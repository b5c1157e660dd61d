"""Error taxonomy for cart planning and execution.

Each exception carries an `ErrorKind` tag so failures can be reported as
`Result` values without losing their category.
"""

from __future__ import annotations

from typing import Optional

from votecart.types import ErrorKind


class VoteCartError(Exception):
    """Base exception for all cart planning and execution errors."""

    kind: ErrorKind = "unknown"


class ValidationError(VoteCartError):
    """Cart cannot be planned as-is (empty, amount below minimum, conflicts)."""

    kind: ErrorKind = "validation"

    def __init__(self, message: str, *, item_id: Optional[str] = None):
        super().__init__(message)
        self.item_id = item_id


class ClaimExistsError(VoteCartError):
    """The claim already exists; callers should vote on it instead of creating it."""

    kind: ErrorKind = "claim_exists"

    def __init__(
        self,
        *,
        term_id: str,
        subject_label: str,
        predicate_label: str,
        object_label: str,
    ):
        super().__init__(
            f'Claim already exists: "{subject_label} {predicate_label} {object_label}" ({term_id}). '
            "Vote on the existing claim instead of creating it."
        )
        self.term_id = term_id
        self.subject_label = subject_label
        self.predicate_label = predicate_label
        self.object_label = object_label


class InsufficientBalanceError(VoteCartError):
    """Wallet balance does not cover base costs plus deposits."""

    kind: ErrorKind = "insufficient_balance"

    def __init__(self, *, required: int, balance: int):
        self.required = required
        self.balance = balance
        self.deficit = required - balance
        super().__init__(
            f"Insufficient balance: have {balance} wei, need {required} wei (missing {self.deficit} wei)"
        )


class TransportError(VoteCartError):
    """RPC or multicall failure after the call channel gave up."""

    kind: ErrorKind = "transport"


class TransactionFailedError(VoteCartError):
    """Transaction was mined but reverted."""

    kind: ErrorKind = "transaction_failed"

    def __init__(self, message: str, *, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class StaleStateError(VoteCartError):
    """Live chain state no longer matches the cart (e.g. zero shares left)."""

    kind: ErrorKind = "stale_state"


def error_kind(exc: BaseException) -> ErrorKind:
    """Map any exception to an ErrorKind tag."""
    if isinstance(exc, VoteCartError):
        return exc.kind
    return "unknown"

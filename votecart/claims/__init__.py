from votecart.claims.refs import (
    AtomLabel,
    AtomRef,
    ExistingAtom,
    ResolvedAtom,
    is_term_id,
    parse_atom_ref,
    resolve_atom_ref,
)
from votecart.claims.service import ClaimResult, ClaimService

__all__ = [
    "AtomLabel",
    "AtomRef",
    "ClaimResult",
    "ClaimService",
    "ExistingAtom",
    "ResolvedAtom",
    "is_term_id",
    "parse_atom_ref",
    "resolve_atom_ref",
]

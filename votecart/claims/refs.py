"""Atom references accepted at the boundary.

Callers name a predicate or object either by an existing term id or by a
label to look up (and create if missing). Both forms are resolved once, into
a ResolvedAtom, before anything reaches planning.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Union

from votecart.chain.interfaces import AtomDirectory

logger = logging.getLogger(__name__)

_TERM_ID_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def is_term_id(value: str) -> bool:
    return bool(_TERM_ID_RE.match(value))


@dataclass(frozen=True)
class ExistingAtom:
    term_id: str

    def __post_init__(self) -> None:
        if not is_term_id(self.term_id):
            raise ValueError(f"Not a term id: {self.term_id!r}")


@dataclass(frozen=True)
class AtomLabel:
    label: str

    def __post_init__(self) -> None:
        if not self.label.strip():
            raise ValueError("Atom label must not be empty")


AtomRef = Union[ExistingAtom, AtomLabel]


@dataclass(frozen=True)
class ResolvedAtom:
    term_id: str
    created: bool = False


def parse_atom_ref(value: str) -> AtomRef:
    """Build a ref from user input: a 32-byte hex id is an existing atom, anything else a label."""
    return ExistingAtom(value) if is_term_id(value) else AtomLabel(value)


def resolve_atom_ref(
    ref: AtomRef,
    directory: AtomDirectory,
    create_atom: Callable[[str], str],
) -> ResolvedAtom:
    """Return the canonical term id for `ref`, creating the atom when the label is unknown."""
    if isinstance(ref, ExistingAtom):
        return ResolvedAtom(term_id=ref.term_id)
    existing = directory.find_atom(ref.label)
    if existing:
        logger.info("Atom %r already exists: %s", ref.label, existing)
        return ResolvedAtom(term_id=existing)
    logger.info("Creating atom %r", ref.label)
    return ResolvedAtom(term_id=create_atom(ref.label), created=True)

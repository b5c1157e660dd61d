"""Create a claim (subject, predicate, object triple) with an initial deposit."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from votecart.amounts.math import format_wei, min_required_amount
from votecart.chain.interfaces import AtomDirectory, ContractGateway
from votecart.claims.refs import AtomRef, ResolvedAtom, resolve_atom_ref
from votecart.errors import ClaimExistsError, TransactionFailedError, ValidationError
from votecart.planning.funds import ensure_sufficient_balance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    tx_hash: str
    term_id: str
    subject_id: str
    predicate_id: str
    object_id: str
    predicate_created: bool = False
    object_created: bool = False


class ClaimService:
    def __init__(self, *, gateway: ContractGateway, directory: AtomDirectory, owner: str) -> None:
        self._gateway = gateway
        self._directory = directory
        self.owner = owner

    def _create_atom(self, label: str) -> str:
        config = self._gateway.get_contract_config()
        receipt = self._gateway.create_atoms([label.encode("utf-8")], [config.atom_base_cost])
        if len(receipt.term_ids) != 1:
            raise TransactionFailedError(f"createAtoms did not report an id for {label!r}", tx_hash=receipt.tx_hash)
        return receipt.term_ids[0]

    def resolve(self, ref: AtomRef) -> ResolvedAtom:
        return resolve_atom_ref(ref, self._directory, self._create_atom)

    def create_claim(self, *, subject_id: str, predicate: AtomRef, obj: AtomRef, deposit: int) -> ClaimResult:
        """Resolve both refs, refuse duplicates, check funds and create the triple.

        The creation value is the triple base cost plus `deposit`.
        """
        config = self._gateway.get_contract_config()
        total = config.triple_base_cost + deposit
        minimum = min_required_amount(config, is_new_triple=True)
        if total < minimum:
            raise ValidationError(
                f"Deposit too low: minimum is {format_wei(config.min_deposit)}, got {format_wei(deposit)}"
            )
        ensure_sufficient_balance(total, self._gateway.get_balance(self.owner))

        predicate_atom = self.resolve(predicate)
        object_atom = self.resolve(obj)

        existing = self._directory.find_triple(subject_id, predicate_atom.term_id, object_atom.term_id)
        if existing:
            raise ClaimExistsError(
                term_id=existing["term_id"],
                subject_label=existing["subject_label"],
                predicate_label=existing["predicate_label"],
                object_label=existing["object_label"],
            )

        receipt = self._gateway.create_triples(
            [subject_id], [predicate_atom.term_id], [object_atom.term_id], [total]
        )
        if len(receipt.term_ids) != 1:
            raise TransactionFailedError("createTriples did not report a triple id", tx_hash=receipt.tx_hash)
        logger.info("Claim created: %s (deposit %s)", receipt.term_ids[0], format_wei(deposit))
        return ClaimResult(
            tx_hash=receipt.tx_hash,
            term_id=receipt.term_ids[0],
            subject_id=subject_id,
            predicate_id=predicate_atom.term_id,
            object_id=object_atom.term_id,
            predicate_created=predicate_atom.created,
            object_created=object_atom.created,
        )

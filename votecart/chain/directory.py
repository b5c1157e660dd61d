"""Indexer (GraphQL) lookups for atoms and triples.

Used when creating claims: an atom label is resolved to an existing term id
before a new atom is minted, and an existing triple is reported instead of
being created twice.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from votecart.errors import TransportError

logger = logging.getLogger(__name__)

GET_ATOMS_BY_LABELS = """
query GetAtomsByLabels($labels: [String!]!) {
  atoms(where: {label: {_in: $labels}}, limit: 1) {
    term_id
    label
  }
}
"""

FIND_TRIPLE = """
query FindTriple($subjectId: String!, $predicateId: String!, $objectId: String!) {
  triples(
    where: {
      subject_id: {_eq: $subjectId}
      predicate_id: {_eq: $predicateId}
      object_id: {_eq: $objectId}
    }
    limit: 1
  ) {
    term_id
    subject { label }
    predicate { label }
    object { label }
  }
}
"""


class GraphQLAtomDirectory:
    """AtomDirectory backed by the Intuition GraphQL endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.Client(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout_seconds),
        )

    def close(self) -> None:
        self._client.close()

    def _query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(self.endpoint, json={"query": query, "variables": variables})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"GraphQL request failed: {exc}") from exc

        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in payload["errors"])
            raise TransportError(f"GraphQL errors: {messages}")
        return payload.get("data") or {}

    def find_atom(self, label: str) -> Optional[str]:
        atoms = self._query(GET_ATOMS_BY_LABELS, {"labels": [label]}).get("atoms") or []
        if not atoms:
            return None
        logger.debug("Atom %r found: %s", label, atoms[0]["term_id"])
        return atoms[0]["term_id"]

    def find_triple(self, subject_id: str, predicate_id: str, object_id: str) -> Optional[dict[str, str]]:
        data = self._query(
            FIND_TRIPLE,
            {"subjectId": subject_id, "predicateId": predicate_id, "objectId": object_id},
        )
        triples = data.get("triples") or []
        if not triples:
            return None
        triple = triples[0]
        return {
            "term_id": triple["term_id"],
            "subject_label": triple["subject"]["label"],
            "predicate_label": triple["predicate"]["label"],
            "object_label": triple["object"]["label"],
        }

"""Group cart items by the triple they vote on.

A triple is (subject, predicate, object); the curve is not part of it, so a
support-linear and an oppose-progressive item on the same totem share one
group. Within a cart the subject is fixed, so the key is predicate + totem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from votecart.types import CurveId, UniqueTriple, VoteCartItem

logger = logging.getLogger(__name__)


def triple_key(predicate_id: str, totem_id: str) -> str:
    return f"{predicate_id}_{totem_id}"


def deduplicate_to_triples(items: Iterable[VoteCartItem]) -> dict[str, UniqueTriple]:
    """Group items into UniqueTriples, ordered by first appearance."""
    triples: dict[str, UniqueTriple] = {}
    count = 0
    for item in items:
        count += 1
        key = triple_key(item.predicate_id, item.totem_id)
        group = triples.get(key)
        if group is None:
            triples[key] = UniqueTriple(
                predicate_id=item.predicate_id,
                totem_id=item.totem_id,
                totem_name=item.totem_name,
                items=[item],
            )
        else:
            group.items.append(item)
    logger.debug("Deduplicated %d items into %d unique triples", count, len(triples))
    return triples


@dataclass
class TripleCategories:
    linear_only: list[UniqueTriple] = field(default_factory=list)
    progressive_only: list[UniqueTriple] = field(default_factory=list)
    mixed: list[UniqueTriple] = field(default_factory=list)


def categorize_triples(triples: Mapping[str, UniqueTriple]) -> TripleCategories:
    categories = TripleCategories()
    for triple in triples.values():
        has_linear = any(item.curve_id == CurveId.LINEAR for item in triple.items)
        has_progressive = any(item.curve_id == CurveId.PROGRESSIVE for item in triple.items)
        if has_linear and has_progressive:
            categories.mixed.append(triple)
        elif has_progressive:
            categories.progressive_only.append(triple)
        else:
            categories.linear_only.append(triple)
    return categories

"""Cart persistence: one JSON record per subject under a prefixed key.

Amounts are stored as decimal strings so reload reconstructs them exactly.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from votecart.cart.model import CartModel, MultiCart
from votecart.config import StoreConfig
from votecart.types import CurveId, Position, VoteCart, VoteCartItem

STORAGE_KEY_PREFIX = "vote_cart_"


def storage_key(subject_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{subject_id}"


def _position_to_dict(position: Optional[Position]) -> Optional[dict[str, Any]]:
    if position is None:
        return None
    return {
        "direction": position.direction,
        "curve_id": int(position.curve_id),
        "shares": str(position.shares),
    }


def _position_from_dict(data: Optional[dict[str, Any]]) -> Optional[Position]:
    if not data:
        return None
    return Position(
        direction=data["direction"],
        curve_id=CurveId(int(data["curve_id"])),
        shares=int(data["shares"]),
    )


def cart_to_dict(cart: VoteCart) -> dict[str, Any]:
    return {
        "subject_id": cart.subject_id,
        "subject_name": cart.subject_name,
        "items": [
            {
                "id": item.id,
                "subject_id": item.subject_id,
                "totem_id": item.totem_id,
                "totem_name": item.totem_name,
                "predicate_id": item.predicate_id,
                "direction": item.direction,
                "curve_id": int(item.curve_id),
                "amount": str(item.amount),
                "term_id": item.term_id,
                "counter_term_id": item.counter_term_id,
                "is_new_totem": item.is_new_totem,
                "current_position": _position_to_dict(item.current_position),
            }
            for item in cart.items
        ],
    }


def cart_from_dict(data: dict[str, Any]) -> VoteCart:
    items = [
        VoteCartItem(
            id=raw["id"],
            subject_id=raw["subject_id"],
            totem_id=raw["totem_id"],
            totem_name=raw.get("totem_name", ""),
            predicate_id=raw["predicate_id"],
            direction=raw["direction"],
            curve_id=CurveId(int(raw["curve_id"])),
            amount=int(raw["amount"]),
            term_id=raw.get("term_id"),
            counter_term_id=raw.get("counter_term_id"),
            is_new_totem=bool(raw.get("is_new_totem", False)),
            current_position=_position_from_dict(raw.get("current_position")),
        )
        for raw in data.get("items", [])
    ]
    return VoteCart(subject_id=data["subject_id"], subject_name=data.get("subject_name", ""), items=items)


def dumps_cart(cart: VoteCart) -> str:
    return json.dumps(cart_to_dict(cart), sort_keys=True)


def loads_cart(payload: str) -> VoteCart:
    return cart_from_dict(json.loads(payload))


class CartStore(Protocol):
    def save(self, cart: VoteCart) -> None:
        """Persist a cart, replacing any previous record for its subject."""

    def load(self, subject_id: str) -> Optional[VoteCart]:
        """Return the stored cart for a subject, if any."""

    def delete(self, subject_id: str) -> None:
        """Remove a subject's record (no-op when absent)."""

    def subject_ids(self) -> list[str]:
        """Subjects with a stored cart."""


def load_multi_cart(store: CartStore) -> MultiCart:
    multi = MultiCart()
    for subject_id in store.subject_ids():
        cart = store.load(subject_id)
        if cart is not None:
            multi.put(CartModel(cart))
    return multi


class InMemoryCartStore:
    """Dict-backed store holding the serialized records (useful for tests)."""

    def __init__(self) -> None:
        self.records: dict[str, str] = {}

    def save(self, cart: VoteCart) -> None:
        self.records[storage_key(cart.subject_id)] = dumps_cart(cart)

    def load(self, subject_id: str) -> Optional[VoteCart]:
        payload = self.records.get(storage_key(subject_id))
        return None if payload is None else loads_cart(payload)

    def delete(self, subject_id: str) -> None:
        self.records.pop(storage_key(subject_id), None)

    def subject_ids(self) -> list[str]:
        return [key[len(STORAGE_KEY_PREFIX):] for key in self.records if key.startswith(STORAGE_KEY_PREFIX)]


class SqlCartStore:
    """SQLAlchemy-backed key/value store (SQLite or PostgreSQL)."""

    TABLE = "vote_cart_records"

    def __init__(self, *, config: StoreConfig | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if config is None or not config.database_url:
                raise ValueError("SqlCartStore needs an engine or a StoreConfig with database_url")
            # Do not log the URL (it may contain secrets).
            engine = create_engine(config.database_url, echo=False, pool_pre_ping=True)
        self._engine = engine
        self._ensure_table()

    def _ensure_table(self) -> None:
        stmt = text(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TABLE} (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL
            )
            """
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)

    def save(self, cart: VoteCart) -> None:
        stmt = text(
            f"""
            INSERT INTO {self.TABLE} (key, payload)
            VALUES (:key, :payload)
            ON CONFLICT (key) DO UPDATE SET payload = excluded.payload
            """
        )
        with self._engine.begin() as conn:
            conn.execute(stmt, {"key": storage_key(cart.subject_id), "payload": dumps_cart(cart)})

    def load(self, subject_id: str) -> Optional[VoteCart]:
        stmt = text(f"SELECT payload FROM {self.TABLE} WHERE key = :key")
        with self._engine.begin() as conn:
            row = conn.execute(stmt, {"key": storage_key(subject_id)}).fetchone()
        return None if row is None else loads_cart(row[0])

    def delete(self, subject_id: str) -> None:
        stmt = text(f"DELETE FROM {self.TABLE} WHERE key = :key")
        with self._engine.begin() as conn:
            conn.execute(stmt, {"key": storage_key(subject_id)})

    def subject_ids(self) -> list[str]:
        stmt = text(f"SELECT key FROM {self.TABLE} WHERE key LIKE :prefix ORDER BY key")
        with self._engine.begin() as conn:
            rows = conn.execute(stmt, {"prefix": f"{STORAGE_KEY_PREFIX}%"}).fetchall()
        return [row[0][len(STORAGE_KEY_PREFIX):] for row in rows]

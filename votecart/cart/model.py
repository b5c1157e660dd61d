"""Mutable cart state: one VoteCart per subject, grouped in a MultiCart."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from votecart.types import VoteCart, VoteCartItem

logger = logging.getLogger(__name__)


class CartModel:
    """Add/remove/update operations over a single subject's cart.

    Holds at most one item per (totem, predicate, curve, direction); adding a
    second item for the same key replaces the existing item's amount.
    """

    def __init__(self, cart: VoteCart) -> None:
        self.cart = cart

    @classmethod
    def empty(cls, subject_id: str, subject_name: str = "") -> CartModel:
        return cls(VoteCart(subject_id=subject_id, subject_name=subject_name))

    @property
    def subject_id(self) -> str:
        return self.cart.subject_id

    @property
    def items(self) -> list[VoteCartItem]:
        return list(self.cart.items)

    def __len__(self) -> int:
        return len(self.cart.items)

    def is_empty(self) -> bool:
        return not self.cart.items

    def get(self, item_id: str) -> Optional[VoteCartItem]:
        for item in self.cart.items:
            if item.id == item_id:
                return item
        return None

    def find_by_key(self, key: tuple[str, str, int, str]) -> Optional[VoteCartItem]:
        for item in self.cart.items:
            if item.key == key:
                return item
        return None

    def add(self, item: VoteCartItem) -> VoteCartItem:
        """Add an item, returning the item now held by the cart."""
        if item.subject_id != self.cart.subject_id:
            raise ValueError(
                f"Item {item.id} belongs to subject {item.subject_id}, not {self.cart.subject_id}"
            )
        if item.amount < 0:
            raise ValueError(f"Amount must be non-negative, got {item.amount}")
        if self.get(item.id) is not None:
            raise ValueError(f"Item {item.id} is already in the cart")

        existing = self.find_by_key(item.key)
        if existing is not None:
            logger.debug("Replacing amount of %s: %s -> %s", existing.id, existing.amount, item.amount)
            existing.amount = item.amount
            return existing

        self.cart.items.append(item)
        return item

    def remove(self, item_id: str) -> VoteCartItem:
        item = self.get(item_id)
        if item is None:
            raise KeyError(item_id)
        self.cart.items.remove(item)
        return item

    def update_amount(self, item_id: str, amount: int) -> VoteCartItem:
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        item = self.get(item_id)
        if item is None:
            raise KeyError(item_id)
        item.amount = amount
        return item

    def clear(self) -> None:
        self.cart.items.clear()

    def total(self) -> int:
        return sum((item.amount for item in self.cart.items), 0)


class MultiCart:
    """Carts for several subjects, keyed by subject id."""

    def __init__(self) -> None:
        self._carts: dict[str, CartModel] = {}

    def __contains__(self, subject_id: object) -> bool:
        return subject_id in self._carts

    def __iter__(self) -> Iterator[CartModel]:
        return iter(list(self._carts.values()))

    def __len__(self) -> int:
        return len(self._carts)

    def subject_ids(self) -> list[str]:
        return list(self._carts)

    def get(self, subject_id: str) -> Optional[CartModel]:
        return self._carts.get(subject_id)

    def cart_for(self, subject_id: str, subject_name: str = "") -> CartModel:
        """Return the subject's cart, creating an empty one on first touch."""
        model = self._carts.get(subject_id)
        if model is None:
            model = CartModel.empty(subject_id, subject_name)
            self._carts[subject_id] = model
        elif subject_name and not model.cart.subject_name:
            model.cart.subject_name = subject_name
        return model

    def put(self, model: CartModel) -> None:
        self._carts[model.subject_id] = model

    def clear_founder(self, subject_id: str) -> None:
        """Drop one subject's cart entirely."""
        self._carts.pop(subject_id, None)

    def clear(self) -> None:
        self._carts.clear()

    def total(self) -> int:
        return sum((model.total() for model in self._carts.values()), 0)

    def item_count(self) -> int:
        return sum(len(model) for model in self._carts.values())

"""Tests for cart persistence (in-memory and SQLAlchemy stores)."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from conftest import SUBJECT
from votecart.cart.storage import (
    InMemoryCartStore,
    SqlCartStore,
    dumps_cart,
    load_multi_cart,
    loads_cart,
    storage_key,
)
from votecart.types import CurveId, Position, VoteCart


@pytest.fixture
def sample_cart(make_item) -> VoteCart:
    position = Position(direction="support", curve_id=CurveId.LINEAR, shares=10**30)
    return VoteCart(
        subject_id=SUBJECT,
        subject_name="Ethereum",
        items=[
            make_item("a", amount=123_456_789_012_345_678_901, term_id="0x" + "a" * 64, position=position),
            make_item("new", is_new_totem=True, curve=CurveId.PROGRESSIVE, direction="oppose"),
        ],
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryCartStore()
    engine = create_engine(f"sqlite:///{tmp_path / 'carts.db'}")
    return SqlCartStore(engine=engine)


def test_storage_key_prefix():
    assert storage_key("0xabc") == "vote_cart_0xabc"


def test_serialization_keeps_big_amounts_exact(sample_cart):
    payload = dumps_cart(sample_cart)
    assert '"123456789012345678901"' in payload
    assert loads_cart(payload) == sample_cart


def test_save_load_delete(store, sample_cart):
    store.save(sample_cart)
    assert store.subject_ids() == [SUBJECT]
    assert store.load(SUBJECT) == sample_cart

    sample_cart.items[0].amount = 1
    store.save(sample_cart)
    assert store.load(SUBJECT).items[0].amount == 1

    store.delete(SUBJECT)
    assert store.load(SUBJECT) is None
    assert store.subject_ids() == []
    store.delete(SUBJECT)


def test_load_multi_cart(store, sample_cart):
    store.save(sample_cart)
    multi = load_multi_cart(store)
    assert multi.subject_ids() == [SUBJECT]
    assert multi.get(SUBJECT).total() == sample_cart.items[0].amount + sample_cart.items[1].amount


def test_sql_store_requires_url():
    with pytest.raises(ValueError):
        SqlCartStore()

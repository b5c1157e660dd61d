"""Tests for the vote cart HTTP API."""

from __future__ import annotations

from conftest import MIN_DEPOSIT, PREDICATE, SUBJECT, TRIPLE_COST, term


def _item_payload(**overrides):
    payload = {
        "totem_id": "totem-a",
        "totem_name": "Totem A",
        "predicate_id": PREDICATE,
        "direction": "support",
        "curve_id": 1,
        "amount": str(2 * MIN_DEPOSIT),
    }
    payload.update(overrides)
    return payload


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["executor"] == "idle"
    assert data["carts"] == 0


def test_add_and_get_cart(client):
    response = client.post(f"/carts/{SUBJECT}/items", json=_item_payload(subject_name="Ethereum"))
    assert response.status_code == 201
    item = response.json()["item"]
    assert item["amount"] == str(2 * MIN_DEPOSIT)
    assert item["id"]

    cart = client.get(f"/carts/{SUBJECT}").json()
    assert cart["subject_name"] == "Ethereum"
    assert [i["id"] for i in cart["items"]] == [item["id"]]

    listing = client.get("/carts").json()
    assert listing["count"] == 1
    assert listing["total"] == str(2 * MIN_DEPOSIT)


def test_invalid_amount_is_rejected(client):
    response = client.post(f"/carts/{SUBJECT}/items", json=_item_payload(amount="1.5"))
    assert response.status_code == 422


def test_duplicate_item_id_is_a_validation_error(client):
    client.post(f"/carts/{SUBJECT}/items", json=_item_payload(id="x"))
    response = client.post(f"/carts/{SUBJECT}/items", json=_item_payload(id="x", totem_id="b"))
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"


def test_update_and_remove_item(client):
    item_id = client.post(f"/carts/{SUBJECT}/items", json=_item_payload()).json()["item"]["id"]

    response = client.patch(f"/carts/{SUBJECT}/items/{item_id}", json={"amount": "999"})
    assert response.status_code == 200
    assert response.json()["item"]["amount"] == "999"

    assert client.delete(f"/carts/{SUBJECT}/items/{item_id}").status_code == 200
    assert client.get(f"/carts/{SUBJECT}").status_code == 404
    assert client.delete(f"/carts/{SUBJECT}/items/{item_id}").status_code == 404


def test_reset_carts(client):
    client.post(f"/carts/{SUBJECT}/items", json=_item_payload())
    assert client.delete(f"/carts/{SUBJECT}").status_code == 200
    assert client.delete(f"/carts/{SUBJECT}").status_code == 404
    assert client.delete("/carts").json() == {"success": True}


def test_plan_new_totem(client):
    client.post(f"/carts/{SUBJECT}/items", json=_item_payload(is_new_totem=True))
    response = client.post(f"/carts/{SUBJECT}/plan", json={})

    assert response.status_code == 200
    data = response.json()
    assert [s["kind"] for s in data["steps"]] == ["create_atoms", "create_triples"]
    assert data["estimated_steps"] == 3
    assert data["required_total"] == str(2 * MIN_DEPOSIT + TRIPLE_COST)
    assert data["triples"] == 1


def test_plan_insufficient_balance(client, gateway):
    gateway.balance = MIN_DEPOSIT
    client.post(f"/carts/{SUBJECT}/items", json=_item_payload(term_id=term(1)))
    response = client.post(f"/carts/{SUBJECT}/plan", json={"check_balance": True})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "insufficient_balance"
    assert data["deficit"] == str(MIN_DEPOSIT)


def test_plan_below_minimum_reports_item(client):
    item_id = client.post(f"/carts/{SUBJECT}/items", json=_item_payload(amount="5", term_id=term(1))).json()[
        "item"
    ]["id"]
    response = client.post(f"/carts/{SUBJECT}/plan", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "validation"
    assert response.json()["item_id"] == item_id


def test_plan_unknown_cart(client):
    assert client.post(f"/carts/{SUBJECT}/plan", json={}).status_code == 404


def test_availability_endpoint(client):
    response = client.post(
        "/availability",
        json={"direction": "support", "positions": [{"direction": "oppose", "curve_id": 1, "shares": "500"}]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["linear"] is False
    assert data["progressive"] is True
    assert data["all_blocked"] is False


def test_availability_without_direction(client):
    data = client.post("/availability", json={}).json()
    assert data == {"linear": True, "progressive": True, "blocked_reason": None, "all_blocked": False}

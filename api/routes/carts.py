"""Cart CRUD and planning endpoints.

Amounts travel as decimal strings of wei so no precision is lost in JSON.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from pydantic import BaseModel, Field

from votecart.planning.planner import ExecutionPlan
from votecart.session import VoteSession
from votecart.types import CurveId, Position, VoteCart, VoteCartItem

router = APIRouter(prefix="/carts", tags=["carts"])

WEI_PATTERN = r"^\d+$"


def get_session(request: Request) -> VoteSession:
    return request.app.state.session


class PositionModel(BaseModel):
    direction: Literal["support", "oppose"]
    curve_id: Literal[1, 2]
    shares: str = Field(..., pattern=WEI_PATTERN)


class CartItemRequest(BaseModel):
    id: Optional[str] = None
    subject_name: str = ""
    totem_id: str = Field(..., min_length=1)
    totem_name: str = ""
    predicate_id: str = Field(..., min_length=1)
    direction: Literal["support", "oppose"]
    curve_id: Literal[1, 2]
    amount: str = Field(..., pattern=WEI_PATTERN)
    term_id: Optional[str] = None
    counter_term_id: Optional[str] = None
    is_new_totem: bool = False
    current_position: Optional[PositionModel] = None


class AmountUpdateRequest(BaseModel):
    amount: str = Field(..., pattern=WEI_PATTERN)


class PlanRequest(BaseModel):
    check_balance: bool = False


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "not_found", "message": message})


def _item_to_response(item: VoteCartItem) -> dict[str, Any]:
    position = item.current_position
    return {
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
        "current_position": None
        if position is None
        else {"direction": position.direction, "curve_id": int(position.curve_id), "shares": str(position.shares)},
    }


def _cart_to_response(cart: VoteCart) -> dict[str, Any]:
    return {
        "subject_id": cart.subject_id,
        "subject_name": cart.subject_name,
        "items": [_item_to_response(item) for item in cart.items],
        "total": str(sum((item.amount for item in cart.items), 0)),
    }


def _plan_to_response(plan: ExecutionPlan) -> dict[str, Any]:
    return {
        "subject_id": plan.subject_id,
        "steps": [
            {
                "kind": step.kind.value,
                "description": step.description,
                "item_ids": [item.id for item in step.items],
                "triple_keys": list(step.triple_keys),
            }
            for step in plan.steps
        ],
        "estimated_steps": plan.estimated_steps,
        "required_total": str(plan.required_total),
        "funds": {
            "deposits": str(plan.funds.deposits),
            "triple_costs": str(plan.funds.triple_costs),
            "atom_costs": str(plan.funds.atom_costs),
            "init_deposits": str(plan.funds.init_deposits),
        },
        "triples": len(plan.triples),
    }


@router.get("")
async def list_carts(session: VoteSession = Depends(get_session)) -> dict[str, Any]:
    carts = [_cart_to_response(model.cart) for model in session.carts]
    return {"carts": carts, "count": len(carts), "total": str(session.carts.total())}


@router.delete("")
async def reset_carts(session: VoteSession = Depends(get_session)) -> dict[str, Any]:
    session.reset()
    return {"success": True}


@router.get("/{subject_id}")
async def get_cart(
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    model = session.carts.get(subject_id)
    if model is None:
        raise _not_found(f"No cart for {subject_id}")
    return _cart_to_response(model.cart)


@router.delete("/{subject_id}")
async def reset_cart(
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    if subject_id not in session.carts:
        raise _not_found(f"No cart for {subject_id}")
    session.reset(subject_id)
    return {"success": True}


@router.post("/{subject_id}/items", status_code=201)
async def add_item(
    request: CartItemRequest,
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    item = VoteCartItem(
        id=request.id or uuid.uuid4().hex,
        subject_id=subject_id,
        totem_id=request.totem_id,
        totem_name=request.totem_name,
        predicate_id=request.predicate_id,
        direction=request.direction,
        curve_id=CurveId(request.curve_id),
        amount=int(request.amount),
        term_id=request.term_id,
        counter_term_id=request.counter_term_id,
        is_new_totem=request.is_new_totem,
        current_position=None
        if request.current_position is None
        else Position(
            direction=request.current_position.direction,
            curve_id=CurveId(request.current_position.curve_id),
            shares=int(request.current_position.shares),
        ),
    )
    try:
        held = session.add_item(item, request.subject_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "validation_error", "message": str(e)}) from e
    return {"success": True, "item": _item_to_response(held)}


@router.patch("/{subject_id}/items/{item_id}")
async def update_item_amount(
    request: AmountUpdateRequest,
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    item_id: str = Path(..., description="Cart item id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        item = session.update_amount(subject_id, item_id, int(request.amount))
    except KeyError as e:
        raise _not_found(f"Item {item_id} not found in cart {subject_id}") from e
    return {"success": True, "item": _item_to_response(item)}


@router.delete("/{subject_id}/items/{item_id}")
async def remove_item(
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    item_id: str = Path(..., description="Cart item id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        item = session.remove_item(subject_id, item_id)
    except KeyError as e:
        raise _not_found(f"Item {item_id} not found in cart {subject_id}") from e
    return {"success": True, "item": _item_to_response(item)}


@router.post("/{subject_id}/plan")
def plan_cart(
    request: PlanRequest,
    subject_id: str = Path(..., description="Subject (founder) atom id"),
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    """Plan the cart against live chain state (runs in the threadpool: it blocks on RPC)."""
    if subject_id not in session.carts:
        raise _not_found(f"No cart for {subject_id}")
    plan = session.plan(subject_id, check_balance=request.check_balance)
    return _plan_to_response(plan)

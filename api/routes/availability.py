"""Curve availability endpoint."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.routes.carts import WEI_PATTERN, get_session
from votecart.session import VoteSession
from votecart.types import CurveId, Position

router = APIRouter(prefix="/availability", tags=["availability"])


class PositionInput(BaseModel):
    direction: Literal["support", "oppose"]
    curve_id: Literal[1, 2]
    shares: str = Field(..., pattern=WEI_PATTERN)


class AvailabilityRequest(BaseModel):
    """`direction` null means no direction selected (or a withdrawal)."""

    direction: Optional[Literal["support", "oppose"]] = None
    subject_id: Optional[str] = None
    totem_id: Optional[str] = None
    positions: List[PositionInput] = Field(default_factory=list)


@router.post("")
async def curve_availability(
    request: AvailabilityRequest,
    session: VoteSession = Depends(get_session),
) -> dict[str, Any]:
    positions = [
        Position(direction=p.direction, curve_id=CurveId(p.curve_id), shares=int(p.shares)) for p in request.positions
    ]
    availability = session.availability(
        request.direction,
        subject_id=request.subject_id,
        totem_id=request.totem_id,
        positions=positions,
    )
    return {
        "linear": availability.linear,
        "progressive": availability.progressive,
        "blocked_reason": availability.blocked_reason,
        "all_blocked": availability.all_blocked,
    }

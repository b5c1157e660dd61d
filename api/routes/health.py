"""Health check API endpoint."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends

from api.routes.carts import get_session
from votecart.session import VoteSession

router = APIRouter(prefix="/health", tags=["health"])

# Track API start time
_api_start_time = time.time()


@router.get("")
async def health_check(session: VoteSession = Depends(get_session)) -> dict[str, Any]:
    """API uptime plus executor state and open carts. Does not touch the chain."""
    return {
        "status": "ok",
        "uptime_seconds": int(time.time() - _api_start_time),
        "executor": session.executor.state.value,
        "carts": len(session.carts),
        "items": session.carts.item_count(),
    }

"""FastAPI application for vote carts.

This module provides the HTTP API for:
- GET/DELETE /carts - List or reset all carts
- GET/DELETE /carts/{subject_id} - One subject's cart
- POST /carts/{subject_id}/items - Add an item
- PATCH/DELETE /carts/{subject_id}/items/{item_id} - Update amount / remove an item
- POST /carts/{subject_id}/plan - Plan the cart against live chain state
- POST /availability - Curve availability for a vote direction
- GET /health - API status

The app is built around an explicit VoteSession (see create_app). No
authentication (local network only).
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import availability, carts, health
from votecart.chain.directory import GraphQLAtomDirectory
from votecart.errors import InsufficientBalanceError, ValidationError, VoteCartError
from votecart.session import VoteSession

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation": 400,
    "claim_exists": 409,
    "insufficient_balance": 400,
    "stale_state": 409,
    "transport": 502,
    "transaction_failed": 502,
}


def create_app(session: VoteSession) -> FastAPI:
    app = FastAPI(
        title="Vote Cart API",
        description="Cart management, planning and curve availability for MultiVault votes",
        version="1.0.0",
    )
    app.state.session = session

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(availability.router)

    @app.exception_handler(VoteCartError)
    async def vote_cart_error_handler(_request: Request, exc: VoteCartError) -> JSONResponse:
        content = {"error": exc.kind, "message": str(exc)}
        if isinstance(exc, ValidationError) and exc.item_id:
            content["item_id"] = exc.item_id
        if isinstance(exc, InsufficientBalanceError):
            content.update(required=str(exc.required), balance=str(exc.balance), deficit=str(exc.deficit))
        return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 500), content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler to ensure consistent error responses."""
        logger.error("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


def create_app_from_env() -> FastAPI:
    """Uvicorn factory: read-only session configured from the environment."""
    graphql_url = os.environ.get("VOTECART_GRAPHQL_URL")
    directory = GraphQLAtomDirectory(graphql_url) if graphql_url else None
    return create_app(VoteSession.from_env(directory=directory))

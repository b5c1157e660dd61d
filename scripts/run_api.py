#!/usr/bin/env python3
"""Run the vote cart API server.

This script starts the uvicorn server for the cart/planning API. The session
is read-only: it plans and previews, it never signs.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT]

Environment:
    VOTECART_RPC_URL - Required. JSON-RPC endpoint.
    VOTECART_MULTIVAULT_ADDRESS - Required. MultiVault contract address.
    VOTECART_OWNER_ADDRESS - Required. Wallet whose carts are managed.
    VOTECART_GRAPHQL_URL - Optional. Indexer endpoint for claim lookups.
    DATABASE_URL - Optional. Persist carts (SQLite or PostgreSQL URL).

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the vote cart API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    missing = [
        name
        for name in ("VOTECART_RPC_URL", "VOTECART_MULTIVAULT_ADDRESS", "VOTECART_OWNER_ADDRESS")
        if not os.environ.get(name)
    ]
    if missing:
        print(f"Error: missing environment variables: {', '.join(missing)}", file=sys.stderr)
        return 1

    print(f"Starting vote cart API on {args.host}:{args.port}")
    print("Endpoints:")
    print(f"  - GET  http://{args.host}:{args.port}/health")
    print(f"  - GET  http://{args.host}:{args.port}/carts")
    print(f"  - POST http://{args.host}:{args.port}/carts/{{subject_id}}/plan")
    print()

    uvicorn.run(
        "api.main:create_app_from_env",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())

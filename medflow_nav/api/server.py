"""
FastAPI debug server for the navigation engine.

Exposes a NavigationSession's resolved menu, guards, audit trail and
analytics to developer tooling. Normal operation never requires it.

Usage:
    # Run standalone
    python -m medflow_nav.api.server

    # Or via factory
    from medflow_nav.api import create_app
    app = create_app()
    uvicorn.run(app, port=5002)

API Structure:
    /api/navigation/health     - Session health
    /api/navigation/resolve    - Resolve menu for an actor context (POST)
    /api/navigation/debug      - Debug snapshot
    /api/navigation/guards     - Guards and statistics
    /api/navigation/audit      - Recent audit entries
    /api/navigation/analytics  - Analytics report
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from medflow_nav.config.navigation_config import get_environment
from medflow_nav.runtime.service import NavigationSession, create_navigation_session
from medflow_nav.runtime.types import ActorContext

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# Session Management
# =============================================================================

_session: Optional[NavigationSession] = None


def get_navigation_session() -> NavigationSession:
    """Get the session served by the debug API, creating an anonymous one if needed."""
    global _session
    if _session is None:
        _session = create_navigation_session(ActorContext(environment=get_environment()))
    return _session


# =============================================================================
# FastAPI Application Factory
# =============================================================================


def create_app(session: Optional[NavigationSession] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session: Session to inspect. Defaults to a fresh anonymous session.

    Returns:
        Configured FastAPI application.
    """
    global _session
    _session = session

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the session on startup and close it on shutdown."""
        logger.info("Navigation debug API starting...")
        served = get_navigation_session()
        logger.info(
            "Serving navigation session %s (%d guards)",
            served.context.fingerprint,
            len(served.guards.list_guards()),
        )

        yield

        logger.info("Navigation debug API shutting down...")
        served.close()

    app = FastAPI(
        title="MedFlow Navigation Debug API",
        description="Introspection of the navigation resolution engine: menu, guards, audit and analytics.",
        version="1.0.0",
        lifespan=lifespan,
    )

    from .routes import navigation_router

    app.include_router(navigation_router, prefix="/api")
    logger.info("Loaded navigation API router")

    return app


def main():
    """Run the debug API server."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Navigation Debug API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5002, help="Port to bind to")
    args = parser.parse_args()

    app = create_app()
    logger.info("Starting navigation debug API at http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

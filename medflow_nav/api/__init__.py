"""
Navigation Debug API - FastAPI introspection for the navigation engine.

Endpoints (from routes/navigation.py):
    GET    /api/navigation/health     - Session health
    POST   /api/navigation/resolve    - Resolve menu for an actor context
    GET    /api/navigation/debug      - Items, analytics, cache and guard stats
    GET    /api/navigation/guards     - Guards in evaluation order
    GET    /api/navigation/audit      - Recent guard decisions
    GET    /api/navigation/analytics  - Analytics report
"""

from .routes import navigation_router
from .server import create_app, get_navigation_session

__all__ = [
    "create_app",
    "get_navigation_session",
    "navigation_router",
]

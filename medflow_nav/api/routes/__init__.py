"""
Routes package for the navigation debug API.

This package contains the FastAPI routers for:
- navigation: health, resolve, debug snapshot, guards, audit and analytics
"""

from .navigation import router as navigation_router

__all__ = [
    "navigation_router",
]

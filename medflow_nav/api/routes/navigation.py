"""
Navigation debug endpoints.

Provides endpoints for:
- Checking session health
- Resolving the menu for a given actor context
- Inspecting guards, the audit trail, analytics and the debug snapshot

These endpoints are read-mostly introspection for tooling; resolving a menu
also writes to the session cache and audit trail.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from medflow_nav.runtime.errors import NavigationError
from medflow_nav.runtime.types import (
    ActorContext,
    Environment,
    audit_entry_to_dict,
    guard_to_dict,
    menu_item_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/navigation", tags=["navigation"])

VALID_ENVIRONMENTS = ("development", "production", "test")


# =============================================================================
# Pydantic Models
# =============================================================================


class ActorContextRequest(BaseModel):
    """Actor context supplied by the caller."""

    identity: Optional[str] = Field(None, description="Caller identity; omit for anonymous.")
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    subscription: Optional[str] = None
    environment: str = Field("production", description="development, production or test.")
    version: str = "1.0.0"


class ResolveResponse(BaseModel):
    """Resolved menu for an actor."""

    fingerprint: str
    count: int
    items: List[Dict[str, Any]]


class HealthResponse(BaseModel):
    status: str
    session_open: bool
    total_guards: int
    cache_entries: int
    timestamp: str


class GuardListResponse(BaseModel):
    guards: List[Dict[str, Any]]
    statistics: Dict[str, Any]


class AuditResponse(BaseModel):
    total: int
    entries: List[Dict[str, Any]]


class AnalyticsResponse(BaseModel):
    summary: Dict[str, Any]
    insights: Dict[str, Any]
    performance: Dict[str, Any]


# =============================================================================
# Helpers
# =============================================================================


def _get_session():
    from ..server import get_navigation_session

    return get_navigation_session()


def _to_actor_context(request: ActorContextRequest) -> ActorContext:
    if request.environment not in VALID_ENVIRONMENTS:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "validation_error",
                "message": (
                    f"Invalid environment '{request.environment}' "
                    f"(valid: {', '.join(VALID_ENVIRONMENTS)})"
                ),
                "details": {},
            },
        )
    return ActorContext(
        identity=request.identity,
        roles=tuple(request.roles),
        permissions=tuple(request.permissions),
        features=tuple(request.features),
        subscription=request.subscription,
        environment=Environment(name=request.environment, version=request.version),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def get_navigation_health():
    """Session health: open/closed, guard count and cache size."""
    session = _get_session()
    return HealthResponse(
        status="ok" if not session.closed else "closed",
        session_open=not session.closed,
        total_guards=len(session.guards.list_guards()),
        cache_entries=session.state.get_cache_statistics()["total"],
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_navigation(request: ActorContextRequest):
    """Resolve the menu for the supplied actor context.

    Guards run asynchronously so that async action handlers are awaited.
    """
    ctx = _to_actor_context(request)
    session = _get_session()

    try:
        items = await session.resolve_menu_async(ctx)
    except NavigationError as e:
        logger.error("Failed to resolve navigation for %s: %s", ctx.fingerprint, e)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "navigation_error",
                "message": e.message,
                "details": {"code": e.code},
            },
        )

    return ResolveResponse(
        fingerprint=ctx.fingerprint,
        count=len(items),
        items=[menu_item_to_dict(item) for item in items],
    )


@router.get("/debug")
async def get_navigation_debug() -> Dict[str, Any]:
    """Items, analytics, cache and guard statistics."""
    return _get_session().get_debug_snapshot()


@router.get("/guards", response_model=GuardListResponse)
async def list_navigation_guards():
    """Registered guards in evaluation order, plus statistics."""
    session = _get_session()
    return GuardListResponse(
        guards=[guard_to_dict(g) for g in session.guards.list_guards()],
        statistics=session.guards.get_guard_statistics(),
    )


@router.get("/audit", response_model=AuditResponse)
async def get_navigation_audit(
    limit: int = Query(100, ge=1, le=1000, description="Most recent entries to return."),
):
    """Most recent guard decisions, oldest first."""
    session = _get_session()
    entries = session.audit.recent(limit)
    return AuditResponse(
        total=len(session.audit),
        entries=[audit_entry_to_dict(e) for e in entries],
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_navigation_analytics():
    """Analytics summary, insights and performance metrics."""
    session = _get_session()
    report = session.analytics.get_analytics_report()
    return AnalyticsResponse(
        summary=report["summary"],
        insights=report["insights"],
        performance=asdict(session.analytics.get_performance_metrics()),
    )

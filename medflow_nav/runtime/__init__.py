# medflow_nav/runtime package
# Resolves the navigation menu an actor may see and tracks how it is used.
#
# Core components:
#   - types: Core dataclasses (MenuItem, ActorContext, Guard, AuditEntry, CacheEntry)
#   - registry: Catalog of candidate menu items
#   - guards: Ordered, audited access-control rules
#   - state: Per-actor cache, history and breadcrumb
#   - analytics: Event log, audit trail and insights
#   - service: NavigationSession wiring the above together
#
# Usage:
#     from medflow_nav.runtime import ActorContext, create_navigation_session
#     session = create_navigation_session(ActorContext(identity="u1", roles=("user",)))
#     items = session.resolve_menu()

from typing import TYPE_CHECKING

from .errors import (
    GuardActionError,
    GuardConflictError,
    ItemValidationError,
    NavigationCacheError,
    NavigationError,
    NavigationGuardError,
)
from .types import (
    ActorContext,
    AuditEntry,
    AuditResult,
    Condition,
    ConditionOperator,
    ConditionType,
    Environment,
    Guard,
    GuardAction,
    GuardActionType,
    GuardResult,
    InteractionAction,
    MenuItem,
)

# TYPE_CHECKING stubs for static type checkers; the service module is
# imported lazily at runtime because it depends on the config package.
if TYPE_CHECKING:
    from .service import NavigationSession as NavigationSession
    from .service import create_navigation_session as create_navigation_session

__all__ = [
    # Types
    "MenuItem",
    "Condition",
    "ConditionType",
    "ConditionOperator",
    "ActorContext",
    "Environment",
    "Guard",
    "GuardAction",
    "GuardActionType",
    "GuardResult",
    "AuditEntry",
    "AuditResult",
    "InteractionAction",
    # Errors
    "NavigationError",
    "NavigationGuardError",
    "GuardConflictError",
    "GuardActionError",
    "NavigationCacheError",
    "ItemValidationError",
    # Service (imported lazily at runtime, statically available for type checking)
    "NavigationSession",
    "create_navigation_session",
]


def __getattr__(name: str):
    """Lazy import for service to avoid circular dependencies."""
    if name == "NavigationSession":
        from .service import NavigationSession

        return NavigationSession
    if name == "create_navigation_session":
        from .service import create_navigation_session

        return create_navigation_session
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

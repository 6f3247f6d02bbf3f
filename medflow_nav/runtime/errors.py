"""Exception types raised by the navigation engine.

All errors are internal: they carry a machine-readable ``code`` and optional
item/context details, and callers decide how to surface them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Guard, MenuItem


class NavigationError(Exception):
    """Base error for the navigation engine."""

    def __init__(
        self,
        message: str,
        code: str = "NAVIGATION_ERROR",
        item: Optional["MenuItem"] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.item = item
        self.context = context or {}


class NavigationGuardError(NavigationError):
    """A guard rule was violated or misconfigured."""

    def __init__(
        self,
        message: str,
        guard: "Guard",
        context: Optional[Dict[str, Any]] = None,
        code: str = "GUARD_VIOLATION",
    ):
        super().__init__(message, code=code, context=context)
        self.guard = guard


class GuardConflictError(NavigationGuardError):
    """A guard with the same id is already registered."""

    def __init__(self, guard: "Guard"):
        super().__init__(
            f"Guard with ID '{guard.id}' already exists",
            guard,
            code="GUARD_CONFLICT",
        )


class GuardActionError(NavigationError):
    """A guard's action could not be executed."""

    def __init__(self, message: str, item: Optional["MenuItem"] = None):
        super().__init__(message, code="GUARD_ACTION_FAILED", item=item)


class NavigationCacheError(NavigationError):
    def __init__(self, message: str, cache_key: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CACHE_ERROR", context=context)
        self.cache_key = cache_key


class ItemValidationError(NavigationError):
    """A menu item failed structural validation.

    Attributes:
        errors: Every violation found, not just the first.
    """

    def __init__(self, errors: List[str], item: Any = None):
        super().__init__(
            "Invalid navigation item: " + "; ".join(errors),
            code="INVALID_ITEM",
            item=item,
        )
        self.errors = list(errors)

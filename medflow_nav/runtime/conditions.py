"""
conditions.py - Shared condition vocabulary for item visibility and guards.

Both the item registry's visibility pre-filter and the guard pipeline test
conditions of the same shape: a typed value set (role, permission, feature or
custom predicate name) plus an ``in`` / ``not_in`` operator.

Custom conditions are resolved through a PredicateRegistry. Callers extend it
with their own named predicates; names nobody registered pass through as true.

Usage:
    from medflow_nav.runtime.conditions import PredicateRegistry, evaluate_condition

    predicates = PredicateRegistry()
    predicates.register("beta_tester", lambda ctx, item: "beta" in ctx.features)

    visible = evaluate_condition(condition, ctx, item, predicates)
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from .types import ActorContext, Condition, ConditionType, MenuItem

logger = logging.getLogger(__name__)

# (ctx, item) -> bool; item is None when a condition is checked outside an item
Predicate = Callable[[ActorContext, Optional[MenuItem]], bool]


def _authenticated(ctx: ActorContext, item: Optional[MenuItem]) -> bool:
    return ctx.is_authenticated


def _admin_only(ctx: ActorContext, item: Optional[MenuItem]) -> bool:
    return ctx.is_admin


def _subscription_required(ctx: ActorContext, item: Optional[MenuItem]) -> bool:
    return ctx.subscription is not None


def _item_requires_admin(item: Optional[MenuItem]) -> bool:
    if item is None:
        return False
    return item.metadata.requires_admin or "admin" in item.roles


def _admin_access(ctx: ActorContext, item: Optional[MenuItem]) -> bool:
    """True unless the item is admin-restricted and the actor is not an admin."""
    return ctx.is_admin or not _item_requires_admin(item)


def _subscription_access(ctx: ActorContext, item: Optional[MenuItem]) -> bool:
    """True unless the item needs a subscription the actor does not have."""
    if item is None or not item.metadata.requires_subscription:
        return True
    return ctx.subscription is not None


DEFAULT_PREDICATES: Dict[str, Predicate] = {
    "authenticated": _authenticated,
    "admin_only": _admin_only,
    "subscription_required": _subscription_required,
    "admin_access": _admin_access,
    "subscription_access": _subscription_access,
}


class PredicateRegistry:
    """Named predicates for ``custom`` conditions."""

    def __init__(self, predicates: Optional[Dict[str, Predicate]] = None):
        self._predicates: Dict[str, Predicate] = dict(DEFAULT_PREDICATES)
        if predicates:
            self._predicates.update(predicates)

    def register(self, name: str, predicate: Predicate) -> None:
        """Register or replace a named predicate."""
        self._predicates[name] = predicate

    def unregister(self, name: str) -> bool:
        return self._predicates.pop(name, None) is not None

    def names(self) -> List[str]:
        return sorted(self._predicates)

    def __contains__(self, name: str) -> bool:
        return name in self._predicates

    def evaluate(self, name: str, ctx: ActorContext, item: Optional[MenuItem]) -> bool:
        predicate = self._predicates.get(name)
        if predicate is None:
            logger.debug("Unknown custom predicate '%s'; passing through", name)
            return True
        return bool(predicate(ctx, item))


def _matches_any(condition: Condition, ctx: ActorContext, item: Optional[MenuItem],
                 predicates: PredicateRegistry) -> bool:
    """Raw membership test, before the operator is applied."""
    if condition.type is ConditionType.ROLE:
        return any(value in ctx.roles for value in condition.value)
    elif condition.type is ConditionType.PERMISSION:
        return any(value in ctx.permissions for value in condition.value)
    elif condition.type is ConditionType.FEATURE:
        return any(value in ctx.features for value in condition.value)
    elif condition.type is ConditionType.CUSTOM:
        # Every named predicate must hold
        return all(predicates.evaluate(name, ctx, item) for name in condition.value)
    else:
        raise ValueError(f"Unhandled condition type: {condition.type!r}")


def evaluate_condition(
    condition: Condition,
    ctx: ActorContext,
    item: Optional[MenuItem] = None,
    predicates: Optional[PredicateRegistry] = None,
) -> bool:
    """Evaluate a condition against an actor context.

    Args:
        condition: The condition to test.
        ctx: Actor context supplying roles, permissions and features.
        item: The item under evaluation, passed to custom predicates.
        predicates: Registry for custom conditions. Defaults to built-ins.

    Returns:
        True if the condition holds (after applying a negating operator).
    """
    registry = predicates if predicates is not None else PredicateRegistry()
    result = _matches_any(condition, ctx, item, registry)
    return not result if condition.operator.negated else result


def evaluate_conditions(
    conditions,
    ctx: ActorContext,
    item: Optional[MenuItem] = None,
    predicates: Optional[PredicateRegistry] = None,
) -> bool:
    """True when every condition holds (vacuously true for none)."""
    return all(evaluate_condition(c, ctx, item, predicates) for c in conditions)

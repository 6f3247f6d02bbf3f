"""
types - Core type definitions for the navigation resolution engine

This package provides the data types shared by the registry, guard pipeline,
state manager and analytics manager. All types are dataclasses with full type
annotations; persisted types ship ``*_to_dict`` / ``*_from_dict`` functions.

Usage:
    from medflow_nav.runtime.types import (
        MenuItem, AnalyticsTag, ItemMetadata,
        Condition, ConditionType, ConditionOperator,
        ActorContext, Environment,
        Guard, GuardAction, GuardActionType, GuardResult, AuditEntry, AuditResult,
        CacheEntry, HistoryItem, InteractionAction, Breadcrumb, AnalyticsEvent,
        menu_item_to_dict, menu_item_from_dict,
    )
"""

from __future__ import annotations

from ._time import hour_of_day, now_ms
from .actor import (
    ActorContext,
    Environment,
    EnvironmentName,
    actor_context_from_dict,
    actor_context_to_dict,
)
from .guards import (
    ALLOW_ACTION,
    AuditEntry,
    AuditResult,
    Guard,
    GuardAction,
    GuardActionType,
    GuardEvaluation,
    GuardResult,
    audit_entry_to_dict,
    guard_action_from_dict,
    guard_action_to_dict,
    guard_from_dict,
    guard_to_dict,
)
from .items import (
    AnalyticsTag,
    Condition,
    ConditionOperator,
    ConditionType,
    GuardCondition,
    ItemCondition,
    ItemMetadata,
    MenuItem,
    condition_from_dict,
    condition_to_dict,
    menu_item_from_dict,
    menu_item_to_dict,
)
from .state import (
    AnalyticsEvent,
    Breadcrumb,
    CacheEntry,
    HistoryItem,
    InteractionAction,
    NavigationMetrics,
    PerformanceMetrics,
    UserBehavior,
    analytics_event_to_dict,
    breadcrumb_from_dict,
    breadcrumb_to_dict,
    cache_entry_to_dict,
    history_item_from_dict,
    history_item_to_dict,
    navigation_metrics_from_dict,
    performance_metrics_from_dict,
    user_behavior_from_dict,
)

__all__ = [
    # Time
    "now_ms",
    "hour_of_day",
    # Items
    "MenuItem",
    "AnalyticsTag",
    "ItemMetadata",
    "Condition",
    "ItemCondition",
    "GuardCondition",
    "ConditionType",
    "ConditionOperator",
    "condition_to_dict",
    "condition_from_dict",
    "menu_item_to_dict",
    "menu_item_from_dict",
    # Actor
    "ActorContext",
    "Environment",
    "EnvironmentName",
    "actor_context_to_dict",
    "actor_context_from_dict",
    # Guards
    "ALLOW_ACTION",
    "Guard",
    "GuardAction",
    "GuardActionType",
    "GuardEvaluation",
    "GuardResult",
    "AuditEntry",
    "AuditResult",
    "guard_to_dict",
    "guard_from_dict",
    "guard_action_to_dict",
    "guard_action_from_dict",
    "audit_entry_to_dict",
    # State
    "CacheEntry",
    "HistoryItem",
    "InteractionAction",
    "Breadcrumb",
    "AnalyticsEvent",
    "NavigationMetrics",
    "UserBehavior",
    "PerformanceMetrics",
    "history_item_to_dict",
    "history_item_from_dict",
    "breadcrumb_to_dict",
    "breadcrumb_from_dict",
    "analytics_event_to_dict",
    "cache_entry_to_dict",
    "navigation_metrics_from_dict",
    "user_behavior_from_dict",
    "performance_metrics_from_dict",
]

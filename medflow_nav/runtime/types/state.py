"""Session state types: cache entries, history, breadcrumbs, analytics.

Usage:
    from medflow_nav.runtime.types import (
        CacheEntry, HistoryItem, InteractionAction, Breadcrumb,
        AnalyticsEvent, NavigationMetrics, UserBehavior, PerformanceMetrics,
        history_item_to_dict, history_item_from_dict,
    )
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .items import MenuItem, menu_item_from_dict, menu_item_to_dict


class InteractionAction(str, Enum):
    """User interaction recorded in the navigation history."""

    CLICK = "click"
    HOVER = "hover"
    FOCUS = "focus"
    BLUR = "blur"


@dataclass(frozen=True)
class CacheEntry:
    """Resolved menu cached for one actor fingerprint.

    Entries are never modified; a refresh writes a new entry.
    """

    items: Tuple[MenuItem, ...]
    timestamp: float
    ttl: float
    version: str
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_valid(self, now: float) -> bool:
        return self.age(now) < self.ttl


@dataclass
class HistoryItem:
    """A single interaction with a menu item."""

    item: MenuItem
    timestamp: float
    action: InteractionAction
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Breadcrumb:
    label: str
    path: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool = False


@dataclass
class AnalyticsEvent:
    """Entry of the bounded analytics event log."""

    type: str
    timestamp: float
    item: Optional[MenuItem] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NavigationMetrics:
    total_clicks: int = 0
    unique_items_clicked: int = 0
    average_time_between_clicks: float = 0.0
    most_clicked_item: Optional[str] = None
    least_clicked_item: Optional[str] = None
    session_duration: float = 0.0


@dataclass
class UserBehavior:
    preferred_items: List[str] = field(default_factory=list)
    avoided_items: List[str] = field(default_factory=list)
    navigation_patterns: List[str] = field(default_factory=list)
    time_of_day_usage: Dict[str, int] = field(default_factory=dict)
    session_frequency: int = 0


@dataclass
class PerformanceMetrics:
    average_render_time: float = 0.0
    cache_hit_rate: float = 0.0
    error_rate: float = 0.0
    memory_usage: float = 0.0
    component_load_time: float = 0.0


# =============================================================================
# Serialization Functions
# =============================================================================


def history_item_to_dict(entry: HistoryItem) -> Dict[str, Any]:
    return {
        "item": menu_item_to_dict(entry.item),
        "timestamp": entry.timestamp,
        "action": entry.action.value,
        "metadata": dict(entry.metadata),
    }


def history_item_from_dict(data: Dict[str, Any]) -> HistoryItem:
    return HistoryItem(
        item=menu_item_from_dict(data.get("item", {})),
        timestamp=data.get("timestamp", 0.0),
        action=InteractionAction(data.get("action", "click")),
        metadata=dict(data.get("metadata", {})),
    )


def breadcrumb_to_dict(crumb: Breadcrumb) -> Dict[str, Any]:
    return asdict(crumb)


def breadcrumb_from_dict(data: Dict[str, Any]) -> Breadcrumb:
    return Breadcrumb(
        label=data.get("label", ""),
        path=data.get("path"),
        icon=data.get("icon"),
        is_active=bool(data.get("is_active", False)),
    )


def analytics_event_to_dict(event: AnalyticsEvent) -> Dict[str, Any]:
    return {
        "type": event.type,
        "timestamp": event.timestamp,
        "item": menu_item_to_dict(event.item) if event.item else None,
        "data": dict(event.data),
    }


def cache_entry_to_dict(entry: CacheEntry) -> Dict[str, Any]:
    return {
        "items": [menu_item_to_dict(i) for i in entry.items],
        "timestamp": entry.timestamp,
        "ttl": entry.ttl,
        "version": entry.version,
        "metadata": dict(entry.metadata),
    }


def _merge_dataclass(cls, defaults: Any, data: Optional[Dict[str, Any]]) -> Any:
    """Overlay persisted fields onto a fresh default instance, ignoring unknown keys."""
    merged = asdict(defaults)
    for key, value in (data or {}).items():
        if key in merged:
            merged[key] = value
    return cls(**merged)


def navigation_metrics_from_dict(data: Optional[Dict[str, Any]]) -> NavigationMetrics:
    return _merge_dataclass(NavigationMetrics, NavigationMetrics(), data)


def user_behavior_from_dict(data: Optional[Dict[str, Any]]) -> UserBehavior:
    return _merge_dataclass(UserBehavior, UserBehavior(), data)


def performance_metrics_from_dict(data: Optional[Dict[str, Any]]) -> PerformanceMetrics:
    return _merge_dataclass(PerformanceMetrics, PerformanceMetrics(), data)

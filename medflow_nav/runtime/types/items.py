"""Menu item types.

This module contains the catalog-side types: menu items, their access
conditions, instrumentation tags and behavioral metadata. Items are frozen
once constructed; their identity is their ``path``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union


class ConditionType(str, Enum):
    """What part of the actor context a condition inspects."""

    ROLE = "role"
    PERMISSION = "permission"
    FEATURE = "feature"
    CUSTOM = "custom"  # Resolved through the named predicate registry


class ConditionOperator(str, Enum):
    """Comparison operator for a condition.

    ``equals`` and ``not_equals`` are accepted aliases of ``in`` and
    ``not_in`` so that single-valued conditions read naturally.
    """

    IN = "in"
    NOT_IN = "not_in"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"

    @property
    def negated(self) -> bool:
        return self in (ConditionOperator.NOT_IN, ConditionOperator.NOT_EQUALS)


def _as_str_tuple(value: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class Condition:
    """A typed predicate over the actor context.

    Attributes:
        type: Which vocabulary the value belongs to.
        value: One or more role/permission/feature names, or predicate names
            for custom conditions. A bare string is normalised to a 1-tuple.
        operator: ``in`` (default) tests membership; ``not_in`` inverts it.
    """

    type: ConditionType
    value: Tuple[str, ...] = ()
    operator: ConditionOperator = ConditionOperator.IN

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ConditionType(self.type))
        object.__setattr__(self, "operator", ConditionOperator(self.operator))
        object.__setattr__(self, "value", _as_str_tuple(self.value))


# Items and guards share one condition vocabulary.
ItemCondition = Condition
GuardCondition = Condition


@dataclass(frozen=True)
class AnalyticsTag:
    """Instrumentation labels forwarded with events about an item."""

    category: str = "navigation"
    action: str = "navigation_click"
    label: Optional[str] = None
    value: Optional[float] = None
    custom_data: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ItemMetadata:
    """Access and lifecycle flags for a menu item."""

    requires_auth: bool = True
    requires_admin: bool = False
    requires_subscription: bool = False
    is_external: bool = False
    is_experimental: bool = False
    is_deprecated: bool = False
    maintenance_mode: bool = False
    custom_props: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class MenuItem:
    """A navigable entry with access-control metadata and display priority.

    Attributes:
        path: Route of the entry; must start with ``/``. Unique in a resolved list.
        label: Display text, 1-100 characters.
        icon: Opaque icon handle (the renderer decides what it means).
        description: Longer help text.
        priority: Lower numbers sort first.
        roles: Roles of which the actor needs at least one (empty = no requirement).
        permissions: Permissions of which the actor needs at least one.
        conditions: Extra predicates that must all hold.
        analytics: Instrumentation labels.
        metadata: Access and lifecycle flags.
    """

    path: str
    label: str
    icon: str = ""
    description: str = ""
    priority: float = 50
    roles: Tuple[str, ...] = ()
    permissions: Tuple[str, ...] = ()
    conditions: Tuple[Condition, ...] = ()
    analytics: AnalyticsTag = field(default_factory=AnalyticsTag)
    metadata: ItemMetadata = field(default_factory=ItemMetadata)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", _as_str_tuple(self.roles))
        object.__setattr__(self, "permissions", _as_str_tuple(self.permissions))
        object.__setattr__(self, "conditions", tuple(self.conditions))


# =============================================================================
# Serialization Functions
# =============================================================================


def condition_to_dict(condition: Condition) -> Dict[str, Any]:
    return {
        "type": condition.type.value,
        "value": list(condition.value),
        "operator": condition.operator.value,
    }


def condition_from_dict(data: Dict[str, Any]) -> Condition:
    return Condition(
        type=ConditionType(data.get("type", "custom")),
        value=_as_str_tuple(data.get("value")),
        operator=ConditionOperator(data.get("operator", "in")),
    )


def menu_item_to_dict(item: MenuItem) -> Dict[str, Any]:
    """Convert MenuItem to a dictionary for serialization.

    Args:
        item: The MenuItem to convert.

    Returns:
        Dictionary representation suitable for JSON serialization.
    """
    return {
        "path": item.path,
        "label": item.label,
        "icon": item.icon,
        "description": item.description,
        "priority": item.priority,
        "roles": list(item.roles),
        "permissions": list(item.permissions),
        "conditions": [condition_to_dict(c) for c in item.conditions],
        "analytics": {
            "category": item.analytics.category,
            "action": item.analytics.action,
            "label": item.analytics.label,
            "value": item.analytics.value,
            "custom_data": dict(item.analytics.custom_data),
        },
        "metadata": {
            "requires_auth": item.metadata.requires_auth,
            "requires_admin": item.metadata.requires_admin,
            "requires_subscription": item.metadata.requires_subscription,
            "is_external": item.metadata.is_external,
            "is_experimental": item.metadata.is_experimental,
            "is_deprecated": item.metadata.is_deprecated,
            "maintenance_mode": item.metadata.maintenance_mode,
            "custom_props": dict(item.metadata.custom_props),
        },
    }


def menu_item_from_dict(data: Dict[str, Any]) -> MenuItem:
    """Parse MenuItem from a dictionary.

    Args:
        data: Dictionary with MenuItem fields.

    Returns:
        Parsed MenuItem instance.
    """
    analytics_data = data.get("analytics") or {}
    metadata_data = data.get("metadata") or {}
    return MenuItem(
        path=data.get("path", ""),
        label=data.get("label", ""),
        icon=data.get("icon", ""),
        description=data.get("description", ""),
        priority=data.get("priority", 50),
        roles=tuple(data.get("roles", [])),
        permissions=tuple(data.get("permissions", [])),
        conditions=tuple(condition_from_dict(c) for c in data.get("conditions", [])),
        analytics=AnalyticsTag(
            category=analytics_data.get("category", "navigation"),
            action=analytics_data.get("action", "navigation_click"),
            label=analytics_data.get("label"),
            value=analytics_data.get("value"),
            custom_data=dict(analytics_data.get("custom_data", {})),
        ),
        metadata=ItemMetadata(
            requires_auth=metadata_data.get("requires_auth", True),
            requires_admin=metadata_data.get("requires_admin", False),
            requires_subscription=metadata_data.get("requires_subscription", False),
            is_external=metadata_data.get("is_external", False),
            is_experimental=metadata_data.get("is_experimental", False),
            is_deprecated=metadata_data.get("is_deprecated", False),
            maintenance_mode=metadata_data.get("maintenance_mode", False),
            custom_props=dict(metadata_data.get("custom_props", {})),
        ),
    )

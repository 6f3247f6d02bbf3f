"""
registry.py - Catalog of navigation entries.

The registry assembles the full, unfiltered set of candidate menu items for an
actor: the fixed base items, admin-only items (only when the actor holds the
``admin`` role) and supplementary items. Every item is built through
``create_item`` so defaults are filled the same way everywhere.

``filter_by_visibility`` is a pre-filter, not an access-control decision:
it resolves item conditions inline without writing audit entries. Auditable
decisions belong to the guard pipeline.

Usage:
    from medflow_nav.runtime.registry import NavigationItemRegistry

    registry = NavigationItemRegistry()
    candidates = registry.get_all_items(ctx)
    visible = registry.filter_by_visibility(candidates, ctx)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .conditions import PredicateRegistry, evaluate_conditions
from .nav_utils import sort_by_priority
from .types import (
    ActorContext,
    AnalyticsTag,
    Condition,
    ItemMetadata,
    MenuItem,
)

logger = logging.getLogger(__name__)


def create_item(
    path: str,
    label: str,
    icon: str,
    description: str,
    priority: float,
    roles: Optional[Sequence[str]] = None,
    permissions: Optional[Sequence[str]] = None,
    conditions: Optional[Sequence[Condition]] = None,
    analytics: Optional[Union[AnalyticsTag, Dict[str, Any]]] = None,
    metadata: Optional[Union[ItemMetadata, Dict[str, Any]]] = None,
) -> MenuItem:
    """Build a MenuItem with registry defaults.

    ``metadata.requires_auth`` defaults to True, and a missing analytics block
    becomes ``navigation/navigation_click`` labelled with the item label.
    """
    if metadata is None:
        item_metadata = ItemMetadata(requires_auth=True)
    elif isinstance(metadata, ItemMetadata):
        item_metadata = metadata
    else:
        item_metadata = ItemMetadata(**{"requires_auth": True, **metadata})

    if analytics is None:
        item_analytics = AnalyticsTag(category="navigation", action="navigation_click", label=label)
    elif isinstance(analytics, AnalyticsTag):
        item_analytics = analytics
    else:
        item_analytics = AnalyticsTag(**analytics)

    return MenuItem(
        path=path,
        label=label,
        icon=icon,
        description=description,
        priority=priority,
        roles=tuple(roles or ()),
        permissions=tuple(permissions or ()),
        conditions=tuple(conditions or ()),
        analytics=item_analytics,
        metadata=item_metadata,
    )


class NavigationItemRegistry:
    """Produces the raw catalog of menu items.

    Args:
        predicates: Named predicates for custom item conditions.
        extra_items: Items appended to the supplementary set.
    """

    def __init__(
        self,
        predicates: Optional[PredicateRegistry] = None,
        extra_items: Optional[Iterable[MenuItem]] = None,
    ):
        self.predicates = predicates or PredicateRegistry()
        self._extra_items: List[MenuItem] = list(extra_items or [])

    def register_item(self, item: MenuItem) -> None:
        """Add an item to the supplementary set."""
        self._extra_items.append(item)

    def get_base_items(self) -> List[MenuItem]:
        """Items always shown to authenticated actors."""
        return [
            create_item(
                path="/dashboard",
                label="Dashboard",
                icon="home",
                description="Prezentare generală și statistici rapide",
                priority=1,
                analytics={
                    "category": "navigation",
                    "action": "dashboard_view",
                    "label": "Dashboard Navigation",
                },
            ),
            create_item(
                path="/appointments",
                label="Programări",
                icon="calendar",
                description="Gestionează programările zilnice și săptămânale",
                priority=2,
                analytics={
                    "category": "navigation",
                    "action": "appointments_view",
                    "label": "Appointments Navigation",
                },
            ),
            create_item(
                path="/patients",
                label="Pacienți",
                icon="users",
                description="Gestionează informațiile și istoricul pacienților",
                priority=3,
                analytics={
                    "category": "navigation",
                    "action": "patients_view",
                    "label": "Patients Navigation",
                },
            ),
            create_item(
                path="/reports",
                label="Rapoarte",
                icon="file-text",
                description="Generează și vizualizează rapoarte medicale",
                priority=4,
                analytics={
                    "category": "navigation",
                    "action": "reports_view",
                    "label": "Reports Navigation",
                },
            ),
            create_item(
                path="/profile",
                label="Profil",
                icon="user",
                description="Gestionează profilul și setările contului",
                priority=5,
                analytics={
                    "category": "navigation",
                    "action": "profile_view",
                    "label": "Profile Navigation",
                },
            ),
        ]

    def get_admin_items(self, ctx: ActorContext) -> List[MenuItem]:
        """Items for administrators; empty unless ``admin`` is in ctx.roles."""
        if not ctx.is_admin:
            return []

        return [
            create_item(
                path="/analytics",
                label="Analytics",
                icon="bar-chart-3",
                description="Advanced analytics and performance metrics for administrators",
                priority=0.5,  # Ahead of the dashboard
                roles=["admin"],
                metadata={"requires_auth": True, "requires_admin": True},
                analytics={
                    "category": "navigation",
                    "action": "analytics_view",
                    "label": "Admin Analytics Navigation",
                },
            )
        ]

    def get_additional_items(self) -> List[MenuItem]:
        """Supplementary items with no role restriction, plus registered extras."""
        return [
            create_item(
                path="/framer-websites",
                label="Websites",
                icon="globe",
                description="View your integrated Framer websites",
                priority=6,
                analytics={
                    "category": "navigation",
                    "action": "websites_view",
                    "label": "Framer Websites Navigation",
                },
            ),
            *self._extra_items,
        ]

    def get_all_items(self, ctx: ActorContext) -> List[MenuItem]:
        """Every candidate item for ``ctx``, stable-sorted by ascending priority."""
        items = [
            *self.get_admin_items(ctx),
            *self.get_base_items(),
            *self.get_additional_items(),
        ]
        return sort_by_priority(items)

    def is_visible(self, item: MenuItem, ctx: ActorContext) -> bool:
        """Pre-filter check for a single item (no audit logging)."""
        if item.metadata.requires_auth and not ctx.is_authenticated:
            return False

        if item.metadata.requires_admin and not ctx.is_admin:
            return False

        if item.roles and not set(item.roles).intersection(ctx.roles):
            return False

        if item.permissions and not set(item.permissions).intersection(ctx.permissions):
            return False

        if item.conditions and not evaluate_conditions(
            item.conditions, ctx, item, self.predicates
        ):
            return False

        return True

    def filter_by_visibility(self, items: Iterable[MenuItem], ctx: ActorContext) -> List[MenuItem]:
        visible = [item for item in items if self.is_visible(item, ctx)]
        logger.debug("Visibility filter kept %d item(s) for %s", len(visible), ctx.fingerprint)
        return visible

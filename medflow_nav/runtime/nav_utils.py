"""
nav_utils.py - Stateless helpers for menu items.

Sorting, filtering, grouping, validation, sanitization and display helpers
used by the registry, the resolver and the debug API. Every function is pure:
inputs are never mutated and new lists are returned.

Usage:
    from medflow_nav.runtime.nav_utils import (
        sort_by_priority, filter_by_role, group_by_category,
        validate_item, sanitize_item, sanitize_text,
    )

    errors = validate_item(item)
    if errors:
        ...  # exclude the item, errors lists every violation
"""

from __future__ import annotations

import re
from dataclasses import replace
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .types import ActorContext, MenuItem

# Characters stripped from display text and paths
_UNSAFE_CHARS = re.compile(r"[<>\"'%;()&+]")
_ROLE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_PERMISSION_PATTERN = re.compile(r"^[A-Za-z0-9:_-]+$")

MAX_PATH_LENGTH = 200
MAX_LABEL_LENGTH = 100
MAX_ROLE_LENGTH = 50
MAX_PERMISSION_LENGTH = 100
PRIORITY_MIN = 0
PRIORITY_MAX = 100

ItemLike = Union[MenuItem, Mapping[str, Any]]


# =============================================================================
# Sorting
# =============================================================================


def sort_by_priority(items: Iterable[MenuItem]) -> List[MenuItem]:
    """Sort ascending by priority; equal priorities keep their input order."""
    return sorted(items, key=lambda item: item.priority)


def sort_alphabetically(items: Iterable[MenuItem]) -> List[MenuItem]:
    return sorted(items, key=lambda item: item.label.casefold())


def sort_by_usage(items: Iterable[MenuItem], usage_counts: Mapping[str, int]) -> List[MenuItem]:
    """Sort by externally supplied usage counts, most used first."""
    return sorted(items, key=lambda item: usage_counts.get(item.path, 0), reverse=True)


# =============================================================================
# Filtering
# =============================================================================


def filter_by_role(items: Iterable[MenuItem], roles: Iterable[str]) -> List[MenuItem]:
    """Keep items with no role requirement or sharing at least one role."""
    granted = set(roles)
    return [item for item in items if not item.roles or granted.intersection(item.roles)]


def filter_by_permission(items: Iterable[MenuItem], permissions: Iterable[str]) -> List[MenuItem]:
    """Keep items with no permission requirement or sharing at least one permission."""
    granted = set(permissions)
    return [
        item for item in items if not item.permissions or granted.intersection(item.permissions)
    ]


def filter_by_feature(items: Iterable[MenuItem], features: Iterable[str]) -> List[MenuItem]:
    """Hide experimental items unless the ``experimental`` feature is enabled."""
    enabled = set(features)
    return [
        item
        for item in items
        if not item.metadata.is_experimental or "experimental" in enabled
    ]


# =============================================================================
# Grouping and lookup
# =============================================================================


def group_by_category(items: Iterable[MenuItem]) -> Dict[str, List[MenuItem]]:
    """Bucket items into primary/admin/settings/secondary/other.

    Rules are checked in that order; empty buckets are omitted.
    """
    groups: Dict[str, List[MenuItem]] = {
        "primary": [],
        "secondary": [],
        "admin": [],
        "settings": [],
        "other": [],
    }
    for item in items:
        if item.priority <= 2:
            groups["primary"].append(item)
        elif "admin" in item.roles:
            groups["admin"].append(item)
        elif "profile" in item.path or "settings" in item.path:
            groups["settings"].append(item)
        elif item.priority <= 5:
            groups["secondary"].append(item)
        else:
            groups["other"].append(item)
    return {name: bucket for name, bucket in groups.items() if bucket}


def group_by_priority(items: Iterable[MenuItem]) -> Dict[str, List[MenuItem]]:
    groups: Dict[str, List[MenuItem]] = {"high": [], "medium": [], "low": []}
    for item in items:
        if item.priority <= 2:
            groups["high"].append(item)
        elif item.priority <= 5:
            groups["medium"].append(item)
        else:
            groups["low"].append(item)
    return groups


def find_by_path(items: Iterable[MenuItem], path: str) -> Optional[MenuItem]:
    return next((item for item in items if item.path == path), None)


def find_by_label(items: Iterable[MenuItem], label: str, exact: bool = True) -> List[MenuItem]:
    if exact:
        return [item for item in items if item.label == label]
    needle = label.lower()
    return [item for item in items if needle in item.label.lower()]


def get_breadcrumb_path(items: Sequence[MenuItem], target_path: str) -> List[MenuItem]:
    """Resolve each prefix of ``target_path`` to a known item.

    ``/patients/42/notes`` yields the items registered at ``/patients``,
    ``/patients/42`` and ``/patients/42/notes``, skipping unknown prefixes.
    """
    segments = [s for s in target_path.split("/") if s]
    crumbs: List[MenuItem] = []
    for i in range(1, len(segments) + 1):
        found = find_by_path(items, "/" + "/".join(segments[:i]))
        if found is not None:
            crumbs.append(found)
    return crumbs


# =============================================================================
# Validation
# =============================================================================


def validate_path(path: Any) -> bool:
    return isinstance(path, str) and path.startswith("/") and len(path) <= MAX_PATH_LENGTH


def validate_label(label: Any) -> bool:
    return isinstance(label, str) and len(label.strip()) > 0 and len(label) <= MAX_LABEL_LENGTH


def validate_priority(priority: Any) -> bool:
    return (
        isinstance(priority, Real)
        and not isinstance(priority, bool)
        and PRIORITY_MIN <= priority <= PRIORITY_MAX
    )


def _field(item: ItemLike, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _is_str_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def validate_item(item: ItemLike) -> List[str]:
    """Validate a menu item's structure.

    Args:
        item: A MenuItem or a mapping with the same field names.

    Returns:
        Every violation found; an empty list means the item is valid.
    """
    errors: List[str] = []

    if not validate_path(_field(item, "path")):
        errors.append(
            f'Invalid or missing path (must start with "/" and be at most '
            f"{MAX_PATH_LENGTH} characters)"
        )

    if not validate_label(_field(item, "label")):
        errors.append(f"Invalid or missing label (1-{MAX_LABEL_LENGTH} characters)")

    icon = _field(item, "icon")
    if not isinstance(icon, str) or not icon:
        errors.append("Invalid or missing icon")

    description = _field(item, "description")
    if not isinstance(description, str) or not description:
        errors.append("Invalid or missing description")

    if not validate_priority(_field(item, "priority")):
        errors.append(f"Invalid priority (must be a number in [{PRIORITY_MIN}, {PRIORITY_MAX}])")

    roles = _field(item, "roles")
    if roles is not None and not _is_str_sequence(roles):
        errors.append("Roles must be a sequence of strings")

    permissions = _field(item, "permissions")
    if permissions is not None and not _is_str_sequence(permissions):
        errors.append("Permissions must be a sequence of strings")

    return errors


def is_valid_item(item: ItemLike) -> bool:
    return not validate_item(item)


# =============================================================================
# Sanitization
# =============================================================================


def sanitize_text(text: str) -> str:
    """Strip the characters ``< > " ' % ; ( ) & +`` and surrounding whitespace."""
    return _UNSAFE_CHARS.sub("", text).strip()


def sanitize_path(path: str) -> str:
    return _UNSAFE_CHARS.sub("", path)


def is_valid_role(role: str) -> bool:
    return bool(_ROLE_PATTERN.match(role)) and len(role) <= MAX_ROLE_LENGTH


def is_valid_permission(permission: str) -> bool:
    return bool(_PERMISSION_PATTERN.match(permission)) and len(permission) <= MAX_PERMISSION_LENGTH


def sanitize_item(item: MenuItem) -> MenuItem:
    """Return a copy with sanitized text, clamped priority and valid role/permission names.

    Invalid roles and permissions are dropped rather than raising.
    """
    return replace(
        item,
        path=sanitize_path(item.path),
        label=sanitize_text(item.label),
        description=sanitize_text(item.description),
        priority=max(PRIORITY_MIN, min(PRIORITY_MAX, item.priority)),
        roles=tuple(r for r in item.roles if is_valid_role(r)),
        permissions=tuple(p for p in item.permissions if is_valid_permission(p)),
    )


# =============================================================================
# Display helpers
# =============================================================================


def generate_item_id(item: MenuItem) -> str:
    return f"nav_{item.path.replace('/', '_')}_{item.priority}"


def get_item_accessibility_status(item: MenuItem, ctx: ActorContext) -> Tuple[bool, List[str]]:
    """Explain why an item would be hidden from an actor.

    Returns:
        (accessible, reasons) where reasons lists each unmet requirement.
    """
    reasons: List[str] = []

    if item.roles:
        if not ctx.is_authenticated:
            reasons.append("Authentication required")
        elif not set(item.roles).intersection(ctx.roles):
            reasons.append(f"Required role: {', '.join(item.roles)}")

    if item.permissions:
        if not ctx.is_authenticated:
            if "Authentication required" not in reasons:
                reasons.append("Authentication required")
        elif not set(item.permissions).intersection(ctx.permissions):
            reasons.append(f"Required permission: {', '.join(item.permissions)}")

    if item.metadata.requires_subscription and ctx.subscription is None:
        reasons.append("Subscription required")

    return not reasons, reasons


def is_item_accessible(item: MenuItem, ctx: ActorContext) -> bool:
    accessible, _ = get_item_accessibility_status(item, ctx)
    return accessible


def format_item(item: MenuItem, ctx: ActorContext) -> Dict[str, Any]:
    accessible, reasons = get_item_accessibility_status(item, ctx)
    return {
        "id": generate_item_id(item),
        "path": item.path,
        "label": item.label,
        "description": item.description,
        "priority": item.priority,
        "accessible": accessible,
        "reasons": reasons,
    }

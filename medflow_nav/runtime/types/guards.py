"""Guard and audit types.

This module contains the access-control rule types evaluated by the guard
pipeline, the per-item evaluation results it produces, and the audit entries
recorded for every terminal decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .items import Condition, MenuItem, condition_from_dict, condition_to_dict, menu_item_to_dict


class GuardActionType(str, Enum):
    """What a guard does when its condition matches."""

    ALLOW = "allow"
    DENY = "deny"  # Terminal
    REDIRECT = "redirect"  # Terminal; value holds the target path
    LOG = "log"
    CUSTOM = "custom"  # value names a registered action handler


class AuditResult(str, Enum):
    """Outcome recorded in the audit trail."""

    ALLOWED = "ALLOWED"
    DENIED = "DENIED"
    REDIRECT = "REDIRECT"
    LOGGED = "LOGGED"  # Non-terminal log action
    ERROR = "ERROR"  # Guard evaluation raised


@dataclass(frozen=True)
class GuardAction:
    """Action executed by a guard whose condition matched."""

    type: GuardActionType
    value: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", GuardActionType(self.type))

    @property
    def is_terminal(self) -> bool:
        return self.type in (GuardActionType.DENY, GuardActionType.REDIRECT)


ALLOW_ACTION = GuardAction(type=GuardActionType.ALLOW)


@dataclass(frozen=True)
class Guard:
    """A named, prioritized access-control rule.

    Attributes:
        id: Unique identifier within a pipeline.
        name: Human-readable name used in logs and audit entries.
        priority: Higher priorities are evaluated first.
        condition: When the guard applies.
        action: What the guard does when it applies.
        metadata: Free-form guard metadata.
    """

    id: str
    name: str
    priority: float
    condition: Condition
    action: GuardAction
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass
class GuardEvaluation:
    """One guard's contribution to an item's evaluation."""

    guard: Guard
    condition_met: bool
    action: GuardAction


@dataclass
class GuardResult:
    """Final decision of the pipeline for a single item.

    Attributes:
        item: The evaluated item.
        allowed: True when no guard denied or redirected.
        reason: ``deny``, ``redirect`` or ``error`` when not allowed.
        redirect_to: Target path for redirects.
        guard: The guard that produced the terminal decision.
        evaluation: The evaluation step that produced the terminal decision.
        all_evaluations: Every evaluation step performed, in order.
    """

    item: MenuItem
    allowed: bool
    reason: Optional[str] = None
    redirect_to: Optional[str] = None
    guard: Optional[Guard] = None
    evaluation: Optional[GuardEvaluation] = None
    all_evaluations: List[GuardEvaluation] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of a guard decision for an item and actor."""

    timestamp: float
    item: MenuItem
    action: GuardAction
    result: AuditResult
    context: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    guard_id: Optional[str] = None
    guard_name: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Serialization Functions
# =============================================================================


def guard_action_to_dict(action: GuardAction) -> Dict[str, Any]:
    return {"type": action.type.value, "value": action.value, "metadata": dict(action.metadata)}


def guard_action_from_dict(data: Dict[str, Any]) -> GuardAction:
    return GuardAction(
        type=GuardActionType(data.get("type", "allow")),
        value=data.get("value"),
        metadata=dict(data.get("metadata", {})),
    )


def guard_to_dict(guard: Guard) -> Dict[str, Any]:
    """Convert Guard to a dictionary for serialization."""
    return {
        "id": guard.id,
        "name": guard.name,
        "priority": guard.priority,
        "condition": condition_to_dict(guard.condition),
        "action": guard_action_to_dict(guard.action),
        "metadata": dict(guard.metadata),
    }


def guard_from_dict(data: Dict[str, Any]) -> Guard:
    """Parse Guard from a dictionary (e.g. a YAML guard definition)."""
    return Guard(
        id=data["id"],
        name=data.get("name", data["id"]),
        priority=data.get("priority", 0),
        condition=condition_from_dict(data.get("condition", {})),
        action=guard_action_from_dict(data.get("action", {})),
        metadata=dict(data.get("metadata", {})),
    )


def audit_entry_to_dict(entry: AuditEntry) -> Dict[str, Any]:
    """Convert AuditEntry to a dictionary for serialization."""
    return {
        "timestamp": entry.timestamp,
        "guard_id": entry.guard_id,
        "guard_name": entry.guard_name,
        "item": menu_item_to_dict(entry.item),
        "action": guard_action_to_dict(entry.action),
        "result": entry.result.value,
        "context": dict(entry.context),
        "error": entry.error,
    }

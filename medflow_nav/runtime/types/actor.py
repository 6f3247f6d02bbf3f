"""Actor context types.

The actor context is the read-only view of the caller supplied by the
identity provider on every resolution request. It is never mutated in place:
``with_updates`` returns a new context.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Optional, Tuple

EnvironmentName = Literal["development", "production", "test"]


@dataclass(frozen=True)
class Environment:
    """Deployment environment of the session."""

    name: EnvironmentName = "production"
    version: str = "1.0.0"

    @property
    def is_development(self) -> bool:
        return self.name == "development"

    @property
    def is_production(self) -> bool:
        return self.name == "production"

    @property
    def is_test(self) -> bool:
        return self.name == "test"


@dataclass(frozen=True)
class ActorContext:
    """Authenticated or anonymous caller of the navigation engine.

    Attributes:
        identity: Opaque identity of the caller; None means anonymous.
        roles: Roles granted to the caller.
        permissions: Fine-grained permissions granted to the caller.
        features: Enabled feature flags.
        subscription: Subscription handle, if any.
        preferences: Free-form user preferences.
        environment: Deployment environment.
    """

    identity: Optional[str] = None
    roles: Tuple[str, ...] = ()
    permissions: Tuple[str, ...] = ()
    features: Tuple[str, ...] = ()
    subscription: Optional[str] = None
    preferences: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    environment: Environment = field(default_factory=Environment)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", tuple(self.roles))
        object.__setattr__(self, "permissions", tuple(self.permissions))
        object.__setattr__(self, "features", tuple(self.features))

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    @property
    def fingerprint(self) -> str:
        """Cache key scoping a resolved menu: identity plus sorted roles.

        JSON-encoded so that no identity or role string can collide with
        another context (anonymous is encoded as null).
        """
        return json.dumps([self.identity, sorted(self.roles)], separators=(",", ":"))

    def with_updates(self, **changes: Any) -> "ActorContext":
        """Return a new context with the given fields replaced."""
        return replace(self, **changes)

    def snapshot(self) -> Dict[str, Any]:
        """Compact view of the context recorded in audit entries."""
        return {
            "identity": self.identity,
            "roles": list(self.roles),
            "permissions": list(self.permissions),
        }


def actor_context_to_dict(ctx: ActorContext) -> Dict[str, Any]:
    return {
        "identity": ctx.identity,
        "roles": list(ctx.roles),
        "permissions": list(ctx.permissions),
        "features": list(ctx.features),
        "subscription": ctx.subscription,
        "preferences": dict(ctx.preferences),
        "environment": {"name": ctx.environment.name, "version": ctx.environment.version},
    }


def actor_context_from_dict(data: Dict[str, Any]) -> ActorContext:
    env = data.get("environment") or {}
    return ActorContext(
        identity=data.get("identity"),
        roles=tuple(data.get("roles", [])),
        permissions=tuple(data.get("permissions", [])),
        features=tuple(data.get("features", [])),
        subscription=data.get("subscription"),
        preferences=dict(data.get("preferences", {})),
        environment=Environment(
            name=env.get("name", "production"),
            version=env.get("version", "1.0.0"),
        ),
    )

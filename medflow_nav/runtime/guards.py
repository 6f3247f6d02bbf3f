"""
guards.py - Ordered, auditable access-control rules for menu items.

The guard pipeline holds a mutable registry of guards and evaluates each
candidate item against an actor context. Guards run in descending priority;
a guard whose condition does not match is a no-op. A matched guard's action
decides what happens next:

    allow    -> recorded, evaluation continues
    log      -> recorded, logged, LOGGED audit entry, evaluation continues
    deny     -> evaluation stops, item denied
    redirect -> evaluation stops, item denied with a redirect target
    custom   -> runs a named action handler; a returned deny/redirect
                action is applied as terminal, anything else continues

The terminal decision for an item (ALLOWED, DENIED, REDIRECT or ERROR) is
written to the audit trail exactly once per evaluation.

Failure policy:
    An exception raised while evaluating a condition or running an action
    stops evaluation of that item and is audited as ERROR. With the default
    policy "deny" the item is rejected with reason "error"; with "allow" it
    is treated as an implicit allow.

Usage:
    from medflow_nav.runtime.guards import GuardPipeline

    pipeline = GuardPipeline()
    pipeline.register_action_handler("policy_check", my_handler)
    result = pipeline.evaluate_item(item, ctx)
    if not result.allowed and result.reason == "redirect":
        ...  # navigate to result.redirect_to
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Union,
)

from .analytics import AuditTrail, summarize_guards
from .conditions import PredicateRegistry, evaluate_condition
from .errors import GuardActionError, GuardConflictError
from .types import (
    ALLOW_ACTION,
    ActorContext,
    AuditEntry,
    AuditResult,
    Condition,
    ConditionOperator,
    ConditionType,
    Guard,
    GuardAction,
    GuardActionType,
    GuardEvaluation,
    GuardResult,
    MenuItem,
    guard_from_dict,
    now_ms,
)

if TYPE_CHECKING:
    from .analytics import NavigationAnalyticsManager

logger = logging.getLogger(__name__)

# handler(guard, item, ctx) -> optional replacement action (or an awaitable of one)
ActionHandler = Callable[
    [Guard, MenuItem, ActorContext],
    Union[Optional[GuardAction], Awaitable[Optional[GuardAction]]],
]

FAILURE_POLICY_DENY = "deny"
FAILURE_POLICY_ALLOW = "allow"

GUARD_CUSTOM_EVENT = "navigation_guard_custom"


def create_default_guards(sign_in_path: str = "/signin") -> List[Guard]:
    """Guards installed in every new pipeline.

    - auth_required: anonymous actors are redirected to the sign-in page.
    - admin_required: admin-restricted items are denied to non-admins.
    - feature_enabled: items seen with ``navigation_feature`` enabled are logged.
    """
    return [
        Guard(
            id="auth_required",
            name="Authentication Required",
            priority=1000,
            condition=Condition(
                type=ConditionType.CUSTOM,
                value=("authenticated",),
                operator=ConditionOperator.NOT_IN,
            ),
            action=GuardAction(type=GuardActionType.REDIRECT, value=sign_in_path),
        ),
        Guard(
            id="admin_required",
            name="Admin Access Required",
            priority=900,
            condition=Condition(
                type=ConditionType.CUSTOM,
                value=("admin_access",),
                operator=ConditionOperator.NOT_IN,
            ),
            action=GuardAction(type=GuardActionType.DENY),
        ),
        Guard(
            id="feature_enabled",
            name="Feature Flag Check",
            priority=800,
            condition=Condition(
                type=ConditionType.FEATURE,
                value=("navigation_feature",),
                operator=ConditionOperator.IN,
            ),
            action=GuardAction(type=GuardActionType.LOG, value="Navigation feature accessed"),
        ),
    ]


class GuardPipeline:
    """Registry and evaluator of navigation guards.

    Args:
        predicates: Named predicates for custom conditions.
        audit: Audit trail receiving decisions. Shared with analytics.
        analytics: Optional analytics manager for instrumentation events.
        failure_policy: "deny" (fail closed) or "allow".
        sign_in_path: Redirect target of the default auth guard.
        clock: Epoch-millisecond clock for audit timestamps.
        default_guards: Install the default guards on construction.
    """

    def __init__(
        self,
        predicates: Optional[PredicateRegistry] = None,
        audit: Optional[AuditTrail] = None,
        analytics: Optional["NavigationAnalyticsManager"] = None,
        failure_policy: str = FAILURE_POLICY_DENY,
        sign_in_path: str = "/signin",
        clock: Callable[[], float] = now_ms,
        default_guards: bool = True,
    ):
        if failure_policy not in (FAILURE_POLICY_DENY, FAILURE_POLICY_ALLOW):
            raise ValueError(f"Unknown guard failure policy: {failure_policy!r}")

        self.predicates = predicates or PredicateRegistry()
        self.audit = audit if audit is not None else AuditTrail()
        self.analytics = analytics
        self.failure_policy = failure_policy
        self.sign_in_path = sign_in_path
        self._clock = clock
        # Insertion order breaks priority ties
        self._guards: Dict[str, Guard] = {}
        self._action_handlers: Dict[str, ActionHandler] = {}

        if default_guards:
            for guard in create_default_guards(sign_in_path):
                self.add_guard(guard)

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def add_guard(self, guard: Guard) -> None:
        """Register a guard.

        Raises:
            GuardConflictError: A guard with the same id exists. The existing
                guard is left untouched.
        """
        if guard.id in self._guards:
            raise GuardConflictError(guard)
        self._guards[guard.id] = guard
        logger.debug("Registered guard '%s' (priority %s)", guard.id, guard.priority)

    def remove_guard(self, guard_id: str) -> bool:
        return self._guards.pop(guard_id, None) is not None

    def update_guard(self, guard_id: str, **changes: Any) -> bool:
        """Replace fields of a registered guard.

        Returns:
            False if no guard has ``guard_id``.

        Raises:
            ValueError: ``changes`` tries to change the id.
        """
        guard = self._guards.get(guard_id)
        if guard is None:
            return False
        if "id" in changes and changes["id"] != guard_id:
            raise ValueError(f"Guard id '{guard_id}' cannot be changed")
        self._guards[guard_id] = replace(guard, **changes)
        return True

    def get_guard(self, guard_id: str) -> Optional[Guard]:
        return self._guards.get(guard_id)

    def list_guards(self) -> List[Guard]:
        """Guards in evaluation order: descending priority, ties by registration."""
        return sorted(self._guards.values(), key=lambda g: g.priority, reverse=True)

    def load_guard_definitions(self, definitions: Iterable[Dict[str, Any]]) -> int:
        """Register guards parsed from config definitions.

        Returns:
            Number of guards added.
        """
        added = 0
        for definition in definitions:
            self.add_guard(guard_from_dict(definition))
            added += 1
        return added

    def register_action_handler(self, name: str, handler: ActionHandler) -> None:
        """Register the handler run by custom actions whose value is ``name``."""
        self._action_handlers[name] = handler

    def unregister_action_handler(self, name: str) -> bool:
        return self._action_handlers.pop(name, None) is not None

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate_item(self, item: MenuItem, ctx: ActorContext) -> GuardResult:
        """Run every guard against ``item`` and return the decision.

        Custom handlers must be synchronous here; an awaitable result is a
        handler error. Use ``aevaluate_item`` for asynchronous handlers.
        """
        evaluations: List[GuardEvaluation] = []

        for guard in self.list_guards():
            try:
                if not evaluate_condition(guard.condition, ctx, item, self.predicates):
                    evaluations.append(GuardEvaluation(guard, False, ALLOW_ACTION))
                    continue

                action = guard.action
                if action.type is GuardActionType.CUSTOM:
                    outcome = self._run_action_handler(guard, item, ctx)
                    if inspect.isawaitable(outcome):
                        if inspect.iscoroutine(outcome):
                            outcome.close()
                        raise GuardActionError(
                            f"Action handler for guard '{guard.id}' is asynchronous; "
                            "use aevaluate_item",
                            item,
                        )
                    action = self._custom_outcome(guard, outcome, item)
            except Exception as e:
                return self._handle_failure(item, ctx, guard, e, evaluations)

            result = self._apply_action(item, ctx, guard, action, evaluations)
            if result is not None:
                return result

        return self._allow(item, ctx, evaluations)

    async def aevaluate_item(self, item: MenuItem, ctx: ActorContext) -> GuardResult:
        """Asynchronous variant of ``evaluate_item``.

        Each handler's awaitable completes before the next guard runs, so
        short-circuiting stays deterministic.
        """
        evaluations: List[GuardEvaluation] = []

        for guard in self.list_guards():
            try:
                if not evaluate_condition(guard.condition, ctx, item, self.predicates):
                    evaluations.append(GuardEvaluation(guard, False, ALLOW_ACTION))
                    continue

                action = guard.action
                if action.type is GuardActionType.CUSTOM:
                    outcome = self._run_action_handler(guard, item, ctx)
                    if inspect.isawaitable(outcome):
                        outcome = await outcome
                    action = self._custom_outcome(guard, outcome, item)
            except Exception as e:
                return self._handle_failure(item, ctx, guard, e, evaluations)

            result = self._apply_action(item, ctx, guard, action, evaluations)
            if result is not None:
                return result

        return self._allow(item, ctx, evaluations)

    def _run_action_handler(self, guard: Guard, item: MenuItem, ctx: ActorContext) -> Any:
        name = guard.action.value
        if not name:
            return self._default_action_handler(guard, item, ctx)

        handler = self._action_handlers.get(name)
        if handler is None:
            raise GuardActionError(f"No action handler registered for '{name}'", item)
        return handler(guard, item, ctx)

    def _default_action_handler(
        self, guard: Guard, item: MenuItem, ctx: ActorContext
    ) -> Optional[GuardAction]:
        """Instrumentation: forward an analytics event when the action asks for it."""
        if guard.action.metadata.get("analytics") and self.analytics is not None:
            self.analytics.track_event(
                GUARD_CUSTOM_EVENT,
                item,
                {"guard_id": guard.id, "guard_name": guard.name, **guard.action.metadata},
            )
        return None

    def _custom_outcome(self, guard: Guard, outcome: Any, item: MenuItem) -> GuardAction:
        if outcome is None:
            return guard.action
        if not isinstance(outcome, GuardAction):
            raise GuardActionError(
                f"Action handler for guard '{guard.id}' returned {type(outcome).__name__}, "
                "expected GuardAction or None",
                item,
            )
        return outcome if outcome.is_terminal else guard.action

    def _apply_action(
        self,
        item: MenuItem,
        ctx: ActorContext,
        guard: Guard,
        action: GuardAction,
        evaluations: List[GuardEvaluation],
    ) -> Optional[GuardResult]:
        """Record a matched guard's action; return a result when it is terminal."""
        evaluation = GuardEvaluation(guard, True, action)
        evaluations.append(evaluation)

        if action.type is GuardActionType.ALLOW:
            return None
        elif action.type is GuardActionType.LOG:
            logger.info(
                "Guard '%s' matched %s for %s: %s",
                guard.name,
                item.path,
                ctx.fingerprint,
                action.value or "",
            )
            self._record(item, ctx, action, AuditResult.LOGGED, guard)
            return None
        elif action.type is GuardActionType.CUSTOM:
            return None
        elif action.type is GuardActionType.DENY:
            self._record(item, ctx, action, AuditResult.DENIED, guard)
            return GuardResult(
                item=item,
                allowed=False,
                reason="deny",
                guard=guard,
                evaluation=evaluation,
                all_evaluations=evaluations,
            )
        elif action.type is GuardActionType.REDIRECT:
            self._record(item, ctx, action, AuditResult.REDIRECT, guard)
            return GuardResult(
                item=item,
                allowed=False,
                reason="redirect",
                redirect_to=action.value,
                guard=guard,
                evaluation=evaluation,
                all_evaluations=evaluations,
            )
        else:
            raise ValueError(f"Unhandled guard action type: {action.type!r}")

    def _allow(
        self, item: MenuItem, ctx: ActorContext, evaluations: List[GuardEvaluation]
    ) -> GuardResult:
        self._record(item, ctx, ALLOW_ACTION, AuditResult.ALLOWED)
        return GuardResult(item=item, allowed=True, all_evaluations=evaluations)

    def _handle_failure(
        self,
        item: MenuItem,
        ctx: ActorContext,
        guard: Guard,
        error: Exception,
        evaluations: List[GuardEvaluation],
    ) -> GuardResult:
        logger.warning("Guard '%s' failed on %s: %s", guard.id, item.path, error)
        self._record(item, ctx, guard.action, AuditResult.ERROR, guard, error=str(error))
        if self.analytics is not None:
            self.analytics.track_error(error, item, {"guard_id": guard.id})

        if self.failure_policy == FAILURE_POLICY_ALLOW:
            return GuardResult(item=item, allowed=True, guard=guard, all_evaluations=evaluations)
        return GuardResult(
            item=item,
            allowed=False,
            reason="error",
            guard=guard,
            all_evaluations=evaluations,
        )

    def _record(
        self,
        item: MenuItem,
        ctx: ActorContext,
        action: GuardAction,
        result: AuditResult,
        guard: Optional[Guard] = None,
        error: Optional[str] = None,
    ) -> None:
        self.audit.record(
            AuditEntry(
                timestamp=self._clock(),
                item=item,
                action=action,
                result=result,
                context=ctx.snapshot(),
                guard_id=guard.id if guard else None,
                guard_name=guard.name if guard else None,
                error=error,
            )
        )

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def get_audit_log(self) -> List[AuditEntry]:
        return self.audit.entries()

    def clear_audit_log(self) -> None:
        self.audit.clear()

    def get_guard_statistics(self) -> Dict[str, Any]:
        return summarize_guards(self.list_guards(), self.audit)

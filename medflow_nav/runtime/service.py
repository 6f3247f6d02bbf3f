"""
service.py - NavigationSession resolver

This module provides the per-session object that wires the item registry,
guard pipeline, state manager and analytics manager together. Each actor
session owns one NavigationSession; there is no process-wide instance.

Resolution pipeline:
    cache lookup -> registry catalog -> structural validation ->
    role/permission filter -> visibility filter -> guards (per item) ->
    sort by priority -> dedupe by path -> cache

Usage:
    from medflow_nav.runtime.service import create_navigation_session

    session = create_navigation_session(ctx)
    items = session.resolve_menu()
    session.record_interaction(items[0], InteractionAction.CLICK)
    snapshot = session.get_debug_snapshot()
    session.close()
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from medflow_nav.config.navigation_config import (
    NavigationConfig,
    get_guard_definitions,
    load_navigation_config,
)

from .analytics import AnalyticsSink, AuditTrail, NavigationAnalyticsManager
from .conditions import PredicateRegistry
from .errors import ItemValidationError
from .guards import GuardPipeline
from .nav_utils import (
    filter_by_permission,
    filter_by_role,
    format_item,
    sort_by_priority,
    validate_item,
)
from .registry import NavigationItemRegistry
from .state import NavigationStateManager
from .storage import InMemoryKeyValueStore, KeyValueStore
from .types import (
    ActorContext,
    GuardResult,
    InteractionAction,
    MenuItem,
    analytics_event_to_dict,
    now_ms,
)

logger = logging.getLogger(__name__)

RESOLVE_MARK = "navigation_resolve"


class NavigationSession:
    """Resolver and state owner for one actor session.

    Args:
        context: Actor context the session starts with.
        config: Resolved config. Defaults to ``load_navigation_config()``.
        predicates: Named predicates shared by registry and guards.
        registry: Item catalog. Defaults to the built-in catalog.
        store: Key-value store for persisted state.
        sink: External analytics sink.
        clock: Epoch-millisecond clock.
        perf_clock: Monotonic seconds clock for performance marks.
    """

    def __init__(
        self,
        context: ActorContext,
        config: Optional[NavigationConfig] = None,
        predicates: Optional[PredicateRegistry] = None,
        registry: Optional[NavigationItemRegistry] = None,
        store: Optional[KeyValueStore] = None,
        sink: Optional[AnalyticsSink] = None,
        clock: Callable[[], float] = now_ms,
        perf_clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or load_navigation_config()
        self.context = context
        self.predicates = predicates or PredicateRegistry()
        self.registry = registry or NavigationItemRegistry(self.predicates)

        self.audit = AuditTrail(self.config.max_audit_entries)
        self.analytics = NavigationAnalyticsManager(
            context,
            max_events=self.config.max_events,
            sink=sink,
            audit=self.audit,
            clock=clock,
            perf_clock=perf_clock,
            debug_logging=self.config.enable_debug_logging,
        )
        self.guards = GuardPipeline(
            predicates=self.predicates,
            audit=self.audit,
            analytics=self.analytics if self.config.enable_analytics else None,
            failure_policy=self.config.guard_failure_policy,
            sign_in_path=self.config.sign_in_path,
            clock=clock,
        )
        self.guards.load_guard_definitions(get_guard_definitions())
        self.state = NavigationStateManager(self.config, store=store, clock=clock)
        self._closed = False

    # -------------------------------------------------------------------------
    # Context
    # -------------------------------------------------------------------------

    def update_context(self, context: ActorContext) -> None:
        """Switch the session to a new actor context (e.g. after role change)."""
        self.context = context
        self.analytics.update_context(context)

    def _use_context(self, ctx: Optional[ActorContext]) -> ActorContext:
        if ctx is not None and ctx != self.context:
            self.update_context(ctx)
        return self.context

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve_menu(self, ctx: Optional[ActorContext] = None) -> List[MenuItem]:
        """Filtered, guarded, sorted and cached menu for ``ctx``.

        Args:
            ctx: Actor context; defaults to the session context.

        Returns:
            Items in ascending priority, unique by path.
        """
        ctx = self._use_context(ctx)
        self._start_mark()

        cached = self._cached(ctx)
        if cached is not None:
            self._end_mark(ctx, cached=True)
            return cached

        allowed = [
            item
            for item in self._candidates(ctx)
            if self._accept(item, self._evaluate(item, ctx))
        ]
        return self._finish(allowed, ctx)

    async def resolve_menu_async(self, ctx: Optional[ActorContext] = None) -> List[MenuItem]:
        """Like ``resolve_menu``, awaiting asynchronous guard action handlers."""
        ctx = self._use_context(ctx)
        self._start_mark()

        cached = self._cached(ctx)
        if cached is not None:
            self._end_mark(ctx, cached=True)
            return cached

        allowed: List[MenuItem] = []
        for item in self._candidates(ctx):
            if self.config.enable_guards:
                result = await self.guards.aevaluate_item(item, ctx)
            else:
                result = None
            if self._accept(item, result):
                allowed.append(item)
        return self._finish(allowed, ctx)

    def _cached(self, ctx: ActorContext) -> Optional[List[MenuItem]]:
        if not self.config.enable_caching:
            return None
        cached = self.state.get_items(ctx)
        if self.config.enable_analytics:
            self.analytics.track_cache_lookup(cached is not None, ctx.fingerprint)
        if cached is not None:
            self.state.use_items(cached)
        return cached

    def _candidates(self, ctx: ActorContext) -> List[MenuItem]:
        items = self._validated(self.registry.get_all_items(ctx))
        items = filter_by_role(filter_by_permission(items, ctx.permissions), ctx.roles)
        return self.registry.filter_by_visibility(items, ctx)

    def _validated(self, items: Iterable[MenuItem]) -> List[MenuItem]:
        valid: List[MenuItem] = []
        for item in items:
            errors = validate_item(item)
            if not errors:
                valid.append(item)
                continue

            error = ItemValidationError(errors, item)
            logger.warning("Excluding navigation item %r: %s", getattr(item, "path", None), error)
            if self.config.enable_analytics:
                self.analytics.track_error(error, item, {"errors": errors})
        return valid

    def _evaluate(self, item: MenuItem, ctx: ActorContext) -> Optional[GuardResult]:
        if not self.config.enable_guards:
            return None
        return self.guards.evaluate_item(item, ctx)

    def _accept(self, item: MenuItem, result: Optional[GuardResult]) -> bool:
        if result is None or result.allowed:
            return True
        if result.reason == "redirect":
            logger.info("Navigation item %s redirects to %s", item.path, result.redirect_to)
        return False

    def _finish(self, allowed: List[MenuItem], ctx: ActorContext) -> List[MenuItem]:
        items: List[MenuItem] = []
        seen = set()
        for item in sort_by_priority(allowed):
            if item.path in seen:
                logger.debug("Dropping duplicate navigation item %s", item.path)
                continue
            seen.add(item.path)
            items.append(item)

        self.state.set_items(items, ctx)
        self._end_mark(ctx, cached=False, item_count=len(items))
        return items

    def _start_mark(self) -> None:
        if self.config.enable_performance_monitoring and self.config.enable_analytics:
            self.analytics.start_performance_mark(RESOLVE_MARK)

    def _end_mark(self, ctx: ActorContext, **metadata: Any) -> None:
        if self.config.enable_performance_monitoring and self.config.enable_analytics:
            self.analytics.end_performance_mark(
                RESOLVE_MARK, {"fingerprint": ctx.fingerprint, **metadata}
            )

    # -------------------------------------------------------------------------
    # Interaction
    # -------------------------------------------------------------------------

    def record_interaction(
        self,
        item: MenuItem,
        action: InteractionAction = InteractionAction.CLICK,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Feed a user interaction into history and analytics.

        Clicks also make ``item`` the active item. Hovers read their duration
        from ``metadata['duration']``.
        """
        action = InteractionAction(action)
        metadata = dict(metadata or {})

        if self.config.enable_analytics:
            if action is InteractionAction.CLICK:
                self.analytics.track_navigation_click(item, metadata)
            elif action is InteractionAction.HOVER:
                self.analytics.track_navigation_hover(item, float(metadata.get("duration", 0.0)))

        self.state.add_to_history(item, action, metadata)

        if action is InteractionAction.CLICK:
            self.state.set_active_item(item.path)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def get_debug_snapshot(self) -> Dict[str, Any]:
        """Items, analytics, cache and guard statistics for tooling."""
        report = self.analytics.get_analytics_report()
        return {
            "items": [format_item(item, self.context) for item in self.state.items],
            "analytics": {
                "summary": report["summary"],
                "insights": report["insights"],
                "events": [analytics_event_to_dict(e) for e in report["events"]],
            },
            "cache_stats": self.state.get_cache_statistics(),
            "guard_stats": self.guards.get_guard_statistics(),
        }

    def clear_cache(self) -> None:
        self.state.clear_cache()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear down session state: cache, audit trail and event log."""
        if self._closed:
            return
        self.state.clear_cache()
        self.guards.clear_audit_log()
        self.analytics.clear_analytics_data()
        close_store = getattr(self.state.store, "close", None)
        if callable(close_store):
            close_store()
        self._closed = True
        logger.debug("Navigation session closed for %s", self.context.fingerprint)


def create_navigation_session(
    context: ActorContext,
    config: Optional[NavigationConfig] = None,
    store: Optional[KeyValueStore] = None,
    **kwargs: Any,
) -> NavigationSession:
    """Build a session; persistence without an explicit store uses memory."""
    config = config or load_navigation_config()
    if config.enable_persistence and store is None:
        store = InMemoryKeyValueStore()
    return NavigationSession(context, config=config, store=store, **kwargs)

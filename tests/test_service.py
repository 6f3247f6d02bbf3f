"""
Tests for NavigationSession, the end-to-end menu resolver.

These tests verify:
1. Role, permission and visibility filtering of the built-in catalog
2. Structural validation with logged, tracked exclusions
3. Guard evaluation (sync and async) and the enable_guards switch
4. Per-fingerprint caching with TTL
5. Interaction recording, debug snapshot and teardown
"""

import asyncio
import logging

import pytest

from medflow_nav.config.navigation_config import NavigationConfig
from medflow_nav.runtime.conditions import PredicateRegistry
from medflow_nav.runtime.registry import NavigationItemRegistry
from medflow_nav.runtime.service import NavigationSession, create_navigation_session
from medflow_nav.runtime.storage import InMemoryKeyValueStore
from medflow_nav.runtime.types import (
    AuditResult,
    Condition,
    ConditionType,
    Guard,
    GuardAction,
    GuardActionType,
    InteractionAction,
)

USER_PATHS = [
    "/dashboard",
    "/appointments",
    "/patients",
    "/reports",
    "/profile",
    "/framer-websites",
]


def paths(items):
    return [item.path for item in items]


def path_guard(guard_id, path, action, predicates, priority=500):
    """Guard that matches exactly one item path through a named predicate."""
    predicate_name = f"is_{guard_id}"
    predicates.register(predicate_name, lambda ctx, item: item is not None and item.path == path)
    return Guard(
        id=guard_id,
        name=guard_id.replace("_", " ").title(),
        priority=priority,
        condition=Condition(ConditionType.CUSTOM, predicate_name),
        action=action,
    )


class TestResolution:
    """Tests for catalog filtering."""

    def test_regular_user(self, session):
        assert paths(session.resolve_menu()) == USER_PATHS

    def test_admin_sees_analytics_first(self, admin_ctx, nav_config, clock):
        session = NavigationSession(admin_ctx, config=nav_config, clock=clock)
        items = session.resolve_menu()
        assert paths(items) == ["/analytics"] + USER_PATHS

    def test_anonymous_sees_nothing(self, anon_ctx, nav_config, clock):
        session = NavigationSession(anon_ctx, config=nav_config, clock=clock)
        assert session.resolve_menu() == []

    def test_role_restricted_item_excluded(self, user_ctx, nav_config, clock, make_item):
        registry = NavigationItemRegistry(
            extra_items=[make_item("/wards", priority=7, roles=["nurse"])]
        )
        session = NavigationSession(user_ctx, config=nav_config, registry=registry, clock=clock)

        assert "/wards" not in paths(session.resolve_menu())

        nurse = user_ctx.with_updates(roles=("user", "nurse"))
        assert "/wards" in paths(session.resolve_menu(nurse))

    def test_permission_restricted_item(self, user_ctx, nav_config, clock, make_item):
        registry = NavigationItemRegistry(
            extra_items=[make_item("/billing", priority=8, permissions=["billing:read"])]
        )
        session = NavigationSession(user_ctx, config=nav_config, registry=registry, clock=clock)

        assert "/billing" not in paths(session.resolve_menu())

    def test_every_resolved_item_is_accessible(self, admin_ctx, user_ctx, nav_config, clock):
        for ctx in (admin_ctx, user_ctx):
            session = NavigationSession(ctx, config=nav_config, clock=clock)
            for item in session.resolve_menu():
                assert not item.roles or set(item.roles) & set(ctx.roles)
                assert not item.permissions or set(item.permissions) & set(ctx.permissions)

    def test_sorted_and_unique(self, user_ctx, nav_config, clock, make_item):
        registry = NavigationItemRegistry(
            extra_items=[make_item("/dashboard", label="Shadow", priority=10)]
        )
        session = NavigationSession(user_ctx, config=nav_config, registry=registry, clock=clock)

        items = session.resolve_menu()

        assert paths(items) == USER_PATHS
        assert items[0].label == "Dashboard"
        priorities = [item.priority for item in items]
        assert priorities == sorted(priorities)

    def test_invalid_item_excluded_and_reported(self, user_ctx, nav_config, clock, make_item, caplog):
        registry = NavigationItemRegistry(extra_items=[make_item("/broken", priority=9, icon="")])
        session = NavigationSession(user_ctx, config=nav_config, registry=registry, clock=clock)

        with caplog.at_level(logging.WARNING, logger="medflow_nav.runtime.service"):
            items = session.resolve_menu()

        assert "/broken" not in paths(items)
        assert "Excluding navigation item '/broken'" in caplog.text
        errors = session.analytics.get_events_by_type("navigation_error")
        assert len(errors) == 1
        assert errors[0].data["error"]["name"] == "ItemValidationError"
        assert "Invalid or missing icon" in errors[0].data["errors"]


class TestGuardsInResolution:
    """Tests for guard evaluation during resolution."""

    def test_deny_guard_removes_item(self, user_ctx, nav_config, clock):
        predicates = PredicateRegistry()
        session = NavigationSession(user_ctx, config=nav_config, predicates=predicates, clock=clock)
        session.guards.add_guard(
            path_guard("no_reports", "/reports", GuardAction(GuardActionType.DENY), predicates)
        )

        items = session.resolve_menu()

        assert "/reports" not in paths(items)
        denied = [e for e in session.guards.get_audit_log() if e.result is AuditResult.DENIED]
        assert [e.item.path for e in denied] == ["/reports"]
        assert denied[0].guard_id == "no_reports"

    def test_guards_disabled(self, user_ctx, clock):
        predicates = PredicateRegistry()
        config = NavigationConfig(enable_guards=False)
        session = NavigationSession(user_ctx, config=config, predicates=predicates, clock=clock)
        session.guards.add_guard(
            path_guard("no_reports", "/reports", GuardAction(GuardActionType.DENY), predicates)
        )

        assert "/reports" in paths(session.resolve_menu())
        assert session.guards.get_audit_log() == []

    def test_every_allowed_item_audited_once(self, session):
        items = session.resolve_menu()
        allowed = [e for e in session.guards.get_audit_log() if e.result is AuditResult.ALLOWED]
        assert sorted(e.item.path for e in allowed) == sorted(paths(items))

    def test_async_handler(self, user_ctx, nav_config, clock):
        predicates = PredicateRegistry()
        session = NavigationSession(user_ctx, config=nav_config, predicates=predicates, clock=clock)

        async def deny_patients(guard, item, ctx):
            await asyncio.sleep(0)
            return GuardAction(GuardActionType.DENY)

        session.guards.register_action_handler("consent_check", deny_patients)
        session.guards.add_guard(
            path_guard(
                "consent",
                "/patients",
                GuardAction(GuardActionType.CUSTOM, "consent_check"),
                predicates,
            )
        )

        items = asyncio.run(session.resolve_menu_async())

        assert "/patients" not in paths(items)
        assert "/reports" in paths(items)

    def test_async_handler_in_sync_resolution_fails_closed(self, user_ctx, nav_config, clock):
        predicates = PredicateRegistry()
        session = NavigationSession(user_ctx, config=nav_config, predicates=predicates, clock=clock)

        async def allow(guard, item, ctx):
            return None

        session.guards.register_action_handler("consent_check", allow)
        session.guards.add_guard(
            path_guard(
                "consent",
                "/patients",
                GuardAction(GuardActionType.CUSTOM, "consent_check"),
                predicates,
            )
        )

        items = session.resolve_menu()

        assert "/patients" not in paths(items)
        errors = [e for e in session.guards.get_audit_log() if e.result is AuditResult.ERROR]
        assert len(errors) == 1
        assert "asynchronous" in errors[0].error


class TestCaching:
    """Tests for the per-fingerprint menu cache."""

    def test_second_resolution_hits_cache(self, session):
        first = session.resolve_menu()
        audit_size = len(session.guards.get_audit_log())

        second = session.resolve_menu()

        assert second == first
        assert len(session.guards.get_audit_log()) == audit_size
        lookups = session.analytics.get_events_by_type("navigation_cache")
        assert [e.data["hit"] for e in lookups] == [False, True]

    def test_ttl_expiry(self, session, clock):
        session.resolve_menu()
        audit_size = len(session.guards.get_audit_log())

        clock.advance(299_999)
        session.resolve_menu()
        assert len(session.guards.get_audit_log()) == audit_size

        clock.advance(1)
        session.resolve_menu()
        assert len(session.guards.get_audit_log()) > audit_size

    def test_clear_cache(self, session):
        session.resolve_menu()
        session.clear_cache()
        session.resolve_menu()

        lookups = session.analytics.get_events_by_type("navigation_cache")
        assert [e.data["hit"] for e in lookups] == [False, False]

    def test_contexts_cached_separately(self, session, admin_ctx):
        user_items = session.resolve_menu()
        admin_items = session.resolve_menu(admin_ctx)

        assert "/analytics" not in paths(user_items)
        assert "/analytics" in paths(admin_items)
        assert session.state.get_cache_statistics()["total"] == 2

    def test_cache_hit_restores_current_items(self, session, admin_ctx, user_ctx):
        session.resolve_menu(admin_ctx)
        session.resolve_menu(user_ctx)

        items = session.resolve_menu(admin_ctx)
        analytics_item = next(item for item in items if item.path == "/analytics")
        session.record_interaction(analytics_item)

        assert session.analytics.get_events_by_type("navigation_cache")[-1].data["hit"] is True
        assert paths(session.state.items) == ["/analytics"] + USER_PATHS
        assert [c.label for c in session.state.get_breadcrumb()] == ["Dashboard", "Analytics"]
        assert [i["path"] for i in session.get_debug_snapshot()["items"]] == ["/analytics"] + USER_PATHS

    def test_async_cache_hit_restores_current_items(self, session, admin_ctx, user_ctx):
        asyncio.run(session.resolve_menu_async(admin_ctx))
        asyncio.run(session.resolve_menu_async(user_ctx))
        asyncio.run(session.resolve_menu_async(admin_ctx))

        assert paths(session.state.items)[0] == "/analytics"

    def test_performance_mark_recorded(self, session, perf_clock):
        session.resolve_menu()

        perf = session.analytics.get_events_by_type("navigation_performance")
        assert len(perf) == 1
        assert perf[0].data["operation"] == "navigation_resolve"
        assert perf[0].data["item_count"] == len(USER_PATHS)


class TestInteractions:
    """Tests for record_interaction."""

    def test_click_updates_history_and_breadcrumb(self, session):
        items = session.resolve_menu()
        patients = next(item for item in items if item.path == "/patients")

        session.record_interaction(patients, InteractionAction.CLICK)

        assert session.state.active_item == "/patients"
        assert [c.label for c in session.state.get_breadcrumb()] == ["Dashboard", "Pacienți"]
        assert session.state.get_metrics().total_clicks == 1
        assert len(session.analytics.get_events_by_type("navigation_click")) == 1

    def test_hover_records_duration(self, session, make_item):
        session.record_interaction(make_item("/patients"), InteractionAction.HOVER, {"duration": 42})

        hover = session.analytics.get_events_by_type("navigation_hover")[0]
        assert hover.data["duration"] == 42.0
        assert session.state.get_history()[0].action is InteractionAction.HOVER
        assert session.state.active_item is None

    def test_analytics_disabled(self, user_ctx, clock, make_item):
        session = NavigationSession(user_ctx, config=NavigationConfig(enable_analytics=False), clock=clock)
        session.resolve_menu()
        session.record_interaction(make_item("/patients"))

        assert session.analytics.events == []
        assert len(session.state.get_history()) == 1


class TestIntrospection:
    def test_debug_snapshot(self, session):
        items = session.resolve_menu()
        session.record_interaction(items[0])

        snapshot = session.get_debug_snapshot()

        assert set(snapshot) == {"items", "analytics", "cache_stats", "guard_stats"}
        assert [i["path"] for i in snapshot["items"]] == USER_PATHS
        assert snapshot["analytics"]["summary"]["click_events"] == 1
        assert snapshot["cache_stats"]["valid"] == 1
        assert snapshot["guard_stats"]["total_guards"] == 3

    def test_close_is_idempotent(self, user_ctx, nav_config, clock):
        session = NavigationSession(user_ctx, config=nav_config, clock=clock)
        session.resolve_menu()

        session.close()
        session.close()

        assert session.closed
        assert session.guards.get_audit_log() == []
        assert session.analytics.events == []


class TestPersistence:
    def test_factory_provides_memory_store(self, user_ctx, clock):
        config = NavigationConfig(enable_persistence=True)
        session = create_navigation_session(user_ctx, config=config, clock=clock)

        assert isinstance(session.state.store, InMemoryKeyValueStore)

    def test_state_survives_new_session(self, user_ctx, clock):
        config = NavigationConfig(enable_persistence=True)
        store = InMemoryKeyValueStore()
        first = create_navigation_session(user_ctx, config=config, store=store, clock=clock)
        items = first.resolve_menu()
        first.record_interaction(items[2])

        second = create_navigation_session(user_ctx, config=config, store=store, clock=clock)

        assert [h.item.path for h in second.state.get_history()] == ["/patients"]
        assert second.state.active_item == "/patients"

    def test_persistence_off_by_default(self, session):
        assert session.state.store is None


@pytest.mark.parametrize("enabled", [True, False])
def test_guard_statistics_available(user_ctx, clock, enabled):
    config = NavigationConfig(enable_guards=enabled)
    session = NavigationSession(user_ctx, config=config, clock=clock)
    session.resolve_menu()
    stats = session.guards.get_guard_statistics()
    assert stats["total_guards"] == 3
    assert (stats["total_audit_entries"] > 0) is enabled

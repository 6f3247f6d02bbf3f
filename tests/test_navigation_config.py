"""
Tests for navigation configuration loading.

These tests verify:
1. navigation.yaml defaults are loaded
2. MEDFLOW_NAV_* environment variables override YAML values
3. Explicit overrides win over both
4. Buffer sizes and the failure policy are sanitized
5. Extra guard definitions are read from the config file
"""

import logging

import pytest

from medflow_nav.config import navigation_config
from medflow_nav.config.navigation_config import (
    BUFFER_MAX,
    BUFFER_MIN,
    get_environment,
    get_guard_definitions,
    load_navigation_config,
)
from medflow_nav.runtime.service import NavigationSession
from medflow_nav.runtime.types import AuditResult


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the loader at a temporary navigation.yaml."""
    path = tmp_path / "navigation.yaml"
    monkeypatch.setattr(navigation_config, "_CONFIG_PATH", path)
    navigation_config.reset_config()
    return path


class TestDefaults:
    def test_yaml_defaults(self):
        config = load_navigation_config()

        assert config.enable_caching is True
        assert config.cache_ttl_ms == 300_000
        assert config.max_history_items == 100
        assert config.guard_failure_policy == "deny"
        assert config.persistence_key == "medflow_navigation_state"

    def test_missing_file_uses_dataclass_defaults(self, config_file):
        assert not config_file.exists()
        config = load_navigation_config()
        assert config.max_events == 1000
        assert get_guard_definitions() == []

    def test_yaml_values_used(self, config_file):
        config_file.write_text("defaults:\n  cache_ttl_ms: 60000\n  enable_analytics: false\n")

        config = load_navigation_config()

        assert config.cache_ttl_ms == 60000
        assert config.enable_analytics is False
        assert config.max_events == 1000

    def test_config_is_cached_until_reset(self, config_file):
        config_file.write_text("defaults:\n  max_events: 10\n")
        assert load_navigation_config().max_events == 10

        config_file.write_text("defaults:\n  max_events: 20\n")
        assert load_navigation_config().max_events == 10

        navigation_config.reset_config()
        assert load_navigation_config().max_events == 20


class TestEnvironmentOverrides:
    """Tests for MEDFLOW_NAV_* variables."""

    def test_int_and_bool_coercion(self, monkeypatch):
        monkeypatch.setenv("MEDFLOW_NAV_MAX_HISTORY_ITEMS", "25")
        monkeypatch.setenv("MEDFLOW_NAV_ENABLE_CACHING", "false")
        monkeypatch.setenv("MEDFLOW_NAV_ENABLE_PERSISTENCE", "yes")
        monkeypatch.setenv("MEDFLOW_NAV_SIGN_IN_PATH", "/login")

        config = load_navigation_config()

        assert config.max_history_items == 25
        assert config.enable_caching is False
        assert config.enable_persistence is True
        assert config.sign_in_path == "/login"

    def test_invalid_value_warns_and_keeps_yaml(self, monkeypatch, caplog):
        monkeypatch.setenv("MEDFLOW_NAV_MAX_EVENTS", "lots")

        with caplog.at_level(logging.WARNING):
            config = load_navigation_config()

        assert config.max_events == 1000
        assert "MEDFLOW_NAV_MAX_EVENTS" in caplog.text

    def test_empty_value_ignored(self, monkeypatch):
        monkeypatch.setenv("MEDFLOW_NAV_CACHE_VERSION", "")
        assert load_navigation_config().cache_version == "1.0"

    def test_explicit_override_wins(self, monkeypatch):
        monkeypatch.setenv("MEDFLOW_NAV_CACHE_TTL_MS", "1000")
        assert load_navigation_config(cache_ttl_ms=5).cache_ttl_ms == 5

    def test_unknown_override_rejected(self):
        with pytest.raises(TypeError, match="cache_size"):
            load_navigation_config(cache_size=3)


class TestSanitizing:
    def test_buffer_sizes_clamped(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = load_navigation_config(max_history_items=0, max_events=BUFFER_MAX + 1)

        assert config.max_history_items == BUFFER_MIN
        assert config.max_events == BUFFER_MAX
        assert "Clamping" in caplog.text

    def test_invalid_failure_policy(self, monkeypatch, caplog):
        monkeypatch.setenv("MEDFLOW_NAV_GUARD_FAILURE_POLICY", "maybe")

        with caplog.at_level(logging.WARNING):
            config = load_navigation_config()

        assert config.guard_failure_policy == "deny"
        assert "Falling back to 'deny'" in caplog.text

    def test_failure_policy_case_insensitive(self):
        assert load_navigation_config(guard_failure_policy="ALLOW").guard_failure_policy == "allow"


class TestEnvironment:
    def test_defaults(self):
        env = get_environment()
        assert env.name == "production"
        assert env.version == "1.0.0"

    def test_from_variables(self, monkeypatch):
        monkeypatch.setenv("MEDFLOW_ENV", "Development")
        monkeypatch.setenv("MEDFLOW_VERSION", "2.3.0")

        env = get_environment()

        assert env.is_development
        assert env.version == "2.3.0"

    def test_unknown_name_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("MEDFLOW_ENV", "staging")
        with caplog.at_level(logging.WARNING):
            assert get_environment().name == "production"
        assert "staging" in caplog.text


class TestGuardDefinitions:
    """Tests for guards declared in navigation.yaml."""

    YAML = """
guards:
  - id: maintenance_redirect
    name: Maintenance Redirect
    priority: 950
    condition:
      type: feature
      value: [maintenance]
      operator: in
    action:
      type: redirect
      value: /maintenance
"""

    def test_definitions_loaded(self, config_file):
        config_file.write_text(self.YAML)

        definitions = get_guard_definitions()

        assert [d["id"] for d in definitions] == ["maintenance_redirect"]

    def test_session_registers_configured_guards(self, config_file, user_ctx, clock):
        config_file.write_text(self.YAML)
        ctx = user_ctx.with_updates(features=("maintenance",))

        session = NavigationSession(ctx, config=load_navigation_config(), clock=clock)

        assert [g.id for g in session.guards.list_guards()] == [
            "auth_required",
            "maintenance_redirect",
            "admin_required",
            "feature_enabled",
        ]
        assert session.resolve_menu() == []
        redirects = {e.guard_id for e in session.guards.get_audit_log() if e.result is AuditResult.REDIRECT}
        assert redirects == {"maintenance_redirect"}

"""
Test fixtures and utilities for navigation engine tests.

This module provides reusable fixtures for testing the navigation engine,
including a controllable clock, actor contexts, item factories, recording
analytics sinks and ready-to-use sessions.
"""

# Filter gherkin deprecation warning before any imports trigger it
import warnings

warnings.filterwarnings(
    "ignore",
    message="'maxsplit' is passed as positional argument",
    category=DeprecationWarning,
)

import os
import sys
from pathlib import Path as _Path
from typing import Any, Dict, List, Tuple

import pytest

# ============================================================================
# BDD Step Definitions (for pytest-bdd)
# ============================================================================
# All step definitions live in tests/bdd/steps/navigation_steps.py. They are
# imported here so pytest-bdd can discover them from tests/test_navigation_bdd.py.
_tests_dir = _Path(__file__).parent
_repo_root = _tests_dir.parent
if str(_tests_dir) not in sys.path:
    sys.path.insert(0, str(_tests_dir))
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from bdd.steps.navigation_steps import *  # noqa: E402, F401, F403

from medflow_nav.config import navigation_config  # noqa: E402
from medflow_nav.config.navigation_config import NavigationConfig  # noqa: E402
from medflow_nav.runtime.registry import create_item  # noqa: E402
from medflow_nav.runtime.service import NavigationSession  # noqa: E402
from medflow_nav.runtime.types import ActorContext, Environment  # noqa: E402


# ============================================================================
# Clocks
# ============================================================================


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakePerfClock:
    """Monotonic seconds clock for performance marks."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def perf_clock():
    return FakePerfClock()


# ============================================================================
# Configuration Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_navigation_config(monkeypatch):
    """Clear MEDFLOW_* env vars and the cached YAML around every test."""
    for key in list(os.environ):
        if key.startswith("MEDFLOW_"):
            monkeypatch.delenv(key, raising=False)
    navigation_config.reset_config()
    yield
    navigation_config.reset_config()


@pytest.fixture
def nav_config():
    """Default configuration, independent of navigation.yaml."""
    return NavigationConfig()


# ============================================================================
# Actor Contexts
# ============================================================================


@pytest.fixture
def anon_ctx():
    return ActorContext(environment=Environment(name="test"))


@pytest.fixture
def user_ctx():
    return ActorContext(
        identity="user-1",
        roles=("user",),
        permissions=("patients:read",),
        environment=Environment(name="test"),
    )


@pytest.fixture
def admin_ctx():
    return ActorContext(
        identity="admin-1",
        roles=("admin", "user"),
        permissions=("patients:read", "reports:write"),
        environment=Environment(name="test"),
    )


# ============================================================================
# Items and Sinks
# ============================================================================


@pytest.fixture
def make_item():
    """Factory for valid menu items with overridable fields."""

    def _make(path: str = "/patients", label: str = None, priority: float = 3, **kwargs: Any):
        return create_item(
            path=path,
            label=label or path.strip("/").title() or "Home",
            icon=kwargs.pop("icon", "circle"),
            description=kwargs.pop("description", f"Go to {path}"),
            priority=priority,
            **kwargs,
        )

    return _make


class RecordingSink:
    """Analytics sink that keeps every call."""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def send(self, event_name: str, properties: Dict[str, Any]) -> None:
        self.calls.append((event_name, properties))


class FailingSink:
    def send(self, event_name: str, properties: Dict[str, Any]) -> None:
        raise ConnectionError("analytics endpoint unreachable")


@pytest.fixture
def sink():
    return RecordingSink()


# ============================================================================
# Sessions
# ============================================================================


@pytest.fixture
def session(user_ctx, nav_config, clock, perf_clock):
    """Session for a regular user with default configuration."""
    s = NavigationSession(user_ctx, config=nav_config, clock=clock, perf_clock=perf_clock)
    yield s
    s.close()


# ============================================================================
# BDD Context Fixture
# ============================================================================


@pytest.fixture
def bdd_context():
    """
    Shared context for BDD steps.
    Stores the session under test and the most recently resolved menu.
    """
    context: Dict[str, Any] = {"session": None, "predicates": None, "items": []}
    yield context

    if context["session"] is not None:
        context["session"].close()

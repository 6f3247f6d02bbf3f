"""
state.py - Per-session navigation cache, history and derived usage metrics.

The state manager caches the resolved item list per actor fingerprint,
records a bounded interaction history, keeps the active item and its
breadcrumb, and derives click metrics and user-behavior summaries.

Cache semantics:
    - Entries are keyed by ActorContext.fingerprint and replaced wholesale.
    - A read is a hit iff ``now - entry.timestamp < entry.ttl`` and the entry
      version matches the configured cache version; otherwise it is a miss.

Persistence:
    When enabled, every mutating call writes a JSON snapshot (history,
    breadcrumb, expanded items, active item, metrics, behavior, performance)
    to the key-value store. A prior snapshot is merged into defaults on
    construction. Store failures are logged as warnings; the in-memory state
    stays authoritative.

Usage:
    from medflow_nav.runtime.state import NavigationStateManager

    state = NavigationStateManager(config, store=InMemoryKeyValueStore())
    cached = state.get_items(ctx)
    if cached is None:
        state.set_items(resolved, ctx)
    state.add_to_history(item, InteractionAction.CLICK)
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, replace
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Set

from medflow_nav.config.navigation_config import NavigationConfig

from .errors import NavigationCacheError
from .storage import KeyValueStore
from .types import (
    ActorContext,
    Breadcrumb,
    CacheEntry,
    HistoryItem,
    InteractionAction,
    MenuItem,
    NavigationMetrics,
    PerformanceMetrics,
    UserBehavior,
    breadcrumb_from_dict,
    breadcrumb_to_dict,
    history_item_from_dict,
    history_item_to_dict,
    hour_of_day,
    navigation_metrics_from_dict,
    now_ms,
    performance_metrics_from_dict,
    user_behavior_from_dict,
)

logger = logging.getLogger(__name__)

PREFERRED_ITEMS = 5
AVOIDED_ITEMS = 3


class NavigationStateManager:
    """Cache, history, breadcrumb and metrics for one navigation session.

    Args:
        config: Resolved navigation config (TTL, version, buffer sizes,
            persistence key, breadcrumb root).
        store: Key-value store for persistence. Ignored unless
            ``config.enable_persistence`` is set.
        clock: Epoch-millisecond clock (injectable for tests).
    """

    def __init__(
        self,
        config: Optional[NavigationConfig] = None,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.config = config or NavigationConfig()
        self.store = store
        self._clock = clock
        self._session_start = clock()

        self._cache: Dict[str, CacheEntry] = {}
        self._items: List[MenuItem] = []
        self._init_state()

        if self._persistence_enabled:
            self._load_persisted_state()

    def _init_state(self) -> None:
        self._history: Deque[HistoryItem] = deque(maxlen=self.config.max_history_items)
        self._breadcrumb: List[Breadcrumb] = []
        self._expanded: Set[str] = set()
        self._active_item: Optional[str] = None
        self._metrics = NavigationMetrics()
        self._behavior = UserBehavior()
        self._performance = PerformanceMetrics()

    @property
    def _persistence_enabled(self) -> bool:
        return self.config.enable_persistence and self.store is not None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "version": self.config.cache_version,
            "history": [history_item_to_dict(h) for h in self._history],
            "breadcrumb": [breadcrumb_to_dict(b) for b in self._breadcrumb],
            "expanded_items": sorted(self._expanded),
            "active_item": self._active_item,
            "metrics": asdict(self._metrics),
            "user_behavior": asdict(self._behavior),
            "performance": asdict(self._performance),
        }

    def persist(self) -> None:
        """Write the current snapshot to the store.

        Raises:
            NavigationCacheError: The snapshot could not be serialized or saved.
        """
        if not self._persistence_enabled:
            return

        key = self.config.persistence_key
        try:
            payload = json.dumps(self._snapshot(), ensure_ascii=False).encode("utf-8")
            self.store.save(key, payload)
        except Exception as e:
            raise NavigationCacheError(
                f"Failed to persist navigation state under '{key}': {e}",
                cache_key=key,
                context={"operation": "save"},
            ) from e

    def _save_persisted_state(self) -> None:
        try:
            self.persist()
        except NavigationCacheError as e:
            logger.warning("%s", e)

    def _load_persisted_state(self) -> None:
        try:
            raw = self.store.load(self.config.persistence_key)
            if raw is None:
                return
            data = json.loads(raw.decode("utf-8"))

            history = [history_item_from_dict(h) for h in data.get("history") or []]
            breadcrumb = [breadcrumb_from_dict(b) for b in data.get("breadcrumb") or []]
            metrics = navigation_metrics_from_dict(data.get("metrics"))
            behavior = user_behavior_from_dict(data.get("user_behavior"))
            performance = performance_metrics_from_dict(data.get("performance"))
        except Exception as e:
            logger.warning(
                "Failed to load persisted navigation state '%s': %s",
                self.config.persistence_key,
                e,
            )
            return

        self._history.extend(history)
        self._breadcrumb = breadcrumb
        self._expanded = set(data.get("expanded_items") or [])
        self._active_item = data.get("active_item")
        self._metrics = metrics
        self._behavior = behavior
        self._performance = performance
        logger.debug(
            "Restored navigation state '%s' (%d history items)",
            self.config.persistence_key,
            len(self._history),
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def set_items(self, items: Sequence[MenuItem], ctx: ActorContext) -> CacheEntry:
        """Store the resolved items for ``ctx`` and make them the current items."""
        self._items = list(items)
        entry = CacheEntry(
            items=tuple(items),
            timestamp=self._clock(),
            ttl=self.config.cache_ttl_ms,
            version=self.config.cache_version,
            metadata={"identity": ctx.identity, "roles": sorted(ctx.roles)},
        )
        if self.config.enable_caching:
            self._cache[ctx.fingerprint] = entry
        self._save_persisted_state()
        return entry

    def get_items(self, ctx: ActorContext) -> Optional[List[MenuItem]]:
        """Cached items for ``ctx``, or None on a miss."""
        entry = self._cache.get(ctx.fingerprint)
        if entry is None:
            logger.debug("Navigation cache miss for %s", ctx.fingerprint)
            return None

        if entry.version != self.config.cache_version:
            logger.debug(
                "Navigation cache version mismatch for %s (%s != %s)",
                ctx.fingerprint,
                entry.version,
                self.config.cache_version,
            )
            return None

        if not entry.is_valid(self._clock()):
            logger.debug("Navigation cache entry expired for %s", ctx.fingerprint)
            return None

        logger.debug("Navigation cache hit for %s", ctx.fingerprint)
        return list(entry.items)

    def use_items(self, items: Sequence[MenuItem]) -> None:
        """Make ``items`` the current items without touching the cache (cache hits)."""
        self._items = list(items)

    @property
    def items(self) -> List[MenuItem]:
        """Most recently resolved items (used to resolve breadcrumbs)."""
        return list(self._items)

    def clear_cache(self) -> None:
        self._cache.clear()
        self._save_persisted_state()

    def clear_expired_cache(self) -> int:
        """Drop entries whose age is at least their TTL.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if entry.age(now) >= entry.ttl]
        for key in expired:
            del self._cache[key]
        if expired:
            self._save_persisted_state()
        return len(expired)

    def get_cache_statistics(self) -> Dict[str, Any]:
        now = self._clock()
        valid = sum(1 for entry in self._cache.values() if entry.is_valid(now))
        total = len(self._cache)
        return {
            "total": total,
            "valid": valid,
            "expired": total - valid,
            "hit_rate": valid / total * 100.0 if total else 0.0,
        }

    # -------------------------------------------------------------------------
    # History and derived metrics
    # -------------------------------------------------------------------------

    def add_to_history(
        self,
        item: MenuItem,
        action: InteractionAction = InteractionAction.CLICK,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> HistoryItem:
        """Append an interaction; the oldest entry is evicted at capacity."""
        entry = HistoryItem(
            item=item,
            timestamp=self._clock(),
            action=InteractionAction(action),
            metadata=dict(metadata or {}),
        )
        self._history.append(entry)

        if entry.action is InteractionAction.CLICK:
            self._update_click_metrics(entry)

        self._save_persisted_state()
        return entry

    def _update_click_metrics(self, entry: HistoryItem) -> None:
        clicks = [h for h in self._history if h.action is InteractionAction.CLICK]

        counts: Dict[str, int] = {}
        for h in clicks:
            counts[h.item.path] = counts.get(h.item.path, 0) + 1
        ranked = [path for path, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)]

        average = self._metrics.average_time_between_clicks
        if len(clicks) > 1:
            average = (clicks[-1].timestamp - clicks[0].timestamp) / (len(clicks) - 1)

        self._metrics = replace(
            self._metrics,
            total_clicks=self._metrics.total_clicks + 1,
            unique_items_clicked=len(counts),
            average_time_between_clicks=average,
            most_clicked_item=ranked[0] if ranked else None,
            least_clicked_item=ranked[-1] if ranked else None,
            session_duration=entry.timestamp - self._session_start,
        )

        slot = f"{hour_of_day(entry.timestamp)}:00"
        usage = dict(self._behavior.time_of_day_usage)
        usage[slot] = usage.get(slot, 0) + 1
        self._behavior = replace(
            self._behavior,
            preferred_items=ranked[:PREFERRED_ITEMS],
            avoided_items=ranked[-AVOIDED_ITEMS:],
            time_of_day_usage=usage,
        )

    def get_history(self) -> List[HistoryItem]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        self._save_persisted_state()

    def get_metrics(self) -> NavigationMetrics:
        return replace(self._metrics)

    def get_user_behavior(self) -> UserBehavior:
        return replace(self._behavior, time_of_day_usage=dict(self._behavior.time_of_day_usage))

    def get_performance_metrics(self) -> PerformanceMetrics:
        return replace(self._performance)

    def update_performance_metrics(self, **changes: float) -> PerformanceMetrics:
        self._performance = replace(self._performance, **changes)
        self._save_persisted_state()
        return self._performance

    # -------------------------------------------------------------------------
    # Active item, breadcrumb, expansion
    # -------------------------------------------------------------------------

    @property
    def active_item(self) -> Optional[str]:
        return self._active_item

    def set_active_item(self, path: str) -> None:
        """Mark ``path`` active and rebuild the two-level breadcrumb.

        The breadcrumb is left unchanged when ``path`` is not among the
        current items or breadcrumbs are disabled.
        """
        self._active_item = path

        active = next((item for item in self._items if item.path == path), None)
        if active is not None and self.config.enable_breadcrumbs:
            root_path = self.config.breadcrumb_root_path
            self._breadcrumb = [
                Breadcrumb(
                    label=self.config.breadcrumb_root_label,
                    path=root_path,
                    is_active=path == root_path,
                ),
                Breadcrumb(label=active.label, icon=active.icon, is_active=True),
            ]

        self._save_persisted_state()

    def get_breadcrumb(self) -> List[Breadcrumb]:
        return list(self._breadcrumb)

    def toggle_expanded_item(self, path: str) -> bool:
        """Flip the expanded flag of ``path``; returns the new state."""
        if path in self._expanded:
            self._expanded.discard(path)
        else:
            self._expanded.add(path)
        self._save_persisted_state()
        return path in self._expanded

    def is_item_expanded(self, path: str) -> bool:
        return path in self._expanded

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset_state(self) -> None:
        """Discard history, breadcrumb, metrics, cache and current items."""
        self._init_state()
        self._items = []
        self._cache.clear()
        self._session_start = self._clock()
        self._save_persisted_state()

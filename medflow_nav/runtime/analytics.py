"""
analytics.py - Navigation event log, guard audit trail and insights.

The analytics manager keeps a bounded log of navigation events (clicks,
hovers, visibility changes, errors, performance samples) and derives a
summary plus usage insights from it. Events are forwarded best-effort to an
optional external sink; sink failures are logged and never reach the caller.

The audit trail is the bounded, append-only record of guard decisions. The
guard pipeline writes to it; this module owns it so that guard statistics and
event analytics are reported from one place.

Design notes:
    - One manager per navigation session, passed by reference to every
      component that needs it. There is no process-wide instance.
    - Buffers are bounded FIFO deques: the oldest entry is dropped first.

Usage:
    from medflow_nav.runtime.analytics import AuditTrail, NavigationAnalyticsManager

    analytics = NavigationAnalyticsManager(ctx, sink=my_sink)
    analytics.track_navigation_click(item)
    report = analytics.get_analytics_report()
    if any(r["code"] == "limited_diversity" for r in report["insights"]["recommendations"]):
        ...
"""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Sequence

from .types import (
    ActorContext,
    AnalyticsEvent,
    AuditEntry,
    Guard,
    MenuItem,
    PerformanceMetrics,
    actor_context_to_dict,
    analytics_event_to_dict,
    audit_entry_to_dict,
    hour_of_day,
    now_ms,
)

logger = logging.getLogger(__name__)

# Event type names
EVENT_CLICK = "navigation_click"
EVENT_HOVER = "navigation_hover"
EVENT_VISIBILITY = "navigation_visibility"
EVENT_PERFORMANCE = "navigation_performance"
EVENT_ERROR = "navigation_error"
EVENT_CACHE = "navigation_cache"

# Insight thresholds
SKEW_THRESHOLD_PERCENT = 50.0
MIN_DISTINCT_ITEMS = 3
TOP_ITEMS = 5
LEAST_USED_ITEMS = 3
RECENT_AUDIT_ENTRIES = 10
EXPORT_EVENT_LIMIT = 100


class AnalyticsSink(Protocol):
    """External analytics service (best-effort, fire-and-forget)."""

    def send(self, event_name: str, properties: Dict[str, Any]) -> None:
        ...


# =============================================================================
# Audit Trail
# =============================================================================


class AuditTrail:
    """Bounded, append-only log of guard decisions."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: Deque[AuditEntry] = deque(maxlen=max_entries)

    def record(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> List[AuditEntry]:
        return list(self._entries)

    def recent(self, count: int = RECENT_AUDIT_ENTRIES) -> List[AuditEntry]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def summarize_guards(guards: Sequence[Guard], audit: AuditTrail) -> Dict[str, Any]:
    """Guard registry size, audit size, guards per action type and recent activity."""
    by_action: Dict[str, int] = {}
    for guard in guards:
        key = guard.action.type.value
        by_action[key] = by_action.get(key, 0) + 1

    return {
        "total_guards": len(guards),
        "total_audit_entries": len(audit),
        "guards_by_action": by_action,
        "recent_activity": [audit_entry_to_dict(entry) for entry in audit.recent(RECENT_AUDIT_ENTRIES)],
    }


# =============================================================================
# Analytics Manager
# =============================================================================


class NavigationAnalyticsManager:
    """Event log, insights and guard statistics for one navigation session.

    Args:
        context: Actor context used to enrich events.
        max_events: Capacity of the event log.
        sink: Optional external analytics sink.
        audit: Audit trail shared with the guard pipeline.
        clock: Epoch-millisecond clock (injectable for tests).
        perf_clock: Monotonic seconds clock for performance marks.
        debug_logging: Emit every event at debug level.
    """

    def __init__(
        self,
        context: ActorContext,
        max_events: int = 1000,
        sink: Optional[AnalyticsSink] = None,
        audit: Optional[AuditTrail] = None,
        clock: Callable[[], float] = now_ms,
        perf_clock: Callable[[], float] = time.perf_counter,
        debug_logging: bool = False,
    ):
        self.context = context
        self.max_events = max_events
        self.sink = sink
        self.audit = audit if audit is not None else AuditTrail()
        self._clock = clock
        self._perf_clock = perf_clock
        self.debug_logging = debug_logging
        self._events: Deque[AnalyticsEvent] = deque(maxlen=max_events)
        self._session_start = clock()
        self._performance_marks: Dict[str, float] = {}

    def update_context(self, context: ActorContext) -> None:
        self.context = context

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    def track_event(
        self,
        event_type: str,
        item: Optional[MenuItem] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> AnalyticsEvent:
        """Append an event to the bounded log and forward it to the sink."""
        now = self._clock()
        event = AnalyticsEvent(
            type=event_type,
            timestamp=now,
            item=item,
            data={
                **(data or {}),
                "session_duration": now - self._session_start,
                "identity": self.context.identity,
                "environment": {
                    "name": self.context.environment.name,
                    "version": self.context.environment.version,
                },
            },
        )
        self._events.append(event)
        self._send_to_sink(event)
        return event

    def track_navigation_click(
        self, item: MenuItem, metadata: Optional[Dict[str, Any]] = None
    ) -> AnalyticsEvent:
        return self.track_event(
            EVENT_CLICK,
            item,
            {
                **(metadata or {}),
                "action": "click",
                "destination": item.path,
                "priority": item.priority,
            },
        )

    def track_navigation_hover(self, item: MenuItem, duration: float) -> AnalyticsEvent:
        return self.track_event(EVENT_HOVER, item, {"duration": duration, "action": "hover"})

    def track_navigation_visibility(self, item: MenuItem, visible: bool) -> AnalyticsEvent:
        return self.track_event(
            EVENT_VISIBILITY,
            item,
            {"visible": visible, "action": "show" if visible else "hide"},
        )

    def track_performance(
        self, operation: str, duration: float, metadata: Optional[Dict[str, Any]] = None
    ) -> AnalyticsEvent:
        return self.track_event(
            EVENT_PERFORMANCE, None, {"operation": operation, "duration": duration, **(metadata or {})}
        )

    def track_error(
        self,
        error: BaseException,
        item: Optional[MenuItem] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AnalyticsEvent:
        return self.track_event(
            EVENT_ERROR,
            item,
            {
                "error": {"name": type(error).__name__, "message": str(error)},
                **(context or {}),
            },
        )

    def track_cache_lookup(self, hit: bool, fingerprint: Optional[str] = None) -> AnalyticsEvent:
        return self.track_event(EVENT_CACHE, None, {"hit": hit, "fingerprint": fingerprint})

    def start_performance_mark(self, name: str) -> None:
        self._performance_marks[name] = self._perf_clock()

    def end_performance_mark(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> float:
        """Close a mark and record its duration in milliseconds.

        Returns:
            The elapsed time, or 0.0 if the mark was never started.
        """
        start = self._performance_marks.pop(name, None)
        if start is None:
            return 0.0
        duration = (self._perf_clock() - start) * 1000.0
        self.track_performance(name, duration, metadata)
        return duration

    def _send_to_sink(self, event: AnalyticsEvent) -> None:
        if self.debug_logging or self.context.environment.is_development:
            logger.debug(
                "[navigation analytics] %s %s",
                event.type,
                event.item.path if event.item else "-",
            )

        if self.sink is None:
            return

        if event.item is not None:
            tag = event.item.analytics
            name = tag.action
            properties = {
                "event_type": event.type,
                "event_category": tag.category,
                "event_label": tag.label,
                "value": tag.value,
                "custom_data": dict(tag.custom_data),
                "path": event.item.path,
            }
        else:
            name = event.type
            properties = {"event_type": event.type, **event.data}

        try:
            self.sink.send(name, properties)
        except Exception as e:
            logger.warning("Failed to send navigation event '%s' to sink: %s", name, e)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def events(self) -> List[AnalyticsEvent]:
        return list(self._events)

    def get_events_by_type(self, event_type: str) -> List[AnalyticsEvent]:
        return [e for e in self._events if e.type == event_type]

    def get_events_for_item(self, path: str) -> List[AnalyticsEvent]:
        return [e for e in self._events if e.item is not None and e.item.path == path]

    def get_events_in_time_range(self, start: float, end: float) -> List[AnalyticsEvent]:
        return [e for e in self._events if start <= e.timestamp <= end]

    def _click_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for event in self._events:
            if event.type == EVENT_CLICK and event.item is not None:
                counts[event.item.path] = counts.get(event.item.path, 0) + 1
        return counts

    def _summary(self) -> Dict[str, Any]:
        events = list(self._events)
        counts = self._click_counts()
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)

        average_session = (
            sum(e.data.get("session_duration", 0) for e in events) / len(events) if events else 0.0
        )

        return {
            "total_events": len(events),
            "navigation_events": sum(1 for e in events if e.type.startswith("navigation_")),
            "click_events": sum(1 for e in events if e.type == EVENT_CLICK),
            "error_events": sum(1 for e in events if e.type == EVENT_ERROR),
            "unique_items_clicked": len(counts),
            "most_clicked_item": ranked[0][0] if ranked else None,
            "average_session_duration": average_session,
            "session_duration": self._clock() - self._session_start,
        }

    def _insights(self) -> Dict[str, Any]:
        counts = self._click_counts()
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)

        insights: Dict[str, Any] = {
            "top_items": [{"path": p, "count": c} for p, c in ranked[:TOP_ITEMS]],
            "least_used_items": [{"path": p, "count": c} for p, c in ranked[-LEAST_USED_ITEMS:]],
            "recommendations": [],
            "patterns": [],
        }

        if ranked:
            total_clicks = sum(counts.values())
            top_path, top_count = ranked[0]
            top_share = top_count / total_clicks * 100.0

            if top_share > SKEW_THRESHOLD_PERCENT:
                insights["recommendations"].append(
                    {
                        "type": "warning",
                        "code": "skewed_navigation",
                        "message": (
                            f"Navigation is heavily skewed toward {top_path} "
                            f"({top_share:.1f}% of clicks). Consider reviewing navigation priorities."
                        ),
                    }
                )

            if len(counts) < MIN_DISTINCT_ITEMS:
                insights["recommendations"].append(
                    {
                        "type": "info",
                        "code": "limited_diversity",
                        "message": (
                            "Limited navigation diversity detected. "
                            "Users may not be exploring all features."
                        ),
                    }
                )

        hourly: Dict[int, int] = {}
        for event in self._events:
            if event.type == EVENT_CLICK:
                hour = hour_of_day(event.timestamp)
                hourly[hour] = hourly.get(hour, 0) + 1

        if hourly:
            peak_hour, peak_count = min(hourly.items(), key=lambda kv: (-kv[1], kv[0]))
            insights["patterns"].append(
                {
                    "type": "usage",
                    "hour": peak_hour,
                    "count": peak_count,
                    "description": f"Peak navigation usage at {peak_hour}:00 ({peak_count} clicks)",
                }
            )

        return insights

    def get_analytics_report(self) -> Dict[str, Any]:
        """Summary, events and insights for the current session.

        Returns:
            Dict with ``summary``, ``events`` (AnalyticsEvent list) and ``insights``.
        """
        return {
            "summary": self._summary(),
            "events": list(self._events),
            "insights": self._insights(),
        }

    def get_performance_metrics(self) -> PerformanceMetrics:
        events = list(self._events)
        perf = [e for e in events if e.type == EVENT_PERFORMANCE]
        cache = [e for e in events if e.type == EVENT_CACHE]
        errors = [e for e in events if e.type == EVENT_ERROR]

        render_times = [
            e.data.get("duration", 0.0) for e in perf if "render" in str(e.data.get("operation", ""))
        ]
        hits = sum(1 for e in cache if e.data.get("hit"))

        return PerformanceMetrics(
            average_render_time=sum(render_times) / len(render_times) if render_times else 0.0,
            cache_hit_rate=hits / len(cache) * 100.0 if cache else 0.0,
            error_rate=len(errors) / len(events) * 100.0 if events else 0.0,
        )

    def get_guard_statistics(self, guards: Sequence[Guard]) -> Dict[str, Any]:
        """Aggregate guard registry and audit trail figures."""
        return summarize_guards(guards, self.audit)

    def export_analytics_data(self) -> str:
        """Serialize summary, insights and the latest events as JSON."""
        report = self.get_analytics_report()
        return json.dumps(
            {
                "export_date": datetime.now(timezone.utc).isoformat(),
                "summary": report["summary"],
                "insights": report["insights"],
                "events": [
                    analytics_event_to_dict(e) for e in report["events"][-EXPORT_EVENT_LIMIT:]
                ],
                "context": actor_context_to_dict(self.context),
            },
            indent=2,
            default=str,
        )

    def clear_analytics_data(self) -> None:
        self._events.clear()
        self._session_start = self._clock()

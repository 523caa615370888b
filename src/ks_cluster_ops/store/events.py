"""Per-cluster event log.

Append-only, ordered history of onboarding/detachment progress keyed by
cluster name.  A cluster's history is reset when a new onboarding attempt
starts.  Every append is mirrored to the module logger.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from ks_cluster_ops.models import EventPhase, OnboardingEvent

logger = logging.getLogger(__name__)

_LEVELS = {
    EventPhase.WARNING.value: logging.WARNING,
    EventPhase.ERROR.value: logging.ERROR,
}


class EventLog:
    """Thread-safe in-memory event log."""

    def __init__(self) -> None:
        self._events: defaultdict[str, list[OnboardingEvent]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(
        self,
        cluster_name: str,
        status: EventPhase | str,
        message: str,
        error: str | None = None,
    ) -> OnboardingEvent:
        """Record an event and return it."""
        event = OnboardingEvent(
            cluster_name=cluster_name,
            status=str(status),
            message=message,
            error=error,
        )
        with self._lock:
            self._events[cluster_name].append(event)
        logger.log(
            _LEVELS.get(event.status, logging.INFO),
            "[%s] %s: %s", cluster_name, event.status, message,
        )
        return event

    def events(self, cluster_name: str) -> list[OnboardingEvent]:
        with self._lock:
            return list(self._events.get(cluster_name, ()))

    def last(self, cluster_name: str) -> OnboardingEvent | None:
        with self._lock:
            history = self._events.get(cluster_name)
            return history[-1] if history else None

    def count(self, cluster_name: str) -> int:
        with self._lock:
            return len(self._events.get(cluster_name, ()))

    def clear(self, cluster_name: str) -> None:
        with self._lock:
            self._events[cluster_name] = []

    def clusters(self) -> list[str]:
        with self._lock:
            return list(self._events)

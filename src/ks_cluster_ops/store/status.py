"""Cluster status store.

In-memory mapping from cluster name to its current lifecycle status.
Lives for the lifetime of the plugin instance; nothing is persisted.
Thread-safe via a lock on every operation.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from ks_cluster_ops.models import ClusterRecord, ClusterStatus


@runtime_checkable
class StatusStore(Protocol):
    """Protocol for cluster status storage backends."""

    def get(self, name: str) -> ClusterStatus | None: ...

    def set(self, name: str, status: ClusterStatus) -> None: ...

    def delete(self, name: str) -> bool: ...

    def list(self) -> list[tuple[str, ClusterStatus]]: ...


class InMemoryStatusStore:
    """Dict-backed status store.

    Per-name operations are linearizable; there is no atomicity across
    a whole workflow, so readers observe intermediate states.
    """

    def __init__(self) -> None:
        self._records: dict[str, ClusterRecord] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> ClusterStatus | None:
        with self._lock:
            record = self._records.get(name)
            return record.status if record is not None else None

    def get_record(self, name: str) -> ClusterRecord | None:
        with self._lock:
            record = self._records.get(name)
            return record.model_copy() if record is not None else None

    def set(self, name: str, status: ClusterStatus) -> None:
        """Set the status, creating the record if needed."""
        now = datetime.now(tz=UTC)
        with self._lock:
            record = self._records.get(name)
            if record is None:
                self._records[name] = ClusterRecord(
                    name=name, status=status, created_at=now, updated_at=now,
                )
            else:
                record.status = status
                record.updated_at = now

    def set_if_absent(
        self,
        name: str,
        status: ClusterStatus,
        cluster_type: str = "workload",
        labels: dict[str, str] | None = None,
    ) -> ClusterStatus | None:
        """Create a record unless one exists.

        Returns the existing status when the name is already tracked,
        or ``None`` when the new record was created.
        """
        with self._lock:
            existing = self._records.get(name)
            if existing is not None:
                return existing.status
            self._records[name] = ClusterRecord(
                name=name,
                status=status,
                type=cluster_type,
                labels=dict(labels or {}),
            )
            return None

    def set_unless(
        self,
        name: str,
        status: ClusterStatus,
        blocked: frozenset[ClusterStatus],
    ) -> ClusterStatus | None:
        """Set *status* unless the current status is in *blocked*.

        Returns the blocking status, or ``None`` when the status was set.
        """
        now = datetime.now(tz=UTC)
        with self._lock:
            record = self._records.get(name)
            if record is None:
                self._records[name] = ClusterRecord(
                    name=name, status=status, created_at=now, updated_at=now,
                )
                return None
            if record.status in blocked:
                return record.status
            record.status = status
            record.updated_at = now
            return None

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._records.pop(name, None) is not None

    def list(self) -> list[tuple[str, ClusterStatus]]:
        with self._lock:
            return [(name, rec.status) for name, rec in self._records.items()]

    def records(self) -> list[ClusterRecord]:
        with self._lock:
            return [rec.model_copy() for rec in self._records.values()]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

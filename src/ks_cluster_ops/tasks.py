"""Background execution of onboarding/detachment workflows.

Each request becomes one task on a bounded thread pool.  The runner keeps
the most recent handle per cluster so callers (and tests) can observe
completion and captured errors without sleeping.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class WorkflowHandle:
    """A submitted workflow and its future."""

    cluster_name: str
    kind: str
    future: Future[Any]
    submitted_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def done(self) -> bool:
        return self.future.done()

    @property
    def error(self) -> BaseException | None:
        """Exception that escaped the workflow, once it has finished."""
        if not self.future.done() or self.future.cancelled():
            return None
        return self.future.exception()

    def result(self, timeout: float | None = None) -> Any:
        return self.future.result(timeout=timeout)


class WorkflowRunner:
    """Bounded worker pool for workflows. Never blocks the submitter."""

    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cluster-workflow",
        )
        self._handles: dict[str, WorkflowHandle] = {}
        self._lock = threading.Lock()
        self._closed = False

    def submit(
        self,
        cluster_name: str,
        kind: str,
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> WorkflowHandle:
        with self._lock:
            if self._closed:
                msg = "Workflow runner is shut down"
                raise RuntimeError(msg)
            future = self._pool.submit(fn, *args, **kwargs)
            handle = WorkflowHandle(cluster_name=cluster_name, kind=kind, future=future)
            self._handles[cluster_name] = handle
        future.add_done_callback(lambda f: self._on_done(handle))
        return handle

    def handle(self, cluster_name: str) -> WorkflowHandle | None:
        with self._lock:
            return self._handles.get(cluster_name)

    def wait(self, cluster_name: str, timeout: float | None = None) -> Any:
        """Block until the latest workflow for *cluster_name* finishes.

        Returns its result; re-raises an exception that escaped it.
        """
        handle = self.handle(cluster_name)
        if handle is None:
            return None
        return handle.result(timeout=timeout)

    def active(self) -> list[WorkflowHandle]:
        with self._lock:
            return [h for h in self._handles.values() if not h.done]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._pool.shutdown(wait=wait)

    @staticmethod
    def _on_done(handle: WorkflowHandle) -> None:
        error = handle.error
        if error is not None:
            logger.error(
                "%s workflow for '%s' raised %s: %s",
                handle.kind, handle.cluster_name, type(error).__name__, error,
            )

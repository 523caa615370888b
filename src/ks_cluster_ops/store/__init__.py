"""In-memory stores shared by handlers and workflows."""

from ks_cluster_ops.store.events import EventLog
from ks_cluster_ops.store.status import InMemoryStatusStore, StatusStore

__all__ = [
    "EventLog",
    "InMemoryStatusStore",
    "StatusStore",
]

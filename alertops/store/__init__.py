"""Alert persistence — store contract plus memory and SQL implementations."""

from alertops.store.base import AlertStore
from alertops.store.memory import MemoryAlertStore
from alertops.store.sql import SqlAlertStore

__all__ = [
    "AlertStore",
    "MemoryAlertStore",
    "SqlAlertStore",
]

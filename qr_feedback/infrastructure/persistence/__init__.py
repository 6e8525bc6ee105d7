from .base import PersistenceAdapter
from .factory import FEEDBACK_COLLECTION, QR_CODES_COLLECTION, build_adapter
from .http_client import HttpDocumentAdapter
from .local_storage import (
    FEEDBACK_KEY,
    PENDING_QR_CODES_KEY,
    QR_CODES_KEY,
    LocalStorageAdapter,
    LocalStore,
    PendingIdStore,
)
from .memory import MemoryAdapter
from .sql import SqlAdapter

__all__ = [
    "PersistenceAdapter",
    "FEEDBACK_COLLECTION",
    "QR_CODES_COLLECTION",
    "build_adapter",
    "HttpDocumentAdapter",
    "FEEDBACK_KEY",
    "PENDING_QR_CODES_KEY",
    "QR_CODES_KEY",
    "LocalStorageAdapter",
    "LocalStore",
    "PendingIdStore",
    "MemoryAdapter",
    "SqlAdapter",
]

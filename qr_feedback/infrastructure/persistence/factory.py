"""Build adapters from configuration."""

from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from qr_feedback.domain.models import Feedback, FeedbackRecord, QRCode, QRCodeRecord
from qr_feedback.infrastructure.retry import RetryPolicy

from .base import PersistenceAdapter
from .http_client import HttpDocumentAdapter
from .local_storage import FEEDBACK_KEY, QR_CODES_KEY, LocalStorageAdapter, LocalStore
from .memory import MemoryAdapter
from .sql import SqlAdapter

QR_CODES_COLLECTION = "qr_codes"
FEEDBACK_COLLECTION = "feedback"

# collection name -> (table, record model)
COLLECTIONS = {
    QR_CODES_COLLECTION: (QRCode, QRCodeRecord),
    FEEDBACK_COLLECTION: (Feedback, FeedbackRecord),
}

_LOCAL_LAYOUT = {
    QR_CODES_COLLECTION: (QR_CODES_KEY, True),
    FEEDBACK_COLLECTION: (FEEDBACK_KEY, False),
}


def build_adapter(
    backend: str,
    collection: str,
    *,
    session_maker: Optional[sessionmaker] = None,
    local_store: Optional[LocalStore] = None,
    facade_url: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    policy: Optional[RetryPolicy] = None,
) -> PersistenceAdapter:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")
    table, model = COLLECTIONS[collection]
    policy = policy or RetryPolicy()

    if backend == "memory":
        return MemoryAdapter(model)

    if backend == "local":
        if local_store is None:
            raise ValueError("local backend needs a LocalStore")
        key, as_map = _LOCAL_LAYOUT[collection]
        return LocalStorageAdapter(local_store, model, key, as_map=as_map)

    if backend == "http":
        if not facade_url:
            raise ValueError("http backend needs FACADE_URL")
        return HttpDocumentAdapter(facade_url, collection, model, client=http_client, policy=policy)

    if backend == "sql":
        if session_maker is None:
            raise ValueError("sql backend needs a session maker")
        return SqlAdapter(session_maker, table, model, policy=policy)

    raise ValueError(f"Unknown backend: {backend}")

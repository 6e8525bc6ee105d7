"""Wire adapters and services from Settings."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx
from sqlalchemy.orm import sessionmaker

from qr_feedback.config import Settings
from qr_feedback.domain.models import QRCodeRecord, utc_now
from qr_feedback.infrastructure.persistence import (
    FEEDBACK_COLLECTION,
    QR_CODES_COLLECTION,
    QR_CODES_KEY,
    LocalStorageAdapter,
    LocalStore,
    PendingIdStore,
    PersistenceAdapter,
    build_adapter,
)
from qr_feedback.infrastructure.retry import RetryPolicy
from qr_feedback.services.cache import QRCodeCache
from qr_feedback.services.feedback import FeedbackService
from qr_feedback.services.lifecycle import QRCodeManager
from qr_feedback.services.network import NetworkMonitor
from qr_feedback.services.sync import SyncManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    qr_codes: QRCodeManager
    feedback: FeedbackService
    sync: SyncManager
    network: NetworkMonitor
    cache: QRCodeCache
    local_store: LocalStore


def build_services(
    settings: Settings,
    session_maker: Optional[sessionmaker] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    local_store: Optional[LocalStore] = None,
    qr_remote: Optional[PersistenceAdapter] = None,
    feedback_adapter: Optional[PersistenceAdapter] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """One independent set of services; adapters may be passed in directly."""
    policy = RetryPolicy.from_settings(settings)

    if local_store is None:
        local_store = LocalStore(settings.local_storage_dir, quota_bytes=settings.local_storage_quota_bytes)

    def adapter(backend: str, collection: str) -> PersistenceAdapter:
        return build_adapter(
            backend,
            collection,
            session_maker=session_maker,
            local_store=local_store,
            facade_url=settings.facade_url,
            http_client=http_client,
            policy=policy,
        )

    if qr_remote is None:
        qr_remote = adapter(settings.qr_backend, QR_CODES_COLLECTION)
    if feedback_adapter is None:
        feedback_adapter = adapter(settings.feedback_backend, FEEDBACK_COLLECTION)

    qr_local = LocalStorageAdapter(local_store, QRCodeRecord, QR_CODES_KEY)

    cache = QRCodeCache(ttl_seconds=settings.cache_ttl_seconds)
    network = NetworkMonitor(probe=qr_remote.ping)
    sync = SyncManager(
        remote=qr_remote,
        local=qr_local,
        pending=PendingIdStore(local_store),
        network=network,
        cache=cache,
        interval_seconds=settings.sync_interval_seconds,
    )
    qr_codes = QRCodeManager(
        remote=qr_remote,
        local=qr_local,
        sync=sync,
        cache=cache,
        feedback=feedback_adapter,
        clock=clock,
        default_expiry_hours=settings.default_expiry_hours,
        default_max_scans=settings.default_max_scans,
    )
    feedback = FeedbackService(feedback_adapter, qr_codes, clock=clock)

    logger.info(f"Services ready (qr_backend={settings.qr_backend}, feedback_backend={settings.feedback_backend})")
    return Services(
        qr_codes=qr_codes,
        feedback=feedback,
        sync=sync,
        network=network,
        cache=cache,
        local_store=local_store,
    )

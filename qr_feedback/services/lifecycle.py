"""
QR code lifecycle: generation, lookup, scan counting, edits and deletion

Reads go cache -> remote (when online) -> local copy. Writes go to the local
copy first and then to the remote; a remote write that cannot complete is
queued with the SyncManager instead of failing the caller.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional, Union

from qr_feedback.domain.exceptions import PersistenceError, TransientIOError, ValidationViolation
from qr_feedback.domain.models import (
    CustomQuestion,
    FeedbackRecord,
    QRCodeRecord,
    QRCodeUpdate,
    new_id,
    utc_now,
)
from qr_feedback.domain.validation import ScanCheck, ScanStatus, scan_status_for
from qr_feedback.infrastructure.persistence import PersistenceAdapter
from qr_feedback.infrastructure.persistence.base import check_fields, merge, order_records

from .cache import QRCodeCache
from .sync import SyncManager

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = {"id", "created_at"}


class QRCodeManager:
    """Owns the authoritative QR code records.

    ``feedback`` is the feedback adapter used for cascade deletes; it may be
    a different backend than ``remote``.
    """

    def __init__(
        self,
        remote: PersistenceAdapter[QRCodeRecord],
        local: PersistenceAdapter[QRCodeRecord],
        sync: SyncManager,
        cache: QRCodeCache,
        feedback: Optional[PersistenceAdapter[FeedbackRecord]] = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
        default_expiry_hours: float = 24,
        default_max_scans: int = 100,
    ):
        self.remote = remote
        self.local = local
        self.sync = sync
        self.cache = cache
        self.feedback = feedback
        self.clock = clock
        self.id_factory = id_factory
        self.default_expiry_hours = default_expiry_hours
        self.default_max_scans = default_max_scans

    @property
    def network(self):
        return self.sync.network

    def _lock_for(self, id: str) -> asyncio.Lock:
        # Shared with the sync pass so it never interleaves with a write to the same id
        return self.sync.lock_for(id)

    def generate(
        self,
        context: str,
        expiry_hours: Optional[float] = None,
        max_scans: Optional[int] = None,
        custom_questions: Optional[List[CustomQuestion]] = None,
    ) -> QRCodeRecord:
        """Build a new active record. Nothing is persisted."""
        expiry_hours = self.default_expiry_hours if expiry_hours is None else expiry_hours
        max_scans = self.default_max_scans if max_scans is None else max_scans

        if not context or not context.strip():
            raise ValidationViolation("context must not be empty")
        if expiry_hours <= 0:
            raise ValidationViolation(f"expiry_hours must be positive, got {expiry_hours}")
        if isinstance(max_scans, bool) or not isinstance(max_scans, int) or max_scans < 1:
            raise ValidationViolation(f"max_scans must be an integer >= 1, got {max_scans}")

        now = self.clock()
        return QRCodeRecord(
            id=self.id_factory(),
            context=context.strip(),
            created_at=now,
            expires_at=now + timedelta(hours=expiry_hours),
            max_scans=max_scans,
            current_scans=0,
            is_active=True,
            custom_questions=custom_questions,
        )

    async def _persist(self, record: QRCodeRecord) -> bool:
        """Local write, then remote. Returns False when the remote write was deferred."""
        await self.local.put(record)
        self.cache.invalidate(record.id)

        if not self.network.is_online:
            logger.info(f"Offline, QR code {record.id} queued for sync")
            self.sync.record_pending_write(record.id)
            return False

        try:
            await self.remote.put(record)
        except TransientIOError as e:
            logger.warning(f"Remote write of QR code {record.id} failed, queued for sync: {e}")
            self.sync.record_pending_write(record.id)
            return False

        # The remote now holds this write, so any older pending entry is settled
        self.sync.pending.discard(record.id)
        return True

    async def _load(self, id: str) -> Optional[QRCodeRecord]:
        """Uncached lookup: pending local copy, then remote, then local."""
        if id in self.sync.pending:
            local = await self.local.get(id)
            if local is not None:
                return local

        remote_error: Optional[PersistenceError] = None
        if self.network.is_online:
            try:
                record = await self.remote.get(id)
                if record is not None:
                    return record
            except PersistenceError as e:
                logger.warning(f"Remote lookup of QR code {id} failed, trying local copy: {e}")
                remote_error = e

        local = await self.local.get(id)
        if local is None:
            if remote_error is not None:
                raise remote_error
            return None

        if self.network.is_online and remote_error is None:
            # Remote answered "not found": the local copy never made it there
            logger.info(f"QR code {id} only exists locally, queued for sync")
            self.sync.record_pending_write(id)
        return local

    async def store(self, record: QRCodeRecord) -> QRCodeRecord:
        await self._persist(record)
        return record

    async def get(self, id: str, refresh: bool = False) -> Optional[QRCodeRecord]:
        if not refresh:
            cached = self.cache.get(id)
            if cached is not None:
                return cached

        record = await self._load(id)
        if record is not None:
            self.cache.put(record)
        return record

    async def get_all(self) -> List[QRCodeRecord]:
        """Every known record, newest first."""
        cached = self.cache.get_all()
        if cached is not None:
            return cached

        local_records = await self.local.get_all()

        remote_records: Optional[List[QRCodeRecord]] = None
        if self.network.is_online:
            try:
                remote_records = await self.remote.get_all()
            except PersistenceError as e:
                logger.warning(f"Remote listing failed, showing local QR codes only: {e}")

        if remote_records is None:
            return order_records(local_records, newest_first=True, limit=None)

        pending = set(self.sync.pending.ids())
        merged = {r.id: r for r in remote_records}
        for record in local_records:
            if record.id in pending:
                merged[record.id] = record
            elif record.id not in merged:
                logger.info(f"QR code {record.id} only exists locally, queued for sync")
                self.sync.record_pending_write(record.id)
                merged[record.id] = record

        records = order_records(list(merged.values()), newest_first=True, limit=None)
        self.cache.put_all(records)
        return records

    async def increment_scan(self, id: str) -> Optional[QRCodeRecord]:
        """Count one scan. Serialized per id within this process."""
        async with self._lock_for(id):
            current = await self._load(id)
            if current is None:
                return None
            updated = current.model_copy(update={"current_scans": current.current_scans + 1})
            await self._persist(updated)
            return updated

    async def accept_scan(self, id: str) -> ScanCheck:
        """Count a scan only if the code accepts feedback right now."""
        async with self._lock_for(id):
            current = await self._load(id)
            status = scan_status_for(current, self.clock())
            if status != ScanStatus.ACTIVE:
                return ScanCheck(status, current)

            updated = current.model_copy(update={"current_scans": current.current_scans + 1})
            await self._persist(updated)
            return ScanCheck(ScanStatus.ACTIVE, updated)

    async def update(
        self, id: str, fields: Union[QRCodeUpdate, Mapping[str, Any]]
    ) -> Optional[QRCodeRecord]:
        if isinstance(fields, QRCodeUpdate):
            fields = fields.model_dump(exclude_unset=True)

        immutable = sorted(IMMUTABLE_FIELDS & set(fields))
        if immutable:
            raise ValidationViolation(f"Cannot update {', '.join(immutable)}")
        check_fields(QRCodeRecord, fields)

        async with self._lock_for(id):
            current = await self._load(id)
            if current is None:
                return None
            updated = merge(QRCodeRecord, current, fields)
            await self._persist(updated)
            return updated

    async def delete(self, id: str) -> bool:
        """Remove everywhere and cascade to feedback.

        False when the remote delete fails or cannot run (offline), or when
        the record did not exist anywhere.
        """
        async with self._lock_for(id):
            self.cache.invalidate(id)
            existed_locally = await self.local.delete(id)
            self.sync.pending.discard(id)

            if not self.network.is_online:
                logger.warning(f"Offline, remote delete of QR code {id} not attempted")
                return False

            try:
                existed_remotely = await self.remote.delete(id)
            except PersistenceError as e:
                logger.error(f"Remote delete of QR code {id} failed: {e}")
                return False

            if not (existed_locally or existed_remotely):
                return False

            if self.feedback is not None:
                removed = await self.feedback.delete_many({"qr_code_id": id})
                logger.info(f"Deleted QR code {id} and {removed} feedback item(s)")

        return True

    def clear_cache(self) -> None:
        self.cache.clear()

"""Feedback submission, listing and dashboard statistics."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from qr_feedback.domain.exceptions import PersistenceError, ScanRejected
from qr_feedback.domain.models import (
    FeedbackCreate,
    FeedbackRecord,
    FeedbackStats,
    Sentiment,
    new_id,
    utc_now,
)
from qr_feedback.domain.sentiment import SentimentClassifier, classify_sentiment
from qr_feedback.domain.validation import (
    QRCodeStatus,
    ScanCheck,
    ScanStatus,
    qr_code_status,
    scan_status_for,
    validate_answers,
)
from qr_feedback.infrastructure.persistence import PersistenceAdapter

from .lifecycle import QRCodeManager

logger = logging.getLogger(__name__)


class FeedbackService:
    """Customer-facing flow on top of the QR code manager.

    Unlike QR code writes, a feedback write that fails is raised to the
    caller; it is never queued.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter[FeedbackRecord],
        qr_codes: QRCodeManager,
        classify: SentimentClassifier = classify_sentiment,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.adapter = adapter
        self.qr_codes = qr_codes
        self.classify = classify
        self.clock = clock
        self.id_factory = id_factory

    async def check(self, qr_code_id: str) -> ScanCheck:
        """What the public scan page should show; never raises for I/O."""
        try:
            record = await self.qr_codes.get(qr_code_id)
        except PersistenceError as e:
            logger.warning(f"Could not load QR code {qr_code_id}: {e}")
            return ScanCheck(ScanStatus.NETWORK_ERROR)
        return ScanCheck(scan_status_for(record, self.clock()), record)

    async def submit(self, qr_code_id: str, data: FeedbackCreate) -> FeedbackRecord:
        """Validate, count the scan, then persist the feedback.

        Raises ScanRejected if the code does not accept feedback,
        ValidationViolation for bad custom answers and PersistenceError if the
        feedback could not be saved.
        """
        first = await self.check(qr_code_id)
        if not first.accepted:
            raise ScanRejected(first.status)
        validate_answers(first.record.custom_questions, data.custom_answers)

        # Re-checked under the per-id lock; the code may have filled up meanwhile
        try:
            accepted = await self.qr_codes.accept_scan(qr_code_id)
        except PersistenceError as e:
            logger.warning(f"Could not count scan for QR code {qr_code_id}: {e}")
            raise ScanRejected(ScanStatus.NETWORK_ERROR) from e
        if not accepted.accepted:
            raise ScanRejected(accepted.status)

        record = FeedbackRecord(
            id=self.id_factory(),
            qr_code_id=qr_code_id,
            name=data.name,
            phone_number=data.phone_number,
            email=data.email,
            rating=data.rating,
            comment=data.comment,
            context=accepted.record.context,
            sentiment=self.classify(data.rating, data.comment),
            created_at=self.clock(),
            custom_answers=data.custom_answers,
        )
        await self.adapter.put(record)
        logger.info(f"Feedback {record.id} stored for QR code {qr_code_id} ({record.sentiment.value})")
        return record

    async def get(self, id: str) -> Optional[FeedbackRecord]:
        return await self.adapter.get(id)

    async def list_feedback(
        self,
        qr_code_id: Optional[str] = None,
        sentiment: Optional[Sentiment] = None,
        limit: Optional[int] = None,
    ) -> List[FeedbackRecord]:
        filter = {}
        if qr_code_id:
            filter["qr_code_id"] = qr_code_id
        if sentiment:
            filter["sentiment"] = sentiment
        return await self.adapter.get_all(filter or None, newest_first=True, limit=limit)

    async def delete(self, id: str) -> bool:
        return await self.adapter.delete(id)

    async def delete_by_qr_code(self, qr_code_id: str) -> int:
        return await self.adapter.delete_many({"qr_code_id": qr_code_id})

    async def delete_all(self) -> int:
        return await self.adapter.delete_many({})

    async def stats(self) -> FeedbackStats:
        items = await self.adapter.get_all()
        qr_codes = await self.qr_codes.get_all()
        now = self.clock()

        counts = {s: 0 for s in Sentiment}
        for item in items:
            counts[item.sentiment] += 1

        total = len(items)
        statuses = [qr_code_status(q, now) for q in qr_codes]
        return FeedbackStats(
            total=total,
            positive=counts[Sentiment.POSITIVE],
            neutral=counts[Sentiment.NEUTRAL],
            negative=counts[Sentiment.NEGATIVE],
            positive_percent=round(counts[Sentiment.POSITIVE] / total * 100) if total else 0,
            average_rating=round(sum(i.rating for i in items) / total, 2) if total else None,
            active_qr_codes=statuses.count(QRCodeStatus.ACTIVE),
            expired_qr_codes=statuses.count(QRCodeStatus.EXPIRED),
        )

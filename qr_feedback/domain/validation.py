"""QR code validity rules.

Everything here is pure: no I/O, no mutation. Validity is evaluated fresh on
every call and is never stored on the record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from qr_feedback.domain.exceptions import ValidationViolation
from qr_feedback.domain.models import (
    CustomQuestion,
    CustomQuestionAnswer,
    CustomQuestionType,
    QRCodeRecord,
    as_utc,
    utc_now,
)


class QRCodeStatus(str, Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class ScanStatus(str, Enum):
    """What a scan of a QR code id resolves to, as shown to the customer."""
    ACTIVE = "active"
    NOT_FOUND = "not_found"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    NETWORK_ERROR = "network_error"


@dataclass
class ScanCheck:
    status: ScanStatus
    record: Optional[QRCodeRecord] = None

    @property
    def accepted(self) -> bool:
        return self.status == ScanStatus.ACTIVE


def qr_code_status(record: QRCodeRecord, now: Optional[datetime] = None) -> QRCodeStatus:
    """Classify a record; checks run in kill-switch, expiry, scan-limit order."""
    if not record.is_active:
        return QRCodeStatus.DEACTIVATED

    now = as_utc(now) if now is not None else utc_now()
    # expires_at == now is still valid
    if now > as_utc(record.expires_at):
        return QRCodeStatus.EXPIRED

    # the max_scans-th scan is the last one allowed
    if record.current_scans >= record.max_scans:
        return QRCodeStatus.EXHAUSTED

    return QRCodeStatus.ACTIVE


def is_valid(record: QRCodeRecord, now: Optional[datetime] = None) -> bool:
    """True iff the record currently accepts new feedback submissions."""
    return qr_code_status(record, now) == QRCodeStatus.ACTIVE


def scan_status_for(record: Optional[QRCodeRecord], now: Optional[datetime] = None) -> ScanStatus:
    if record is None:
        return ScanStatus.NOT_FOUND
    return ScanStatus(qr_code_status(record, now).value)


YES_NO_ANSWERS = {"yes", "no"}


def validate_answers(
    questions: Optional[List[CustomQuestion]],
    answers: Optional[List[CustomQuestionAnswer]],
) -> None:
    """Check custom answers against the QR code's questions.

    Raises ValidationViolation on the first problem found.
    """
    by_id: Dict[str, CustomQuestion] = {q.id: q for q in (questions or [])}
    given: Dict[str, str] = {}

    for answer in answers or []:
        question = by_id.get(answer.question_id)
        if question is None:
            raise ValidationViolation(f"Answer to unknown question: {answer.question_id}")
        if answer.question_id in given:
            raise ValidationViolation(f"Duplicate answer for question: {answer.question_id}")
        given[answer.question_id] = answer.answer.strip()

    for question in by_id.values():
        value = given.get(question.id, "")
        if not value:
            if question.required:
                raise ValidationViolation(f"Question '{question.question_text}' is required")
            continue

        if question.type == CustomQuestionType.MULTIPLE_CHOICE:
            if value not in (question.options or []):
                raise ValidationViolation(
                    f"Answer '{value}' is not an option of '{question.question_text}'"
                )
        elif question.type == CustomQuestionType.YES_NO:
            if value.lower() not in YES_NO_ANSWERS:
                raise ValidationViolation(f"Answer to '{question.question_text}' must be yes or no")
        elif question.type == CustomQuestionType.RATING:
            if value not in {"1", "2", "3", "4", "5"}:
                raise ValidationViolation(f"Rating for '{question.question_text}' must be 1-5")

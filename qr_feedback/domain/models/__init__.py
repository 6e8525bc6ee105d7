"""Domain models for QR Feedback"""
from .base import as_utc, new_id, utc_now
from .qr_code import (
    CustomQuestion,
    CustomQuestionType,
    QRCode,
    QRCodeRecord,
    QRCodeUpdate,
)
from .feedback import (
    CustomQuestionAnswer,
    Feedback,
    FeedbackCreate,
    FeedbackRecord,
    FeedbackStats,
    Sentiment,
)

__all__ = [
    "as_utc",
    "new_id",
    "utc_now",
    "CustomQuestion",
    "CustomQuestionType",
    "QRCode",
    "QRCodeRecord",
    "QRCodeUpdate",
    "CustomQuestionAnswer",
    "Feedback",
    "FeedbackCreate",
    "FeedbackRecord",
    "FeedbackStats",
    "Sentiment",
]

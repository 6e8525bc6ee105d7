"""Feedback model - one submitted response to a QR code."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import field_validator
from sqlalchemy import JSON, DateTime, String
from sqlmodel import Column, Field, SQLModel

from .base import as_utc


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class CustomQuestionAnswer(SQLModel):
    question_id: str
    answer: str  # every answer type is carried as text


class FeedbackBase(SQLModel):
    # Not a foreign key: feedback may outlive its QR code if the cascade is skipped
    qr_code_id: str = Field(index=True, max_length=36)

    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email: Optional[str] = None

    rating: int = Field(ge=1, le=5)
    comment: str = ""
    context: str = ""

    sentiment: Sentiment = Field(sa_column=Column(String(20), nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

    custom_answers: Optional[List[CustomQuestionAnswer]] = Field(default=None, sa_column=Column(JSON))

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Feedback(FeedbackBase, table=True):
    __tablename__ = "feedback"

    id: str = Field(primary_key=True, max_length=36)


class FeedbackRecord(FeedbackBase):
    id: str


class FeedbackCreate(SQLModel):
    """What a customer submits; the service derives the rest."""
    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    custom_answers: Optional[List[CustomQuestionAnswer]] = None


class FeedbackStats(SQLModel):
    total: int = 0
    positive: int = 0
    neutral: int = 0
    negative: int = 0
    positive_percent: int = 0
    average_rating: Optional[float] = None
    active_qr_codes: int = 0
    expired_qr_codes: int = 0

"""QRCode model - one physical/contextual feedback collection point."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import field_validator, model_validator
from sqlalchemy import JSON, DateTime
from sqlmodel import Column, Field, SQLModel

from .base import as_utc


class CustomQuestionType(str, Enum):
    TEXT = "text"
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"
    RATING = "rating"


class CustomQuestion(SQLModel):
    id: str
    question_text: str = Field(min_length=1)
    required: bool = False
    type: CustomQuestionType = CustomQuestionType.TEXT
    options: Optional[List[str]] = None  # multiple_choice only

    @model_validator(mode="after")
    def _options_for_multiple_choice(self) -> "CustomQuestion":
        if self.type == CustomQuestionType.MULTIPLE_CHOICE and not self.options:
            raise ValueError("multiple_choice questions need at least one option")
        return self


class QRCodeBase(SQLModel):
    context: str = Field(min_length=1)

    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

    max_scans: int = Field(default=100, ge=1)
    current_scans: int = Field(default=0, ge=0)
    is_active: bool = True

    custom_questions: Optional[List[CustomQuestion]] = Field(default=None, sa_column=Column(JSON))

    @field_validator("created_at", "expires_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class QRCode(QRCodeBase, table=True):
    __tablename__ = "qr_codes"

    id: str = Field(primary_key=True, max_length=36)


class QRCodeRecord(QRCodeBase):
    id: str


class QRCodeUpdate(SQLModel):
    """Partial update; only fields that were explicitly set are applied."""
    context: Optional[str] = None
    expires_at: Optional[datetime] = None
    max_scans: Optional[int] = None
    current_scans: Optional[int] = None
    is_active: Optional[bool] = None
    custom_questions: Optional[List[CustomQuestion]] = None

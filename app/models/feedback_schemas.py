"""
Request/response DTOs for the feedback endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.feedback import MAX_MESSAGE_LENGTH, FeedbackRecord

MAX_ADJUSTMENT = 0.15


class FeedbackRequest(BaseModel):
    student_id: UUID
    task_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    language: Optional[Literal["en", "ru"]] = None


class StrategyUpdate(BaseModel):
    """Response to a feedback submission. Derived, never stored as-is."""

    student_id: UUID
    task_id: str
    difficulty_adjustment: float = Field(..., ge=-MAX_ADJUSTMENT, le=MAX_ADJUSTMENT)
    topic_weights: Dict[str, float]
    sentiment: str
    strategy_snapshot: Dict[str, Any]
    timestamp: datetime


class FeedbackHistoryItem(BaseModel):
    id: UUID
    student_id: UUID
    message: str
    perceived_difficulty: str
    strategy_snapshot: Any
    created_at: datetime

    @classmethod
    def from_record(cls, record: FeedbackRecord) -> "FeedbackHistoryItem":
        return cls(
            id=record.id,
            student_id=record.student_id,
            message=record.message,
            perceived_difficulty=record.perceived_difficulty.value,
            strategy_snapshot=record.snapshot,
            created_at=record.created_at,
        )


class FeedbackHistory(BaseModel):
    items: List[FeedbackHistoryItem]
    total: int


class ErrorResponse(BaseModel):
    code: str
    message: str

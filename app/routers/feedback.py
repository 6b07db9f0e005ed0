"""
Feedback Router
===============

- POST /api/v1/feedback                         submit feedback, get a strategy update
- GET  /api/v1/students/{student_id}/feedback   recent feedback for one student

Validation failures answer 400 INVALID_REQUEST; every core failure answers
500 INTERNAL_ERROR (see app.core.errors.middleware).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.config import settings
from app.container import get_feedback_service
from app.models.feedback_schemas import (
    ErrorResponse,
    FeedbackHistory,
    FeedbackHistoryItem,
    FeedbackRequest,
    StrategyUpdate,
)
from app.services.feedback_service import FeedbackService

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Internal error"},
}


@router.post("/feedback", response_model=StrategyUpdate, responses=_ERROR_RESPONSES)
async def submit_feedback(
    payload: FeedbackRequest,
    service: FeedbackService = Depends(get_feedback_service),
):
    """Process student feedback about task difficulty."""
    return await service.process_feedback(payload)


@router.get(
    "/students/{student_id}/feedback",
    response_model=FeedbackHistory,
    responses=_ERROR_RESPONSES,
)
async def list_student_feedback(
    student_id: UUID,
    limit: int = Query(10, ge=1, le=settings.feedback_history_max_limit),
    service: FeedbackService = Depends(get_feedback_service),
):
    """Most recent feedback for a student, newest first."""
    records = await service.recent_feedback(student_id, limit)
    items = [FeedbackHistoryItem.from_record(r) for r in records]
    return FeedbackHistory(items=items, total=len(items))

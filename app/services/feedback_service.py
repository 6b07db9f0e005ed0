"""
Feedback Service
================

Processes one piece of student feedback per call:

    resolve language -> classify -> build strategy snapshot -> persist -> respond

Steps before persistence are local and cannot fail on a validated request.
Any persistence failure propagates unchanged; a classification without a
stored record is never reported as success. Nothing is retried here.
"""

from __future__ import annotations

import logging
import time
import unicodedata
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from app.core.errors import MentorError
from app.models.feedback import FeedbackRecord
from app.models.feedback_schemas import FeedbackRequest, StrategyUpdate
from app.services.feedback_repository import FeedbackRepository
from app.services.strategy_analyzer import FeedbackClassifier

DEFAULT_LANGUAGE = "en"
CYRILLIC_LANGUAGE = "ru"


def detect_language(text: str) -> str:
    """Return "ru" if ``text`` contains any Cyrillic character, else "en"."""
    if any(unicodedata.name(ch, "").startswith("CYRILLIC") for ch in text):
        return CYRILLIC_LANGUAGE
    return DEFAULT_LANGUAGE


def calculate_topic_weights(adjustment: float) -> Dict[str, float]:
    """Uniform weight for every topic.

    Only a single "general" topic exists until a classifier can tell topics
    apart; the mapping shape is kept so per-topic weights can be added later.
    """
    return {"general": 1.0 + adjustment}


def build_strategy_snapshot(adjustment: float, language: str, sentiment: str, generated_at: float) -> Dict[str, Any]:
    return {
        "difficulty_weight": 1.0 + adjustment,
        "timestamp": int(generated_at),
        "feedback_based": True,
        "language": language,
        "sentiment": sentiment,
    }


class FeedbackService:
    """Orchestrates classification and persistence of student feedback."""

    def __init__(
        self,
        repository: FeedbackRepository,
        classifier: FeedbackClassifier,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._repository = repository
        self._classifier = classifier
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock

    async def process_feedback(self, request: FeedbackRequest) -> StrategyUpdate:
        language = request.language or detect_language(request.message)

        difficulty, adjustment = self._classifier.classify(request.message, language)

        snapshot = build_strategy_snapshot(adjustment, language, difficulty.value, self._clock())
        record = FeedbackRecord.new(
            student_id=request.student_id,
            message=request.message,
            perceived_difficulty=difficulty,
            snapshot=snapshot,
        )

        try:
            await self._repository.save(record)
        except MentorError as e:
            self._logger.error(
                "feedback_save_failed",
                extra={
                    "student_id": str(request.student_id),
                    "task_id": request.task_id,
                    "error.code": e.code,
                },
            )
            raise

        self._logger.info(
            "feedback_saved",
            extra={
                "feedback_id": str(record.id),
                "student_id": str(record.student_id),
                "task_id": request.task_id,
                "difficulty": difficulty.value,
                "adjustment": adjustment,
                "language": language,
            },
        )

        return StrategyUpdate(
            student_id=record.student_id,
            task_id=request.task_id,
            difficulty_adjustment=adjustment,
            topic_weights=calculate_topic_weights(adjustment),
            sentiment=record.perceived_difficulty.value,
            strategy_snapshot=record.snapshot,
            timestamp=datetime.now(timezone.utc),
        )

    async def recent_feedback(self, student_id: UUID, limit: int) -> list[FeedbackRecord]:
        """Read-only history for one student, newest first."""
        return await self._repository.get_latest_by_student(student_id, limit)

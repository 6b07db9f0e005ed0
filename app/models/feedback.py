"""
Feedback Model
==============

A single student feedback event as stored in the ``feedback`` table.

There is no ORM mapping: the database is only reachable through the Dapr
binding, so FeedbackRepository owns the SQL and the row coercion. The
record keeps its strategy snapshot as canonical JSON text (sorted keys,
compact separators) so two snapshots compare equal after a round trip
through ``jsonb``, which does not preserve key order.

Table (managed outside this service):

    feedback(id uuid primary key default gen_random_uuid(),
             student_id uuid not null,
             message text not null,
             perceived_difficulty text not null,
             strategy_snapshot jsonb not null,
             created_at timestamptz not null default now())
"""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

MAX_MESSAGE_LENGTH = 5000


class Difficulty(str, Enum):
    """Closed label set for perceived difficulty / sentiment."""

    HARD = "hard"
    OK = "ok"
    EASY = "easy"


def canonical_snapshot(value: Any) -> str:
    """Serialize a snapshot document to its canonical JSON text.

    Raises ValueError for values JSON cannot represent (NaN, sets, ...).
    """
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except TypeError as e:
        raise ValueError(f"strategy snapshot is not JSON-serializable: {e}") from e


@dataclass
class FeedbackRecord:
    student_id: uuid.UUID
    message: str
    perceived_difficulty: Difficulty
    strategy_snapshot: str
    id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if len(self.message) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"message exceeds {MAX_MESSAGE_LENGTH} characters")
        self.perceived_difficulty = Difficulty(self.perceived_difficulty)
        # Re-canonicalize so equality does not depend on how the caller spelled the JSON
        self.strategy_snapshot = canonical_snapshot(json.loads(self.strategy_snapshot))

    @classmethod
    def new(
        cls,
        student_id: uuid.UUID,
        message: str,
        perceived_difficulty: Difficulty,
        snapshot: dict,
    ) -> "FeedbackRecord":
        """Build an unsaved record; ``id`` and ``created_at`` are set by the repository."""
        return cls(
            student_id=student_id,
            message=message,
            perceived_difficulty=perceived_difficulty,
            strategy_snapshot=canonical_snapshot(snapshot),
        )

    @property
    def snapshot(self) -> Any:
        return json.loads(self.strategy_snapshot)

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

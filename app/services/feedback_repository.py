"""
Feedback Repository
===================

The only place that knows the feedback SQL and the only place that turns
gateway rows (plain JSON values, no schema) into FeedbackRecord objects.

Every field goes through an explicit coercion function that checks the
runtime type first; a missing key, a wrong type or an unparseable value is a
DecodeError, never a default. One bad row aborts the whole read.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Optional

from app.core.errors import DecodeError, PersistenceError, describe_shape
from app.models.feedback import Difficulty, FeedbackRecord, canonical_snapshot
from app.services.relational_gateway import RelationalGateway, Row

INSERT_FEEDBACK_SQL = """
INSERT INTO feedback (student_id, message, perceived_difficulty, strategy_snapshot)
VALUES ($1, $2, $3, $4::jsonb)
RETURNING id, created_at
"""

SELECT_LATEST_SQL = """
SELECT id, student_id, message, perceived_difficulty, strategy_snapshot, created_at
FROM feedback
WHERE student_id = $1
ORDER BY created_at DESC
LIMIT $2
"""

# Accepted timestamp layouts, tried in order. The database/binding pair does
# not promise a single text format across versions.
TIMESTAMP_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",  # fractional seconds, any precision (truncated to µs)
    "%Y-%m-%dT%H:%M:%S%z",     # whole seconds
    "%Y-%m-%d %H:%M:%S.%f%z",  # PostgreSQL text output, six fractional digits
    "%Y-%m-%d %H:%M:%S%z",     # PostgreSQL text output, zero microseconds
)

# strptime's %f stops at microseconds; nanosecond precision is cut to fit
_SUBMICRO_FRACTION = re.compile(r"(\.\d{6})\d+")
# PostgreSQL prints whole-hour offsets as "+00"; %z needs minutes
_HOUR_ONLY_OFFSET = re.compile(r"([+-]\d{2})$")


def _field(row: Row, name: str) -> Any:
    if name not in row:
        raise DecodeError(f"row is missing {name!r}", payload_shape=f"keys={sorted(row)}")
    return row[name]


def _as_str(row: Row, name: str) -> str:
    value = _field(row, name)
    if not isinstance(value, str):
        raise DecodeError(f"{name} is not a string", payload_shape=type(value).__name__)
    return value


def _as_uuid(row: Row, name: str) -> uuid.UUID:
    text = _as_str(row, name)
    try:
        return uuid.UUID(text)
    except ValueError as e:
        raise DecodeError(f"{name} is not a UUID: {text!r}", payload_shape="str") from e


def _as_difficulty(row: Row, name: str) -> Difficulty:
    text = _as_str(row, name)
    try:
        return Difficulty(text)
    except ValueError as e:
        raise DecodeError(f"{name} is not a known label: {text!r}", payload_shape="str") from e


def _as_snapshot(row: Row, name: str) -> str:
    value = _field(row, name)
    if value is None:
        raise DecodeError(f"{name} is null", payload_shape="null")
    # jsonb arrives already parsed; re-serialize without interpreting it
    try:
        return canonical_snapshot(value)
    except ValueError as e:
        raise DecodeError(f"{name} is not canonical JSON: {e}", payload_shape=describe_shape(value)) from e


def parse_timestamp(text: str) -> datetime:
    """Parse a timestamptz text value using the accepted layouts.

    Raises:
        ValueError: no layout matches, or the value carries no UTC offset.
    """
    normalized = _SUBMICRO_FRACTION.sub(r"\1", text.strip())
    normalized = _HOUR_ONLY_OFFSET.sub(r"\1:00", normalized)
    for layout in TIMESTAMP_LAYOUTS:
        try:
            return datetime.strptime(normalized, layout)
        except ValueError:
            continue
    raise ValueError(f"cannot parse timestamp {text!r}")


def _as_datetime(row: Row, name: str) -> datetime:
    text = _as_str(row, name)
    try:
        return parse_timestamp(text)
    except ValueError as e:
        raise DecodeError(f"{name}: {e}", payload_shape="str") from e


def decode_record(row: Row) -> FeedbackRecord:
    """Build a FeedbackRecord from a full feedback row."""
    fields = dict(
        id=_as_uuid(row, "id"),
        student_id=_as_uuid(row, "student_id"),
        message=_as_str(row, "message"),
        perceived_difficulty=_as_difficulty(row, "perceived_difficulty"),
        strategy_snapshot=_as_snapshot(row, "strategy_snapshot"),
        created_at=_as_datetime(row, "created_at"),
    )
    try:
        return FeedbackRecord(**fields)
    except ValueError as e:
        raise DecodeError(f"invalid feedback row: {e}", payload_shape=f"keys={sorted(row)}") from e


class FeedbackRepository:
    """Feedback persistence over the relational gateway."""

    def __init__(self, gateway: RelationalGateway, logger: Optional[logging.Logger] = None):
        self._gateway = gateway
        self._logger = logger or logging.getLogger(__name__)

    async def save(self, record: FeedbackRecord, timeout: Optional[float] = None) -> FeedbackRecord:
        """Insert ``record`` and copy the server-assigned id/created_at onto it.

        Raises:
            ValueError: the record was already saved.
            PersistenceError: the insert returned no row.
            DecodeError: the returned id/created_at could not be parsed.
            GatewayUnavailable: the binding call failed.
        """
        if record.is_persisted:
            raise ValueError(f"feedback {record.id} is already persisted")

        rows = await self._gateway.query(
            INSERT_FEEDBACK_SQL,
            (
                record.student_id,
                record.message,
                record.perceived_difficulty.value,
                record.strategy_snapshot,
            ),
            timeout=timeout,
        )
        if not rows:
            raise PersistenceError(
                "insert into feedback returned no rows",
                context={"student_id": str(record.student_id)},
            )

        returned = rows[0]
        record_id = _as_uuid(returned, "id")
        created_at = _as_datetime(returned, "created_at")
        record.id = record_id
        record.created_at = created_at
        return record

    async def get_latest_by_student(
        self,
        student_id: uuid.UUID,
        limit: int,
        timeout: Optional[float] = None,
    ) -> list[FeedbackRecord]:
        """Most recent feedback for a student, newest first."""
        if limit < 1:
            raise ValueError("limit must be positive")

        rows = await self._gateway.query(SELECT_LATEST_SQL, (student_id, limit), timeout=timeout)
        try:
            return [decode_record(row) for row in rows]
        except DecodeError:
            self._logger.error(
                "feedback_row_decode_failed",
                extra={"student_id": str(student_id), "rows": len(rows)},
            )
            raise

"""
Tests for FeedbackRepository: save/read round trip through the gateway,
row coercion, timestamp layouts.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import DecodeError, GatewayUnavailable, PersistenceError
from app.models.feedback import Difficulty, FeedbackRecord
from app.services.feedback_repository import (
    FeedbackRepository,
    decode_record,
    parse_timestamp,
)
from app.services.relational_gateway import RelationalGateway

STUDENT_ID = uuid.UUID("4f6b2b1e-9c1a-4d2b-8f43-1a2b3c4d5e6f")


def _record(message="this is too hard", difficulty=Difficulty.HARD, snapshot=None):
    return FeedbackRecord.new(
        student_id=STUDENT_ID,
        message=message,
        perceived_difficulty=difficulty,
        snapshot=snapshot or {"difficulty_weight": 0.85, "feedback_based": True, "language": "en"},
    )


def _row(**overrides):
    row = {
        "id": "0b8f6a3e-55d1-4b8e-9a43-7c0f4c2f1d10",
        "student_id": str(STUDENT_ID),
        "message": "fine",
        "perceived_difficulty": "ok",
        "strategy_snapshot": {"difficulty_weight": 1.0},
        "created_at": "2026-03-01T09:00:00.123456+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def repository(fake_binding):
    return FeedbackRepository(RelationalGateway(fake_binding))


class TestSave:
    @pytest.mark.asyncio
    async def test_save_assigns_id_and_created_at(self, repository, fake_binding):
        record = _record()
        assert record.id is None and record.created_at is None

        returned = await repository.save(record)

        assert returned is record
        assert isinstance(record.id, uuid.UUID)
        assert record.created_at.tzinfo is not None
        assert str(record.id) == fake_binding.rows[0]["id"]

    @pytest.mark.asyncio
    async def test_save_sends_snapshot_as_json_param(self, repository, fake_binding):
        await repository.save(_record())

        operation, sql, metadata = fake_binding.calls[0]
        params = json.loads(metadata["params"])
        assert operation == "query"
        assert "RETURNING id, created_at" in sql
        assert "$4::jsonb" in sql
        assert params[0] == str(STUDENT_ID)
        assert params[2] == "hard"
        assert json.loads(params[3]) == {"difficulty_weight": 0.85, "feedback_based": True, "language": "en"}

    @pytest.mark.asyncio
    async def test_save_without_returned_row_is_persistence_error(self, repository, fake_binding):
        fake_binding.insert_returns_nothing = True
        record = _record()

        with pytest.raises(PersistenceError):
            await repository.save(record)
        assert record.id is None

    @pytest.mark.asyncio
    async def test_save_twice_is_rejected(self, repository):
        record = await repository.save(_record())
        with pytest.raises(ValueError):
            await repository.save(record)

    @pytest.mark.asyncio
    async def test_save_with_malformed_returned_id(self):
        gateway = MagicMock()
        gateway.query = AsyncMock(return_value=[{"id": "not-a-uuid", "created_at": "2026-03-01T09:00:00Z"}])
        record = _record()

        with pytest.raises(DecodeError):
            await FeedbackRepository(gateway).save(record)
        assert record.id is None

    @pytest.mark.asyncio
    async def test_save_gateway_unavailable(self, unavailable_binding):
        repository = FeedbackRepository(RelationalGateway(unavailable_binding))
        with pytest.raises(GatewayUnavailable):
            await repository.save(_record())


class TestGetLatestByStudent:
    @pytest.mark.asyncio
    async def test_round_trip(self, repository):
        snapshot = {"difficulty_weight": 1.15, "timestamp": 1772355600, "nested": {"a": [1, 2.5]}}
        saved = await repository.save(_record("it's boring", Difficulty.EASY, snapshot))

        [loaded] = await repository.get_latest_by_student(STUDENT_ID, limit=1)

        assert loaded.id == saved.id
        assert loaded.created_at == saved.created_at
        assert loaded.student_id == saved.student_id
        assert loaded.message == saved.message
        assert loaded.perceived_difficulty == saved.perceived_difficulty
        assert loaded.strategy_snapshot == saved.strategy_snapshot
        assert loaded.snapshot == snapshot
        assert loaded == saved

    @pytest.mark.asyncio
    async def test_newest_first_and_limited(self, repository):
        for message in ("first", "second", "third"):
            await repository.save(_record(message, Difficulty.OK))

        records = await repository.get_latest_by_student(STUDENT_ID, limit=2)

        assert [r.message for r in records] == ["third", "second"]
        assert records[0].created_at > records[1].created_at

    @pytest.mark.asyncio
    async def test_no_rows(self, repository):
        assert await repository.get_latest_by_student(uuid.uuid4(), limit=5) == []

    @pytest.mark.asyncio
    async def test_non_positive_limit(self, repository):
        with pytest.raises(ValueError):
            await repository.get_latest_by_student(STUDENT_ID, limit=0)

    @pytest.mark.asyncio
    async def test_one_bad_row_aborts_whole_read(self, repository, fake_binding):
        await repository.save(_record("good one"))
        await repository.save(_record("bad one"))
        fake_binding.rows[1]["perceived_difficulty"] = "meh"

        with pytest.raises(DecodeError):
            await repository.get_latest_by_student(STUDENT_ID, limit=10)


class TestDecodeRecord:
    def test_valid_row(self):
        record = decode_record(_row())
        assert record.id == uuid.UUID("0b8f6a3e-55d1-4b8e-9a43-7c0f4c2f1d10")
        assert record.perceived_difficulty is Difficulty.OK
        assert record.created_at == datetime(2026, 3, 1, 9, 0, 0, 123456, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"id": "zero"},
            {"id": 42},
            {"student_id": None},
            {"message": 17},
            {"perceived_difficulty": "very hard"},
            {"strategy_snapshot": None},
            {"created_at": 1772355600},
            {"created_at": "yesterday"},
        ],
    )
    def test_bad_field_is_decode_error(self, overrides):
        with pytest.raises(DecodeError):
            decode_record(_row(**overrides))

    def test_non_finite_snapshot_is_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_record(_row(strategy_snapshot={"difficulty_weight": float("nan")}))
        assert "strategy_snapshot" in exc_info.value.detail
        assert exc_info.value.payload_shape == "dict{difficulty_weight}"

    def test_missing_field_is_decode_error(self):
        row = _row()
        del row["message"]
        with pytest.raises(DecodeError) as exc_info:
            decode_record(row)
        assert "message" in exc_info.value.detail

    def test_snapshot_key_order_does_not_matter(self):
        a = decode_record(_row(strategy_snapshot={"a": 1, "b": 2}))
        b = decode_record(_row(strategy_snapshot={"b": 2, "a": 1}))
        assert a.strategy_snapshot == b.strategy_snapshot

    def test_scalar_snapshot_is_kept_verbatim(self):
        assert decode_record(_row(strategy_snapshot=[1, "two"])).snapshot == [1, "two"]


class TestParseTimestamp:
    def test_nanosecond_fraction(self):
        assert parse_timestamp("2026-03-01T09:00:00.123456789Z") == datetime(
            2026, 3, 1, 9, 0, 0, 123456, tzinfo=timezone.utc
        )

    def test_whole_seconds_with_offset(self):
        parsed = parse_timestamp("2026-03-01T11:00:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)
        assert parsed == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_postgres_text_output(self):
        assert parse_timestamp("2026-03-01 09:00:00.500000+00") == datetime(
            2026, 3, 1, 9, 0, 0, 500000, tzinfo=timezone.utc
        )

    def test_postgres_text_output_whole_seconds(self):
        assert parse_timestamp("2026-03-01 09:00:00+00") == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_short_fraction(self):
        assert parse_timestamp("2026-03-01T09:00:00.5+00:00").microsecond == 500000

    @pytest.mark.parametrize(
        "text",
        ["01/03/2026 09:00", "2026-03-01T09:00:00", "2026-03-01", "", "1772355600"],
    )
    def test_unrecognized_layout(self, text):
        with pytest.raises(ValueError):
            parse_timestamp(text)

    @pytest.mark.asyncio
    async def test_repository_accepts_postgres_text_output(self, fake_binding):
        fake_binding.timestamp_format = "%Y-%m-%d %H:%M:%S.%f+00"
        repository = FeedbackRepository(RelationalGateway(fake_binding))

        saved = await repository.save(_record())
        [loaded] = await repository.get_latest_by_student(STUDENT_ID, limit=1)

        assert loaded.created_at == saved.created_at

    @pytest.mark.asyncio
    async def test_repository_accepts_postgres_whole_seconds(self, fake_binding):
        fake_binding.timestamp_format = "%Y-%m-%d %H:%M:%S+00"
        repository = FeedbackRepository(RelationalGateway(fake_binding))

        saved = await repository.save(_record())
        [loaded] = await repository.get_latest_by_student(STUDENT_ID, limit=1)

        assert saved.created_at.microsecond == 0
        assert loaded.created_at == saved.created_at

"""
Pytest configuration for mentor-api tests.
Sets environment variables before any app imports and provides an in-memory
stand-in for the Dapr PostgreSQL binding.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timedelta, timezone

# Must be set before app.config is imported
os.environ.setdefault("MENTOR_LOG_TO_FILE", "false")
os.environ.setdefault("MENTOR_DAPR_HOST", "dapr.test")

import pytest

from app.core.errors import GatewayUnavailable
from app.core.errors.registry import error_registry

error_registry.load()


def wrapped_response(rows) -> bytes:
    """Encode rows the way the binding returns an aggregated query result."""
    return json.dumps([[json.dumps(rows)]]).encode()


class FakePostgresBinding:
    """Stands in for DaprBindingClient; answers the feedback table statements.

    Query responses use the one-row/one-text-cell shape produced by the
    gateway's json_agg wrapper. ``created_at`` values are rendered with
    ``timestamp_format`` so tests can exercise other text layouts.
    """

    binding_name = "mentor-db-test"

    def __init__(self, timestamp_format: str = "%Y-%m-%dT%H:%M:%S.%f+00:00"):
        self.rows: list[dict] = []
        self.calls: list[tuple[str, str, dict]] = []
        self.fail_with: Exception | None = None
        self.insert_returns_nothing = False
        self.timestamp_format = timestamp_format
        self._clock = datetime(2026, 3, 1, 9, 0, 0, 123456, tzinfo=timezone.utc)

    async def invoke(self, operation, data, metadata=None, timeout=None):
        self.calls.append((operation, data, metadata or {}))
        if self.fail_with is not None:
            raise self.fail_with
        if operation == "exec":
            return b""

        params = json.loads((metadata or {}).get("params", "[]"))
        if "INSERT INTO feedback" in data:
            return wrapped_response(self._insert(params))
        if "FROM feedback" in data:
            return wrapped_response(self._select(params))
        raise AssertionError(f"unexpected statement: {data}")

    def _insert(self, params):
        if self.insert_returns_nothing:
            return []
        self._clock += timedelta(seconds=1)
        row = {
            "id": str(uuid.uuid4()),
            "student_id": params[0],
            "message": params[1],
            "perceived_difficulty": params[2],
            # jsonb comes back parsed, with its own key order
            "strategy_snapshot": dict(reversed(list(json.loads(params[3]).items()))),
            "created_at": self._clock,
        }
        self.rows.append(row)
        return [{"id": row["id"], "created_at": self._render(row["created_at"])}]

    def _select(self, params):
        student_id, limit = params
        matching = [r for r in self.rows if r["student_id"] == student_id]
        matching.sort(key=lambda r: r["created_at"], reverse=True)
        return [
            {**r, "created_at": self._render(r["created_at"])}
            for r in matching[:limit]
        ]

    def _render(self, value: datetime) -> str:
        return value.strftime(self.timestamp_format)


@pytest.fixture
def fake_binding():
    return FakePostgresBinding()


@pytest.fixture
def unavailable_binding():
    binding = FakePostgresBinding()
    binding.fail_with = GatewayUnavailable("binding mentor-db-test: connection refused")
    return binding


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

"""
Relational Gateway
==================

Executes parameterized SQL against PostgreSQL through the Dapr binding.

The PostgreSQL binding's ``query`` operation answers with positional value
arrays only (``[[v1, v2, ...], ...]``); column names are lost. To get named
rows back, ``query`` wraps the caller's statement so the database serializes
its own result set:

    WITH _rows AS (<statement>)
    SELECT COALESCE(json_agg(_rows), '[]'::json)::text FROM _rows

The binding then always returns exactly one row with one text cell, and
``decode_rows`` unwraps it in two steps: the outer ``[[ "<json>" ]]`` and
the inner JSON array of row objects. Both steps fail loudly with DecodeError
on any other shape. The CTE form also accepts INSERT ... RETURNING.

``wrap_rows_as_json`` and ``decode_rows`` are the whole workaround; a direct
driver can replace this module without touching the repository.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID

from app.core.errors import DecodeError, describe_shape
from app.services.dapr_binding import DaprBindingClient

PING_SQL = "SELECT 1"

Row = dict[str, Any]


def wrap_rows_as_json(sql: str) -> str:
    """Wrap one statement so its result set comes back as a single JSON text cell."""
    return (
        "WITH _rows AS (\n"
        f"{_single_statement(sql)}\n"
        ")\n"
        "SELECT COALESCE(json_agg(_rows), '[]'::json)::text FROM _rows"
    )


def _reject_constant(token: str) -> Any:
    raise DecodeError(f"aggregated cell holds non-finite number {token}", payload_shape="list[1](list[1](str))")


def decode_rows(raw: bytes) -> list[Row]:
    """Decode a wrapped query response into named rows.

    Raises:
        DecodeError: the outer payload is not one row holding one text cell,
            or the inner text is not a JSON array of objects.
    """
    try:
        outer = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"binding response is not JSON: {e}", payload_shape="bytes") from e

    if not (
        isinstance(outer, list)
        and len(outer) == 1
        and isinstance(outer[0], list)
        and len(outer[0]) == 1
        and isinstance(outer[0][0], str)
    ):
        raise DecodeError(
            "expected one row with one text cell",
            payload_shape=describe_shape(outer),
        )

    try:
        inner = json.loads(outer[0][0], parse_constant=_reject_constant)
    except ValueError as e:
        raise DecodeError(f"aggregated cell is not JSON: {e}", payload_shape="list[1](list[1](str))") from e

    if not isinstance(inner, list):
        raise DecodeError("aggregated cell is not a JSON array", payload_shape=describe_shape(inner))
    for idx, row in enumerate(inner):
        if not isinstance(row, dict):
            raise DecodeError(
                f"row {idx} is not a JSON object",
                payload_shape=describe_shape(inner),
            )
    return inner


def encode_params(params: Sequence[Any]) -> str:
    """Serialize positional parameters for the binding's ``params`` metadata."""
    encoded = []
    for idx, value in enumerate(params):
        if value is None or isinstance(value, (str, bool, int, float)):
            encoded.append(value)
        elif isinstance(value, UUID):
            encoded.append(str(value))
        elif isinstance(value, datetime):
            encoded.append(value.isoformat())
        else:
            raise TypeError(f"param ${idx + 1}: unsupported type {type(value).__name__}")
    return json.dumps(encoded, allow_nan=False)


def _single_statement(sql: str) -> str:
    statement = sql.strip().rstrip(";").strip()
    if not statement:
        raise ValueError("empty SQL statement")
    if ";" in statement:
        raise ValueError("only a single SQL statement is allowed")
    return statement


class RelationalGateway:
    """SQL over a Dapr PostgreSQL binding."""

    def __init__(self, binding: DaprBindingClient, logger: Optional[logging.Logger] = None):
        self._binding = binding
        self._logger = logger or logging.getLogger(__name__)

    async def query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        timeout: Optional[float] = None,
    ) -> list[Row]:
        """Run a row-returning statement (SELECT, or INSERT/UPDATE ... RETURNING).

        Returns an empty list when the statement produced no rows.
        """
        wrapped = wrap_rows_as_json(sql)
        start = time.perf_counter()
        raw = await self._binding.invoke(
            "query",
            wrapped,
            metadata={"params": encode_params(params)},
            timeout=timeout,
        )
        try:
            rows = decode_rows(raw)
        except DecodeError as e:
            self._logger.error(
                "gateway_decode_failed",
                extra={"binding": self._binding.binding_name, "payload_shape": e.payload_shape},
            )
            raise
        self._logger.debug(
            "gateway_query",
            extra={
                "binding": self._binding.binding_name,
                "rows": len(rows),
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return rows

    async def exec(
        self,
        sql: str,
        params: Sequence[Any] = (),
        timeout: Optional[float] = None,
    ) -> None:
        """Run a statement whose rows, if any, are not needed."""
        await self._binding.invoke(
            "exec",
            _single_statement(sql),
            metadata={"params": encode_params(params)},
            timeout=timeout,
        )

    async def ping(self, timeout: Optional[float] = None) -> None:
        """Connectivity probe. Uses ``exec`` so it does not depend on row decoding."""
        await self.exec(PING_SQL, timeout=timeout)

"""
Error code system.

MentorError is the base exception for all structured errors. Each subclass
is pinned to one registry code; the error middleware looks the code up and
produces the public ``{code, message}`` response without leaking the
internal taxonomy.

Usage:
    from app.core.errors import GatewayUnavailable
    raise GatewayUnavailable("binding mentor-db: connection refused")
"""

from __future__ import annotations

import re
from typing import ClassVar, Optional

CODE_PATTERN = re.compile(r"^MNT-[A-Z]{2,6}-\d{3}$")


class MentorError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "MNT-DB-001".
        detail: Internal-only detail message (never exposed to callers).
        context: Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        code: str,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class _CodedError(MentorError):
    default_code: ClassVar[str]

    def __init__(self, detail: str | None = None, context: dict | None = None) -> None:
        super().__init__(self.default_code, detail=detail, context=context)


class GatewayUnavailable(_CodedError):
    """The binding could not be invoked (network fault, sidecar error, timeout)."""

    default_code = "MNT-DB-001"


class DecodeError(_CodedError):
    """A binding response or row did not have the expected shape.

    ``payload_shape`` describes what was actually received so the violation
    can be diagnosed from the logs without dumping the payload itself.
    """

    default_code = "MNT-DB-002"

    def __init__(
        self,
        detail: str | None = None,
        payload_shape: Optional[str] = None,
        context: dict | None = None,
    ) -> None:
        ctx = dict(context or {})
        if payload_shape is not None:
            ctx["payload_shape"] = payload_shape
        self.payload_shape = payload_shape
        super().__init__(detail, context=ctx)


class PersistenceError(_CodedError):
    """A write was accepted by the transport but returned no identity."""

    default_code = "MNT-DB-003"


class ClassificationError(_CodedError):
    default_code = "MNT-CLS-001"


class InvalidRequest(_CodedError):
    default_code = "MNT-API-001"


def describe_shape(value: object, depth: int = 2) -> str:
    """Summarise the structure of a decoded JSON value for diagnostics.

    >>> describe_shape([["x"]])
    'list[1](list[1](str))'
    """
    if isinstance(value, list):
        if depth <= 0 or not value:
            return f"list[{len(value)}]"
        return f"list[{len(value)}]({describe_shape(value[0], depth - 1)})"
    if isinstance(value, dict):
        keys = ",".join(sorted(str(k) for k in value)[:8])
        return f"dict{{{keys}}}"
    if value is None:
        return "null"
    return type(value).__name__

"""
Dapr Binding Client: HTTP client for a Dapr output binding.
============================================================

Wraps POST /v1.0/bindings/{name} on the local Dapr sidecar. The sidecar
forwards ``operation``/``data``/``metadata`` to the bound component (here the
PostgreSQL binding) and returns the component's response bytes as the body.

One client instance is shared by every request: the underlying
httpx.AsyncClient pools connections and is safe for concurrent use. Nothing
is retried here; retry policy belongs to the caller's transport layer.
Cancelling the awaiting task aborts the in-flight HTTP request.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.core.errors import GatewayUnavailable

DEFAULT_TIMEOUT = 5.0
_BODY_PREVIEW_CHARS = 200


class DaprBindingClient:
    """Async client for one named Dapr output binding."""

    def __init__(
        self,
        binding_name: str,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        api_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.binding_name = binding_name
        self._url = f"{base_url.rstrip('/')}/v1.0/bindings/{binding_name}"
        self._timeout = timeout
        self._headers = {"dapr-api-token": api_token} if api_token else {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._logger = logger or logging.getLogger(__name__)

    async def invoke(
        self,
        operation: str,
        data: str,
        metadata: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Invoke the binding and return the raw response body.

        Raises:
            GatewayUnavailable: transport fault, timeout, or a non-2xx answer
                from the sidecar (which is how component errors surface).
        """
        payload = {"operation": operation, "data": data, "metadata": metadata or {}}
        try:
            resp = await self._client.post(
                self._url,
                json=payload,
                headers=self._headers,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.TimeoutException as e:
            raise GatewayUnavailable(
                f"binding {self.binding_name}: {operation} timed out",
                context={"binding": self.binding_name, "operation": operation},
            ) from e
        except httpx.HTTPError as e:
            raise GatewayUnavailable(
                f"binding {self.binding_name}: {operation} failed: {e}",
                context={"binding": self.binding_name, "operation": operation},
            ) from e

        if resp.status_code >= 300:
            body = resp.text[:_BODY_PREVIEW_CHARS]
            self._logger.warning(
                "binding_invoke_failed",
                extra={
                    "binding": self.binding_name,
                    "operation": operation,
                    "http.status_code": resp.status_code,
                },
            )
            raise GatewayUnavailable(
                f"binding {self.binding_name}: {operation} returned HTTP {resp.status_code}: {body}",
                context={
                    "binding": self.binding_name,
                    "operation": operation,
                    "status_code": resp.status_code,
                },
            )

        return resp.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

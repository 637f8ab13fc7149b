"""
GuardSpine — Backend Transport Client

Thin async JSON client for the GuardSpine API. Every request is bounded by
a fixed timeout; timeouts and transport failures raise
GuardSpineTransportError. HTTP error statuses do NOT raise: the decoded
body is returned with its status and each call site decides what an
unexpected shape means.

Headers:
  - Authorization: Bearer <api_key>      (when an API key is configured)
  - X-GuardSpine-Backend: <backend>      (when backend != "auto")
  - X-GuardSpine-Model: <model>          (when a model is configured)

Usage:
    client = GuardSpineClient(config)
    res = await client.post("/api/v1/policies/evaluate", {...})
    res.status, res.data
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from guardspine.config import GuardSpineConfig
from guardspine.errors import GuardSpineTransportError

logger = logging.getLogger("guardspine.client")

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class ApiResponse:
    status: int
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def first(self, *keys: str) -> Any:
        """First truthy value among keys, e.g. first("id", "bead_id")."""
        for key in keys:
            value = self.data.get(key)
            if value:
                return value
        return None


class GuardSpineClient:
    """
    Async request/response client bound to one configuration snapshot.

    A new httpx.AsyncClient is opened per request so the client can be used
    from any event loop, including the background task pool.
    """

    def __init__(
        self,
        config: GuardSpineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self.config.api_url

    def headers(self, authenticated: bool = True) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not authenticated:
            return headers
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self.config.backend != "auto":
            headers["X-GuardSpine-Backend"] = self.config.backend
        if self.config.model:
            headers["X-GuardSpine-Model"] = self.config.model
        return headers

    # ── Backend calls ────────────────────────────────────────

    async def get(self, path: str, base_url: str | None = None) -> ApiResponse:
        return await self.request("GET", path, base_url=base_url)

    async def post(
        self, path: str, body: dict[str, Any] | None = None, base_url: str | None = None,
    ) -> ApiResponse:
        return await self.request("POST", path, body, base_url=base_url)

    async def put(
        self, path: str, body: dict[str, Any] | None = None, base_url: str | None = None,
    ) -> ApiResponse:
        return await self.request("PUT", path, body, base_url=base_url)

    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        base_url: str | None = None,
    ) -> ApiResponse:
        """Issue a request against the backend (or an explicit base URL)."""
        base = (base_url or self.base_url).rstrip("/")
        return await self._send(method, f"{base}{path}", body, self.headers())

    # ── External calls ───────────────────────────────────────

    async def post_external(self, url: str, body: dict[str, Any]) -> ApiResponse:
        """POST to a caller-configured URL (webhook). No auth headers."""
        return await self._send("POST", url, body, self.headers(authenticated=False))

    async def _send(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> ApiResponse:
        logger.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.request(method, url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise GuardSpineTransportError(
                "GuardSpine API timeout", code="ETIMEDOUT", url=url,
            ) from e
        except httpx.RequestError as e:
            raise GuardSpineTransportError(
                str(e) or type(e).__name__, code=type(e).__name__, url=url,
            ) from e

        return ApiResponse(status=resp.status_code, data=_decode(resp))


def _decode(resp: httpx.Response) -> dict[str, Any]:
    """JSON-decode a response; non-JSON bodies become {"raw": text}."""
    try:
        data = resp.json()
    except ValueError:
        return {"raw": resp.text}
    if isinstance(data, dict):
        return data
    return {"raw": data}

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from .config import DEFAULT_API_PREFIX, DEFAULT_TIMEOUT, dlog
from .errors import DecodeError, RequestError, TransportError


@dataclass(frozen=True)
class FormData:
    """Form-encoded request body; sent without a JSON content type."""

    fields: Mapping[str, Any]


def _error_message(payload: Any, status: int) -> str:
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {status}"


class RequestClient:
    """Async client for the admin REST surface.

    The underlying httpx client keeps the cookie jar, so the session cookie
    set by login travels with every later call. No retries, no caching.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_prefix: str = DEFAULT_API_PREFIX,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._prefix = api_prefix.rstrip("/")
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self._prefix}{path}"

    async def call(
        self,
        path: str,
        *,
        method: str = "GET",
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Issue one request and return the decoded payload (or None for an empty body).

        Raises TransportError / DecodeError; never a JSON parse exception.
        """
        url = self.url(path)
        send_headers: Dict[str, str] = dict(headers or {})
        kwargs: Dict[str, Any] = {}
        if body is not None:
            if isinstance(body, FormData):
                kwargs["data"] = dict(body.fields)
            elif isinstance(body, (bytes, bytearray)):
                kwargs["content"] = bytes(body)
            else:
                send_headers["Content-Type"] = "application/json"
                kwargs["content"] = body.encode("utf-8") if isinstance(body, str) else json.dumps(body)

        dlog("console_request", {"method": method, "url": url, "params": dict(params or {}), "has_body": body is not None})
        try:
            resp = await self._client.request(method, url, params=params, headers=send_headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach {url}: {e}") from e

        text = resp.text
        payload: Any = None
        decoded = True
        if text:
            try:
                payload = json.loads(text)
            except ValueError:
                decoded = False
                payload = {"error": text}
                dlog("console_response_not_json", {"url": url, "status": resp.status_code, "preview": text[:256]})

        dlog("console_response", {"method": method, "url": url, "status": resp.status_code})
        if not resp.is_success:
            message = _error_message(payload, resp.status_code)
            if not decoded:
                raise DecodeError(message, status=resp.status_code, payload=payload)
            raise TransportError(message, status=resp.status_code, payload=payload)
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RequestClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

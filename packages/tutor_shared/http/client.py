"""HTTP clients for the tutoring proxy (chat, speech synthesis, progress).

Both clients raise taxonomy errors instead of httpx exceptions: transport
failures become ``NetworkError`` and failing statuses become ``APIError``.
The errors can be passed straight to ``ErrorCoordinator.handle`` or left to
propagate out of an operation run under ``retry``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from .errors import json_decode_error, request_error, status_error

DEFAULT_TIMEOUT_SECONDS = 30.0


def _client_options(
    base_url: str,
    timeout_seconds: float,
    headers: Mapping[str, str] | None,
    api_key: str | None,
) -> dict[str, Any]:
    merged = dict(headers or {})
    if api_key:
        merged.setdefault("Authorization", f"Bearer {api_key}")
    return {"base_url": base_url, "timeout": timeout_seconds, "headers": merged}


def _checked(response: httpx.Response, raise_for_status: bool) -> httpx.Response:
    if raise_for_status and response.is_error:
        raise status_error(response)
    return response


def _decoded(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise json_decode_error(response, exc) from exc


class HttpClient:
    """Blocking client, for scripts and worker threads."""

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Mapping[str, str] | None = None,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(
            transport=transport,
            **_client_options(base_url, timeout_seconds, headers, api_key),
        )

    def close(self) -> None:
        """Close the underlying httpx client when this wrapper created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpClient:
        """Return this client for use in a ``with`` block."""
        return self

    def __exit__(self, *_: object) -> None:
        """Close the client on leaving the ``with`` block."""
        self.close()

    def request(
        self, method: str, url: str, *, raise_for_status: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """Send one request; raise ``NetworkError`` or ``APIError`` on failure."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise request_error(exc, method=method, url=url) from exc
        return _checked(response, raise_for_status)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request to ``url``."""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request to ``url``."""
        return self.request("POST", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request to ``url``."""
        return self.request("DELETE", url, **kwargs)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET ``url`` and decode the JSON body."""
        return _decoded(self.request("GET", url, **kwargs))

    def post_json(self, url: str, *, json: Any, **kwargs: Any) -> Any:
        """POST ``json`` to ``url`` and decode the JSON body."""
        return _decoded(self.request("POST", url, json=json, **kwargs))


class AsyncHttpClient:
    """Client for coroutines running on the application event loop."""

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Mapping[str, str] | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            transport=transport,
            **_client_options(base_url, timeout_seconds, headers, api_key),
        )

    async def aclose(self) -> None:
        """Close the underlying httpx client when this wrapper created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        """Return this client for use in an ``async with`` block."""
        return self

    async def __aexit__(self, *_: object) -> None:
        """Close the client on leaving the ``async with`` block."""
        await self.aclose()

    async def request(
        self, method: str, url: str, *, raise_for_status: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """Send one request; raise ``NetworkError`` or ``APIError`` on failure."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise request_error(exc, method=method, url=url) from exc
        return _checked(response, raise_for_status)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request to ``url``."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request to ``url``."""
        return await self.request("POST", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request to ``url``."""
        return await self.request("DELETE", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET ``url`` and decode the JSON body."""
        return _decoded(await self.request("GET", url, **kwargs))

    async def post_json(self, url: str, *, json: Any, **kwargs: Any) -> Any:
        """POST ``json`` to ``url`` and decode the JSON body."""
        return _decoded(await self.request("POST", url, json=json, **kwargs))

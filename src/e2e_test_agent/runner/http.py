"""HTTP client for `request` steps (httpx)."""

import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict


class HttpResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: Any = None  # decoded JSON when possible, else text
    text: str = ""
    elapsed_ms: float = 0.0


class HttpClient:
    """Issues requests through one shared `httpx.AsyncClient`.

    Non-2xx statuses are returned, not raised; assertions decide what
    counts as a failure.
    """

    def __init__(self, base_url: str = "", timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self.base_url:
            return url
        return self.base_url + "/" + url.lstrip("/")

    async def issue(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> HttpResponse:
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["content"] = str(body)

        start_time = time.monotonic()
        response = await self._client.request(method.upper(), self.resolve(url), **kwargs)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        try:
            decoded = response.json()
        except ValueError:
            decoded = response.text
        return HttpResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            body=decoded,
            text=response.text,
            elapsed_ms=elapsed_ms,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

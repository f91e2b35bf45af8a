from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from pagerkit.config import Settings
from pagerkit.pagination.page import PageResult, page_result_from_response

log = logging.getLogger(__name__)


def _is_retryable_exception(exc: BaseException) -> bool:
    # Network / timeout errors are usually retryable.
    if isinstance(exc, httpx.RequestError):
        return True

    # Only retry HTTP status errors that are plausibly transient.
    if isinstance(exc, httpx.HTTPStatusError):
        status = getattr(exc.response, "status_code", None)
        if status == 429:
            return True
        if isinstance(status, int) and 500 <= status <= 599:
            return True
        return False

    return False


@dataclass
class ServiceClient:
    """HTTP transport for one service endpoint.

    ``fetch`` is what a Pager calls for every page. Transient failures are
    retried here; the pagination layer itself never retries.
    """

    base_url: str
    auth_token: str | None = None
    default_headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 10.0
    max_attempts: int = 3
    transport: httpx.AsyncBaseTransport | None = None

    _client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceClient":
        return cls(
            base_url=settings.base_url.rstrip("/"),
            auth_token=settings.auth_token,
            default_headers=settings.extra_headers,
            timeout_seconds=settings.timeout_seconds,
            max_attempts=settings.max_attempts,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self.transport,
            )
        return self._client

    def url_for(self, *parts: str) -> str:
        path = "/".join(p.strip("/") for p in parts if p)
        return f"{self.base_url.rstrip('/')}/{path}"

    def absolute_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return self.url_for(url)

    def _headers_for(self, *, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        headers.update(self.default_headers)
        if self.auth_token:
            headers["X-Auth-Token"] = self.auth_token
        # Caller headers win over defaults.
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        resp = await self._get_client().request(
            method,
            url,
            params=params,
            headers=self._headers_for(extra=headers),
        )
        if resp.is_error:
            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                # Attach the response body to aid debugging; services often explain 4xx in it.
                body_preview = resp.text
                if body_preview:
                    raise httpx.HTTPStatusError(
                        f"{e} | body={body_preview}",
                        request=e.request,
                        response=e.response,
                    ) from None
                raise
        return resp

    async def request(
        self,
        method: Literal["GET", "POST", "DELETE", "PUT", "HEAD"],
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        url = self.absolute_url(url)
        async for attempt in AsyncRetrying(
            wait=wait_exponential_jitter(initial=0.2, max=2.0),
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception(_is_retryable_exception),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.info("retrying %s %s (attempt %d)", method, url, attempt.retry_state.attempt_number)
                return await self._send(method, url, params=params, headers=headers)
        raise AssertionError("unreachable")

    async def fetch(self, url: str, *, headers: Mapping[str, str] | None = None) -> PageResult:
        resp = await self.request("GET", url, headers=headers)
        return page_result_from_response(resp)

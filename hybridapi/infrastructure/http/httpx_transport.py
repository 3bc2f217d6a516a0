"""httpx-backed transport: implements the Transport port.

Sends JSON requests to the remote API with an ``httpx.AsyncClient``,
either an injected one (connection pooling, tests with MockTransport) or a
short-lived client per call.
"""

import json
import logging
from typing import Any

import httpx

from hybridapi.application.interfaces import Transport, TransportResponse
from hybridapi.domain.exceptions import RemoteTimeoutError, TransportError

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """Infrastructure adapter: executes requests against ``base_url``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._http_client = http_client

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout))

    async def execute(
        self,
        method: str,
        path: str,
        *,
        query_params: dict[str, str] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        url = self._url(path)
        request_timeout = httpx.Timeout(timeout or self._timeout, connect=self._connect_timeout)

        client = self._get_client()
        should_close = self._http_client is None

        try:
            response = await client.request(
                method,
                url,
                params=query_params or None,
                json=body,
                headers=headers,
                timeout=request_timeout,
            )
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError(f"{method} {url} timed out after {timeout or self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        return TransportResponse(
            status_code=response.status_code,
            body=self._decode(response),
            headers=dict(response.headers),
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """JSON body, ``None`` for an empty body, raw text otherwise."""
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Non-JSON response (%s), returning text", response.headers.get("content-type"))
            return response.text

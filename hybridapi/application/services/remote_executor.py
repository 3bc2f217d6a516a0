"""Remote executor: one authenticated, retried call to the remote API."""

import logging
from dataclasses import dataclass, field
from typing import Any

import backoff

from hybridapi.application.interfaces import AuthStrategy, OutgoingRequest, Transport
from hybridapi.domain.exceptions import (
    HybridApiError,
    RemoteStatusError,
    RemoteTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("password", "secret", "token", "key", "auth", "credential")


@dataclass
class RemoteRequest:
    """A request as the engine sees it, before authentication."""

    method: str
    path: str
    query_params: dict[str, str] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    entity_type: str | None = None
    operation: str | None = None


def sanitize(data: Any) -> Any:
    """Mask values whose key looks like a credential."""
    if isinstance(data, dict):
        return {
            k: "***" if any(s in str(k).lower() for s in SENSITIVE_KEYS) else sanitize(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [sanitize(v) for v in data]
    return data


class RemoteExecutor:
    """Sends requests through the transport with auth, timeout and retries.

    Transport failures, timeouts and 5xx responses are retried with
    exponential backoff; 4xx responses surface immediately. After the
    retries are exhausted the last error surfaces unchanged so the router
    can apply its fallback rules.
    """

    def __init__(
        self,
        transport: Transport,
        auth: AuthStrategy | None = None,
        *,
        default_headers: dict[str, str] | None = None,
        default_timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ):
        self._transport = transport
        self._auth = auth
        self._default_headers = dict(default_headers or {})
        self._default_timeout = default_timeout
        self._max_retries = max(0, max_retries)
        self._retry_delay = retry_delay
        self._retry_max_delay = retry_max_delay

    async def execute(self, request: RemoteRequest) -> Any:
        """Execute ``request`` and return the decoded response body."""
        outgoing = OutgoingRequest(
            method=request.method.upper(),
            path=request.path,
            query_params=dict(request.query_params),
            body=request.body,
            headers={**self._default_headers, **request.headers},
        )
        if self._auth is not None:
            outgoing = self._auth.apply(outgoing)
        timeout = request.timeout if request.timeout is not None else self._default_timeout

        send = backoff.on_exception(
            backoff.expo,
            (TransportError, RemoteStatusError),
            max_tries=self._max_retries + 1,
            giveup=self._is_permanent,
            on_backoff=self._log_backoff,
            jitter=backoff.full_jitter,
            factor=self._retry_delay,
            max_value=self._retry_max_delay,
            logger=None,
        )(self._send)

        try:
            return await send(outgoing, timeout)
        except HybridApiError as exc:
            raise exc.with_context(entity_type=request.entity_type, operation=request.operation)

    async def _send(self, request: OutgoingRequest, timeout: float) -> Any:
        logger.debug(
            "→ %s %s params=%s body=%s",
            request.method,
            request.path,
            sanitize(request.query_params),
            sanitize(request.body),
        )
        response = await self._transport.execute(
            request.method,
            request.path,
            query_params=request.query_params,
            body=request.body,
            headers=request.headers,
            timeout=timeout,
        )
        logger.debug("← %s %s status=%d", request.method, request.path, response.status_code)
        if response.status_code >= 400:
            raise RemoteStatusError(
                response.status_code,
                _error_message(response.status_code, response.body),
                body=response.body,
            )
        return response.body

    @staticmethod
    def _is_permanent(exc: Exception) -> bool:
        return isinstance(exc, RemoteStatusError) and not exc.is_server_error

    def _log_backoff(self, details: dict[str, Any]) -> None:
        exc = details["exception"]
        kind = "timeout" if isinstance(exc, RemoteTimeoutError) else type(exc).__name__
        logger.warning(
            "Remote call failed (%s), retrying in %.2fs (attempt %d/%d): %s",
            kind,
            details["wait"],
            details["tries"],
            self._max_retries + 1,
            exc,
        )


def _error_message(status_code: int, body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return f"Remote API returned status {status_code}: {value}"
    return f"Remote API returned status {status_code}"

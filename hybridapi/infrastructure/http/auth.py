"""Authentication strategies: implement the AuthStrategy port."""

import base64
from dataclasses import replace

from hybridapi.application.interfaces import AuthStrategy, OutgoingRequest
from hybridapi.config import Settings


class NoAuth(AuthStrategy):
    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        return request


class BearerTokenAuth(AuthStrategy):
    """``Authorization: Bearer <token>``."""

    def __init__(self, token: str):
        self._token = token

    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        return replace(request, headers={**request.headers, "Authorization": f"Bearer {self._token}"})


class ApiKeyAuth(AuthStrategy):
    """API key sent as a header, or as a query parameter when ``in_query`` is set."""

    def __init__(self, key: str, *, name: str = "X-API-Key", in_query: bool = False):
        self._key = key
        self._name = name
        self._in_query = in_query

    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        if self._in_query:
            return replace(request, query_params={**request.query_params, self._name: self._key})
        return replace(request, headers={**request.headers, self._name: self._key})


class BasicAuth(AuthStrategy):
    """HTTP basic authentication."""

    def __init__(self, username: str, password: str):
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self._header = f"Basic {token}"

    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        return replace(request, headers={**request.headers, "Authorization": self._header})


def build_auth_strategy(settings: Settings) -> AuthStrategy:
    """Select the strategy named by ``settings.api_auth_strategy``."""
    strategy = settings.api_auth_strategy.strip().lower()
    if strategy in ("", "none"):
        return NoAuth()
    if strategy == "bearer":
        return BearerTokenAuth(settings.api_token)
    if strategy == "api_key":
        return ApiKeyAuth(settings.api_key, name=settings.api_key_header, in_query=settings.api_key_in_query)
    if strategy == "basic":
        return BasicAuth(settings.api_username, settings.api_password)
    raise ValueError(f"Unknown api_auth_strategy '{settings.api_auth_strategy}'")

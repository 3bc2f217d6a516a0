from .auth import ApiKeyAuth, BasicAuth, BearerTokenAuth, NoAuth, build_auth_strategy
from .httpx_transport import HttpxTransport

__all__ = [
    "ApiKeyAuth",
    "BasicAuth",
    "BearerTokenAuth",
    "NoAuth",
    "build_auth_strategy",
    "HttpxTransport",
]

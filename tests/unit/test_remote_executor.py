"""Unit tests for authenticated, retried remote execution."""

import pytest

from hybridapi.application.services import RemoteExecutor, RemoteRequest
from hybridapi.application.services.remote_executor import sanitize
from hybridapi.domain.exceptions import RemoteStatusError, RemoteTimeoutError, TransportError
from hybridapi.infrastructure.http import BearerTokenAuth

from tests.support.fakes import FakeRemoteApi


def _executor(api, **kwargs):
    options = {"max_retries": 2, "retry_delay": 0.0, "retry_max_delay": 0.0}
    options.update(kwargs)
    return RemoteExecutor(api, **options)


def _get(path="/products", **kwargs):
    return RemoteRequest(method="GET", path=path, entity_type="product", operation="list", **kwargs)


@pytest.fixture
def api():
    api = FakeRemoteApi()
    api.seed("products", [{"id": 1, "name": "lamp"}])
    return api


@pytest.mark.asyncio
async def test_returns_decoded_body(api):
    body = await _executor(api).execute(_get())
    assert body == {"data": [{"id": 1, "name": "lamp"}], "meta": {"total": 1}}


@pytest.mark.asyncio
async def test_server_errors_are_retried(api):
    api.fail_next(503, 500)
    body = await _executor(api).execute(_get("/products/1"))
    assert body["name"] == "lamp"
    assert len(api.calls) == 3


@pytest.mark.asyncio
async def test_transport_errors_are_retried_until_exhausted(api):
    api.offline = True
    with pytest.raises(TransportError) as info:
        await _executor(api, max_retries=3).execute(_get())
    assert len(api.calls) == 4
    assert info.value.entity_type == "product"
    assert info.value.operation == "list"


@pytest.mark.asyncio
async def test_timeouts_keep_their_type(api):
    api.fail_next(*[RemoteTimeoutError("slow")] * 3)
    with pytest.raises(RemoteTimeoutError):
        await _executor(api).execute(_get())


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404, 422])
async def test_client_errors_are_not_retried(api, status):
    api.fail_next(status)
    with pytest.raises(RemoteStatusError) as info:
        await _executor(api).execute(_get())
    assert info.value.status_code == status
    assert info.value.is_client_error
    assert "scripted failure" in info.value.message
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_zero_retries_means_a_single_attempt(api):
    api.fail_next(500)
    with pytest.raises(RemoteStatusError):
        await _executor(api, max_retries=0).execute(_get())
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_headers_auth_and_timeout_are_applied(api):
    executor = _executor(
        api,
        auth=BearerTokenAuth("s3cret"),
        default_headers={"Accept": "application/json", "X-Client": "default"},
        default_timeout=12.0,
    )
    await executor.execute(_get(headers={"X-Client": "override"}))
    await executor.execute(_get(timeout=2.5))

    first, second = api.calls
    assert first["headers"] == {
        "Accept": "application/json",
        "X-Client": "override",
        "Authorization": "Bearer s3cret",
    }
    assert first["timeout"] == 12.0
    assert second["timeout"] == 2.5


@pytest.mark.asyncio
async def test_method_is_upper_cased(api):
    await _executor(api).execute(RemoteRequest(method="post", path="/products", body={"name": "desk"}))
    assert api.calls[0]["method"] == "POST"


def test_sanitize_masks_credentials():
    assert sanitize({"api_key": "abc", "nested": [{"password": "x", "name": "ok"}], "q": 1}) == {
        "api_key": "***",
        "nested": [{"password": "***", "name": "ok"}],
        "q": 1,
    }

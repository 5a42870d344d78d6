"""Tests for the registry HTTP adapter."""

import json

import httpx
import pytest

from provider_sync.adapters.registry import RegistryClient, RegistryError
from provider_sync.schemas.registry import UpdateProviderPayload

TOKEN_URL = "https://auth.registry.test/oauth/token"


class FakeRegistry:
    """Serves the token endpoint and queued API responses."""

    def __init__(self, *responses: httpx.Response, expires_in: int = 3600) -> None:
        self.responses = list(responses)
        self.expires_in = expires_in
        self.token_requests = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_requests += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self.token_requests}",
                    "expires_in": self.expires_in,
                },
            )
        self.requests.append(request)
        return self.responses.pop(0)


def _client(fake) -> RegistryClient:
    return RegistryClient(
        base_url="https://registry.test/api/",
        token_url=TOKEN_URL,
        client_id="id",
        client_secret="secret",
        transport=httpx.MockTransport(fake),
    )


def _page(*npis: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "listResponseModel": [{"providerNPI": npi} for npi in npis],
            "totalPages": 1,
        },
    )


@pytest.mark.asyncio
class TestAuthentication:
    async def test_token_is_cached(self) -> None:
        fake = FakeRegistry(_page("1"), _page("2"))
        client = _client(fake)

        await client.list_providers(1, 10)
        await client.list_providers(2, 10)

        assert fake.token_requests == 1
        assert all(r.headers["Authorization"] == "Bearer token-1" for r in fake.requests)

    async def test_token_near_expiry_is_renewed(self) -> None:
        # Lifetime inside the renewal margin, so every call fetches a new one
        fake = FakeRegistry(_page("1"), _page("2"), expires_in=60)
        client = _client(fake)

        await client.list_providers(1, 10)
        await client.list_providers(2, 10)

        assert fake.token_requests == 2

    async def test_unauthorized_refreshes_and_retries_once(self) -> None:
        fake = FakeRegistry(httpx.Response(401, json={"message": "expired"}), _page("1"))
        client = _client(fake)

        page = await client.list_providers(1, 10)

        assert [item.npi for item in page.items] == ["1"]
        assert fake.token_requests == 2
        assert fake.requests[1].headers["Authorization"] == "Bearer token-2"

    async def test_second_unauthorized_is_an_auth_error(self) -> None:
        fake = FakeRegistry(
            httpx.Response(401, json={"message": "expired"}),
            httpx.Response(401, json={"message": "still expired"}),
        )

        with pytest.raises(RegistryError) as exc_info:
            await _client(fake).list_providers(1, 10)

        assert exc_info.value.code == "auth_error"
        assert exc_info.value.message == "still expired"
        assert exc_info.value.retryable is False

    async def test_token_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="bad client")

        with pytest.raises(RegistryError) as exc_info:
            await _client(handler).list_providers(1, 10)

        assert exc_info.value.code == "auth_error"
        assert exc_info.value.message == "Registry token fetch failed (400): bad client"

    async def test_token_body_without_access_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token": "x"})

        with pytest.raises(RegistryError) as exc_info:
            await _client(handler).list_providers(1, 10)

        assert exc_info.value.code == "auth_error"
        assert exc_info.value.operation == "token"
        assert exc_info.value.status_code == 200

    async def test_token_body_not_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(RegistryError) as exc_info:
            await _client(handler).list_providers(1, 10)

        assert exc_info.value.code == "auth_error"
        assert exc_info.value.operation == "token"

    async def test_empty_access_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": "", "expires_in": 3600})

        with pytest.raises(RegistryError) as exc_info:
            await _client(handler).list_providers(1, 10)

        assert exc_info.value.code == "auth_error"
        assert exc_info.value.message == "Registry token fetch returned no access_token"


@pytest.mark.asyncio
class TestErrors:
    async def test_message_field_is_preferred(self) -> None:
        fake = FakeRegistry(httpx.Response(422, json={"message": "NPI is invalid"}))

        with pytest.raises(RegistryError) as exc_info:
            await _client(fake).set_electronic_only("P-1")

        assert exc_info.value.message == "NPI is invalid"
        assert exc_info.value.code == "invalid_request"
        assert exc_info.value.status_code == 422

    async def test_body_is_truncated(self) -> None:
        fake = FakeRegistry(httpx.Response(503, text="x" * 900))

        with pytest.raises(RegistryError) as exc_info:
            await _client(fake).list_providers(1, 10)

        message = exc_info.value.message
        assert message == "Registry provider list failed (503): " + "x" * 500
        assert exc_info.value.code == "registry_unavailable"
        assert exc_info.value.retryable is True

    async def test_rate_limit_is_retryable(self) -> None:
        fake = FakeRegistry(httpx.Response(429, json={"error": "slow down"}))

        with pytest.raises(RegistryError) as exc_info:
            await _client(fake).get_provider_registration("P-1")

        assert exc_info.value.code == "rate_limit"
        assert exc_info.value.retryable is True

    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RegistryError) as exc_info:
            await _client(handler).list_providers(1, 10)

        assert exc_info.value.code == "registry_unavailable"
        assert exc_info.value.retryable is True
        assert "connection refused" in exc_info.value.message

    async def test_invalid_page(self) -> None:
        fake = FakeRegistry(httpx.Response(200, json={"listResponseModel": "nope"}))

        with pytest.raises(RegistryError) as exc_info:
            await _client(fake).list_providers(1, 10)

        assert exc_info.value.code == "invalid_response"


@pytest.mark.asyncio
class TestOperations:
    async def test_list_providers_request(self) -> None:
        fake = FakeRegistry(_page("1"))

        await _client(fake).list_providers(3, 250)

        request = fake.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/providers"
        assert request.url.params["page"] == "3"
        assert request.url.params["pageSize"] == "250"

    async def test_set_emdr_registration_body(self) -> None:
        fake = FakeRegistry(httpx.Response(200, json={"provider_id": "P-1"}))

        result = await _client(fake).set_emdr_registration("P-1", False)

        request = fake.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/provider/P-1/emdr"
        assert json.loads(request.content) == {"register_for_emdr": False}
        assert result == {"provider_id": "P-1"}

    async def test_update_provider_posts_payload(self) -> None:
        fake = FakeRegistry(httpx.Response(200, content=b""))
        payload = UpdateProviderPayload(
            provider_name="Dr. Ada",
            provider_npi="1",
            provider_street="1 Main St",
            provider_street2="",
            provider_city="Springfield",
            provider_state="IL",
            provider_zip="62701",
        )

        result = await _client(fake).update_provider(payload)

        assert result == {}
        body = json.loads(fake.requests[0].content)
        assert body["provider_npi"] == "1"
        assert body["provider_state"] == "IL"

    async def test_registration_fills_missing_provider_id(self) -> None:
        fake = FakeRegistry(
            httpx.Response(200, json={"npi": "1", "reg_status": "Registered"})
        )

        payload = await _client(fake).get_provider_registration("P-7")

        assert payload.provider_id == "P-7"
        assert payload.reg_status == "Registered"
        assert fake.requests[0].url.path == "/api/provider/P-7/registration"

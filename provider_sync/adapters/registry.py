"""HTTP adapter for the external provider registry."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from ..config import get_settings
from ..observability.metrics import REGISTRY_REQUEST_DURATION, REGISTRY_REQUEST_ERRORS
from ..schemas.registry import (
    ProviderListPage,
    RegistrationPayload,
    UpdateProviderPayload,
)
from .telemetry import (
    REGISTRY_ERROR_TYPE,
    REGISTRY_LATENCY_MS,
    REGISTRY_OPERATION,
    REGISTRY_RETRYABLE,
    REGISTRY_STATUS_CODE,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("provider-sync.registry")

# Tokens are renewed this many seconds before the issuer says they expire
TOKEN_EXPIRY_MARGIN_SECONDS = 120
ERROR_BODY_LIMIT = 500


class RegistryError(Exception):
    """Raised for any registry transport, HTTP or payload failure."""

    def __init__(
        self,
        message: str,
        code: str = "unknown",
        status_code: int | None = None,
        operation: str = "",
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.operation = operation
        self.retryable = retryable


def _http_status_to_error(status_code: int) -> tuple[str, bool]:
    if status_code == 429:
        return "rate_limit", True
    if status_code in {500, 502, 503, 504}:
        return "registry_unavailable", True
    if status_code in {401, 403}:
        return "auth_error", False
    if status_code in {400, 422}:
        return "invalid_request", False
    if status_code == 404:
        return "not_found", False
    return "unknown", False


def _read_error_message(response: httpx.Response, label: str) -> str:
    try:
        payload = response.json()
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message:
                return message
    except ValueError:
        pass
    text = (response.text or "")[:ERROR_BODY_LIMIT] or "Unknown error"
    return f"{label} failed ({response.status_code}): {text}"


class RegistryClient:
    """Async client for the provider registry API.

    Authenticates with an OAuth2 client-credentials token that is cached in
    memory and renewed shortly before expiry. A 401 forces one token refresh
    and one retry of the request.
    """

    def __init__(
        self,
        base_url: str,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "UserGroup",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @asynccontextmanager
    async def _client(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        ) as client:
            yield client

    async def _fetch_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "scope": self.scope,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code >= 400:
            logger.error(
                "registry.token.failed",
                extra={
                    "status_code": response.status_code,
                    "snippet": (response.text or "")[:200],
                    "scope": self.scope,
                },
            )
            raise RegistryError(
                message=_read_error_message(response, "Registry token fetch"),
                code="auth_error",
                status_code=response.status_code,
                operation="token",
            )

        try:
            data = response.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RegistryError(
                message=f"Registry token fetch returned an unusable body: {e!r}",
                code="auth_error",
                status_code=response.status_code,
                operation="token",
            ) from e
        if not isinstance(token, str) or not token:
            raise RegistryError(
                message="Registry token fetch returned no access_token",
                code="auth_error",
                status_code=response.status_code,
                operation="token",
            )

        self._access_token = token
        self._token_expires_at = (
            time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        )
        logger.info("registry.token.refreshed", extra={"expires_in": expires_in})
        return token

    async def _get_token(self, client: httpx.AsyncClient, force: bool = False) -> str:
        token = self._access_token
        if force or token is None or time.monotonic() >= self._token_expires_at:
            token = await self._fetch_token(client)
        return token

    async def _request(
        self,
        operation: str,
        label: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body."""
        started = time.perf_counter()

        with tracer.start_as_current_span(f"registry.{operation}") as span:
            span.set_attribute(REGISTRY_OPERATION, operation)

            try:
                async with self._client() as client:
                    token = await self._get_token(client)
                    response = await client.request(
                        method,
                        path,
                        headers={"Authorization": f"Bearer {token}"},
                        **kwargs,
                    )
                    if response.status_code == 401:
                        logger.warning(
                            "registry.unauthorized_retry",
                            extra={"operation": operation},
                        )
                        token = await self._get_token(client, force=True)
                        response = await client.request(
                            method,
                            path,
                            headers={"Authorization": f"Bearer {token}"},
                            **kwargs,
                        )

                    span.set_attribute(REGISTRY_STATUS_CODE, response.status_code)
                    if response.status_code >= 400:
                        code, retryable = _http_status_to_error(response.status_code)
                        raise RegistryError(
                            message=_read_error_message(response, label),
                            code=code,
                            status_code=response.status_code,
                            operation=operation,
                            retryable=retryable,
                        )

                    if not response.content:
                        return {}
                    try:
                        return response.json()
                    except ValueError as e:
                        raise RegistryError(
                            message=f"{label} returned a non-JSON body",
                            code="invalid_response",
                            status_code=response.status_code,
                            operation=operation,
                        ) from e

            except RegistryError as e:
                span.set_attribute(REGISTRY_RETRYABLE, e.retryable)
                span.set_attribute(REGISTRY_ERROR_TYPE, e.code)
                REGISTRY_REQUEST_ERRORS.labels(operation=operation, code=e.code).inc()
                raise
            except httpx.HTTPError as e:
                span.set_attribute("error", True)
                span.record_exception(e)
                span.set_attribute(REGISTRY_RETRYABLE, True)
                span.set_attribute(REGISTRY_ERROR_TYPE, "registry_unavailable")
                REGISTRY_REQUEST_ERRORS.labels(
                    operation=operation, code="registry_unavailable"
                ).inc()
                raise RegistryError(
                    message=f"{label} failed: {e}",
                    code="registry_unavailable",
                    operation=operation,
                    retryable=True,
                ) from e
            finally:
                elapsed = time.perf_counter() - started
                span.set_attribute(REGISTRY_LATENCY_MS, int(elapsed * 1000))
                REGISTRY_REQUEST_DURATION.labels(operation=operation).observe(elapsed)

    async def list_providers(self, page: int, page_size: int) -> ProviderListPage:
        """Fetch one page of the registry's provider list."""
        data = await self._request(
            "list_providers",
            "Registry provider list",
            "GET",
            "/providers",
            params={"page": page, "pageSize": page_size},
        )
        try:
            return ProviderListPage.model_validate(data)
        except ValidationError as e:
            raise RegistryError(
                message=f"Registry provider list returned an invalid page: {e}",
                code="invalid_response",
                operation="list_providers",
            ) from e

    async def update_provider(self, payload: UpdateProviderPayload) -> dict[str, Any]:
        """Create or update a provider's identity data. Idempotent per NPI."""
        data = await self._request(
            "update_provider",
            "Registry provider update",
            "POST",
            "/provider",
            json=payload.model_dump(),
        )
        return data if isinstance(data, dict) else {"result": data}

    async def set_emdr_registration(
        self, remote_provider_id: str, enabled: bool
    ) -> dict[str, Any]:
        """Register (``enabled=True``) or deregister a provider for eMDR."""
        data = await self._request(
            "set_emdr_registration",
            "Registry eMDR registration",
            "PUT",
            f"/provider/{quote(remote_provider_id, safe='')}/emdr",
            json={"register_for_emdr": enabled},
        )
        return data if isinstance(data, dict) else {"result": data}

    async def set_electronic_only(self, remote_provider_id: str) -> dict[str, Any]:
        """Narrow an eMDR registration to electronic-only delivery."""
        data = await self._request(
            "set_electronic_only",
            "Registry electronic-only",
            "PUT",
            f"/provider/{quote(remote_provider_id, safe='')}/emdr/electronic-only",
        )
        return data if isinstance(data, dict) else {"result": data}

    async def get_provider_registration(
        self, remote_provider_id: str
    ) -> RegistrationPayload:
        """Fetch the current registration status of one provider."""
        data = await self._request(
            "get_provider_registration",
            "Registry registration lookup",
            "GET",
            f"/provider/{quote(remote_provider_id, safe='')}/registration",
        )
        if isinstance(data, dict) and not data.get("provider_id"):
            data = {**data, "provider_id": remote_provider_id}
        try:
            return RegistrationPayload.model_validate(data)
        except ValidationError as e:
            raise RegistryError(
                message=f"Registry registration lookup returned an invalid body: {e}",
                code="invalid_response",
                operation="get_provider_registration",
            ) from e


_client: RegistryClient | None = None


def get_registry_client() -> RegistryClient:
    """Get or create the singleton registry client for configured settings."""
    global _client

    if _client is None:
        settings = get_settings()
        _client = RegistryClient(
            base_url=settings.registry_base_url,
            token_url=settings.registry_token_url,
            client_id=settings.registry_client_id,
            client_secret=settings.registry_client_secret,
            scope=settings.registry_scope,
            timeout_seconds=settings.registry_timeout_seconds,
        )
    return _client

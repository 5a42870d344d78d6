"""Shared telemetry attributes for the provider registry boundary."""

REGISTRY_OPERATION = "registry.operation"
REGISTRY_STATUS_CODE = "registry.status_code"
REGISTRY_RETRYABLE = "registry.retryable"
REGISTRY_ERROR_TYPE = "registry.error_type"
REGISTRY_LATENCY_MS = "registry.latency_ms"
PROVIDER_NPI = "provider.npi"

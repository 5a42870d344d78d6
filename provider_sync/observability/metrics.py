"""Prometheus metric definitions for registry sync observability."""

from prometheus_client import Counter, Histogram

# --- Bucket configurations ---

REGISTRY_LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

# --- Registry client metrics ---

REGISTRY_REQUEST_DURATION = Histogram(
    "provider_sync_registry_request_duration_seconds",
    "Registry API call latency in seconds",
    ["operation"],
    buckets=REGISTRY_LATENCY_BUCKETS,
)

REGISTRY_REQUEST_ERRORS = Counter(
    "provider_sync_registry_request_errors_total",
    "Registry API call failures",
    ["operation", "code"],
)

# --- Directory reconciliation ---

DIRECTORY_SYNC_PROVIDERS = Counter(
    "provider_sync_directory_providers_total",
    "Providers written by directory synchronization",
    ["action"],
)

DIRECTORY_SYNC_FAILURES = Counter(
    "provider_sync_directory_sync_failures_total",
    "Directory synchronizations aborted by an error",
)

# --- Registration status refresh ---

REGISTRATION_FETCH_RESULTS = Counter(
    "provider_sync_registration_fetch_results_total",
    "Per-provider registration status lookups by outcome",
    ["outcome"],
)

# --- eMDR transitions ---

EMDR_TRANSITIONS = Counter(
    "provider_sync_emdr_transitions_total",
    "eMDR registration transitions by operation and outcome",
    ["operation", "outcome"],
)

EMDR_FOLLOW_UP_FAILURES = Counter(
    "provider_sync_emdr_follow_up_failures_total",
    "Failed post-transition refresh steps",
    ["step"],
)

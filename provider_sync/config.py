import os
from functools import lru_cache
from pydantic import BaseModel


class Settings(BaseModel):
    env: str = os.getenv("ENV", "dev")
    port: int = int(os.getenv("PORT", "8080"))
    log_level: str = os.getenv("LOG_LEVEL", "info")

    # Application URLs
    app_url: str = os.getenv("APP_URL", "http://localhost:5173")

    # Database
    db_url: str | None = os.getenv("DB_URL")

    # Provider registry (HIH wrapper API)
    registry_base_url: str = os.getenv(
        "REGISTRY_BASE_URL", "https://drfpimpl.cms.gov/pcgfhir/hih/api"
    )
    registry_token_url: str = os.getenv(
        "REGISTRY_TOKEN_URL", "https://drfpimpl.cms.gov/pcgfhir/oauth/token"
    )
    registry_client_id: str = os.getenv("REGISTRY_CLIENT_ID", "")
    registry_client_secret: str = os.getenv("REGISTRY_CLIENT_SECRET", "")
    registry_scope: str = os.getenv("REGISTRY_SCOPE", "UserGroup")
    registry_timeout_seconds: float = float(os.getenv("REGISTRY_TIMEOUT_SECONDS", "60"))
    # Page size used when walking the full provider list
    registry_page_size: int = int(os.getenv("REGISTRY_PAGE_SIZE", "500"))

    # Observability
    otel_exporter_otlp_endpoint: str | None = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")


@lru_cache
def get_settings() -> Settings:
    return Settings()

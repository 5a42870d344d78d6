"""Push provider identity data to the registry."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.registry import RegistryClient, RegistryError
from ..models.provider import Provider
from ..schemas.provider import ProviderUpdateRequest, ProviderUpdateResult
from ..schemas.registry import UpdateProviderPayload
from .directory_sync import refresh_provider_snapshot
from .rows import compose_rows_from_db
from .snapshot import dump_update_response

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "provider_name",
    "provider_npi",
    "provider_street",
    "provider_city",
    "provider_state",
    "provider_zip",
)


def build_update_payload(npi: str, data: ProviderUpdateRequest) -> UpdateProviderPayload:
    """Trim and validate identity fields. Raises 400 listing missing fields."""
    values = {
        "provider_name": data.provider_name.strip(),
        "provider_npi": npi.strip(),
        "provider_street": data.provider_street.strip(),
        "provider_street2": data.provider_street2.strip(),
        "provider_city": data.provider_city.strip(),
        "provider_state": data.provider_state.strip().upper(),
        "provider_zip": data.provider_zip.strip(),
    }
    missing = [name for name in REQUIRED_FIELDS if not values[name]]
    if missing:
        raise HTTPException(
            status_code=400, detail=f"Missing fields: {', '.join(missing)}"
        )
    return UpdateProviderPayload(**values)


async def update_provider(
    db: AsyncSession,
    client: RegistryClient,
    npi: str,
    data: ProviderUpdateRequest,
) -> ProviderUpdateResult:
    """Send identity data to the registry and mirror it locally.

    The local provider (if any) takes the new name and address, the
    registry's id and the stored response. The list snapshot is then
    refreshed on a best-effort basis.
    """
    payload = build_update_payload(npi, data)

    error: str | None = None
    did_update = False
    update_response: dict[str, Any] | None = None

    try:
        update_response = await client.update_provider(payload)
        did_update = True
    except RegistryError as e:
        error = e.message or "Failed to update provider."
        logger.warning(
            "provider.update_failed",
            extra={"npi": payload.provider_npi, "code": e.code, "error": error},
        )

    if did_update:
        result = await db.execute(
            select(Provider).where(Provider.npi == payload.provider_npi)
        )
        provider = result.scalar_one_or_none()
        remote_id = (update_response or {}).get("provider_id")

        if provider is not None:
            now = datetime.now(timezone.utc)
            provider.name = payload.provider_name
            provider.street = payload.provider_street or None
            provider.street2 = payload.provider_street2 or None
            provider.city = payload.provider_city or None
            provider.state = payload.provider_state or None
            provider.zip = payload.provider_zip or None
            if isinstance(remote_id, str) and remote_id:
                provider.remote_provider_id = remote_id
            provider.last_update_response = dump_update_response(
                "update_provider", update_response or {}
            )
            provider.last_update_at = now
            provider.updated_at = now
            await db.commit()

        logger.info(
            "provider.updated",
            extra={
                "npi": payload.provider_npi,
                "remote_provider_id": remote_id,
                "local": provider is not None,
            },
        )

        try:
            await refresh_provider_snapshot(db, client, payload.provider_npi)
        except RegistryError as e:
            logger.warning(
                "provider.snapshot_refresh_failed",
                extra={"npi": payload.provider_npi, "error": e.message},
            )

    rows = await compose_rows_from_db(db)
    return ProviderUpdateResult(
        rows=rows,
        error=error,
        did_update=did_update,
        update_response=update_response,
    )

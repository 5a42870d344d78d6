"""Refresh per-provider eMDR registration status from the registry."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.registry import RegistryClient, RegistryError
from ..adapters.telemetry import PROVIDER_NPI
from ..models.provider import Provider, ProviderRegistrationStatus
from ..observability.metrics import REGISTRATION_FETCH_RESULTS
from ..schemas.provider import RefreshResult
from ..schemas.registry import RegistrationPayload
from .directory_sync import chunked, fetch_all_remote_providers
from .rows import compose_rows_from_db
from .snapshot import overlay_list_fields, to_csv

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("provider-sync.registration_refresh")

REGISTRATION_GROUP_SIZE = 20
FETCH_ERROR_CODE = "FETCH_ERROR"


def _registration_values(payload: RegistrationPayload) -> dict[str, Any]:
    return {
        "provider_npi": payload.npi,
        "remote_provider_id": payload.provider_id,
        "reg_status": payload.reg_status,
        "stage": payload.stage,
        "submission_status": payload.submission_status,
        "status": payload.status,
        "call_error_code": payload.call_error_code,
        "call_error_description": payload.call_error_description,
        "provider_name": payload.provider_name,
        "street": payload.provider_street,
        "street2": payload.provider_street2,
        "city": payload.provider_city,
        "state": payload.provider_state,
        "zip": payload.provider_zip,
        "transaction_id_list": to_csv(payload.transaction_id_list),
        "status_changes": [
            change.model_dump(mode="json", exclude_unset=True)
            for change in payload.status_changes or []
        ],
        "errors": list(payload.errors or []),
        "error_list": list(payload.error_list or []),
    }


async def upsert_registration_status(
    db: AsyncSession,
    provider_id: UUID,
    payload: RegistrationPayload,
    fetched_at: datetime,
) -> ProviderRegistrationStatus:
    """Replace the provider's registration status with ``payload``.

    Every column is written, so nothing from an earlier lookup survives.
    The caller commits.
    """
    result = await db.execute(
        select(ProviderRegistrationStatus).where(
            ProviderRegistrationStatus.provider_id == provider_id
        )
    )
    status = result.scalar_one_or_none()
    values = _registration_values(payload)

    if status is None:
        status = ProviderRegistrationStatus(
            provider_id=provider_id, fetched_at=fetched_at, **values
        )
        db.add(status)
    else:
        for key, value in values.items():
            setattr(status, key, value)
        status.fetched_at = fetched_at

    await db.flush()
    return status


def build_fetch_error_payload(
    npi: str, remote_provider_id: str, message: str
) -> RegistrationPayload:
    """Stand-in registration payload recording a failed lookup."""
    return RegistrationPayload(
        npi=npi,
        provider_id=remote_provider_id,
        call_error_code=FETCH_ERROR_CODE,
        call_error_description=message,
        status_changes=[],
        errors=[],
        error_list=[message],
    )


async def refresh_registrations(
    db: AsyncSession,
    client: RegistryClient,
    group_size: int = REGISTRATION_GROUP_SIZE,
) -> RefreshResult:
    """Look up registration status for every provider that has a registry id.

    Candidates need a registry id and a complete name and address. They are
    processed one at a time, committing after each group. A failed lookup is
    stored as a ``FETCH_ERROR`` payload instead of stopping the loop.

    Rows are composed from the store afterwards. A best-effort re-read of the
    registry list then refreshes only the fields the list owns.
    """
    fetched_at = datetime.now(timezone.utc)

    result = await db.execute(
        select(Provider.id, Provider.npi, Provider.remote_provider_id)
        .where(
            Provider.remote_provider_id.is_not(None),
            Provider.remote_provider_id != "",
            Provider.name.is_not(None),
            Provider.street.is_not(None),
            Provider.city.is_not(None),
            Provider.state.is_not(None),
            Provider.zip.is_not(None),
        )
        .order_by(Provider.npi)
    )
    candidates = list(result.all())

    registrations: dict[str, RegistrationPayload] = {}
    fetch_errors = 0

    with tracer.start_as_current_span("registration_refresh.run") as span:
        span.set_attribute("candidates", len(candidates))

        for group in chunked(candidates, group_size):
            for candidate in group:
                remote_id = candidate.remote_provider_id
                try:
                    payload = await client.get_provider_registration(remote_id)
                    REGISTRATION_FETCH_RESULTS.labels(outcome="ok").inc()
                except Exception as e:
                    message = e.message if isinstance(e, RegistryError) else str(e)
                    fetch_errors += 1
                    REGISTRATION_FETCH_RESULTS.labels(outcome="error").inc()
                    logger.warning(
                        "registration_refresh.fetch_failed",
                        extra={
                            "npi": candidate.npi,
                            "remote_provider_id": remote_id,
                            "error_type": type(e).__name__,
                            "error": message,
                        },
                    )
                    payload = build_fetch_error_payload(
                        candidate.npi,
                        remote_id,
                        message or "Failed to fetch registration",
                    )

                registrations[remote_id] = payload
                await upsert_registration_status(db, candidate.id, payload, fetched_at)
            await db.commit()

        span.set_attribute("fetch_errors", fetch_errors)

    logger.info(
        "registration_refresh.completed",
        extra={"candidates": len(candidates), "errors": fetch_errors},
    )

    rows = await compose_rows_from_db(db)

    try:
        remote = await fetch_all_remote_providers(client)
        rows = overlay_list_fields(rows, remote)
    except RegistryError as e:
        logger.warning(
            "registration_refresh.list_refresh_failed",
            extra={"error": e.message},
        )

    return RefreshResult(
        rows=rows,
        error=None,
        registrations=registrations,
        fetched_at=fetched_at,
        candidates=len(candidates),
        fetch_errors=fetch_errors,
    )


async def fetch_and_store_registration(
    db: AsyncSession,
    client: RegistryClient,
    provider_id: UUID | None,
    remote_provider_id: str,
    npi: str,
) -> RegistrationPayload:
    """Look up one provider's registration and store it when known locally."""
    with tracer.start_as_current_span("registration_refresh.single") as span:
        span.set_attribute(PROVIDER_NPI, npi)
        payload = await client.get_provider_registration(remote_provider_id)
        if provider_id is not None:
            await upsert_registration_status(
                db, provider_id, payload, datetime.now(timezone.utc)
            )
            await db.commit()
        return payload

"""Provider directory API routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.registry import RegistryClient, get_registry_client
from ..database import get_db
from ..schemas.provider import (
    ProviderUpdateRequest,
    ProviderUpdateResult,
    ReassignCustomerRequest,
    RefreshResult,
    RowsResponse,
    SyncResult,
    TransitionRequest,
    TransitionResult,
)
from ..services import registration as registration_service
from ..services.customer import reassign_provider_customer
from ..services.directory_sync import synchronize_directory
from ..services.provider import update_provider
from ..services.registration_refresh import refresh_registrations
from ..services.rows import compose_rows_from_db

router = APIRouter(prefix="/api/providers", tags=["providers"])
logger = logging.getLogger(__name__)


@router.get(
    "/",
    response_model=RowsResponse,
    summary="List providers",
    description="Current row view of the directory, optionally scoped.",
)
async def list_providers(
    customer_id: UUID | None = Query(None, description="Only this customer's providers"),
    provider_group_id: list[UUID] | None = Query(
        None, description="Only providers in these groups"
    ),
    db: AsyncSession = Depends(get_db),
) -> RowsResponse:
    rows = await compose_rows_from_db(
        db, customer_id=customer_id, provider_group_ids=provider_group_id
    )
    return RowsResponse(rows=rows)


@router.post(
    "/sync",
    response_model=SyncResult,
    summary="Synchronize with the registry",
    description="Fetch the full registry list and upsert it locally.",
)
async def sync_directory(
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> SyncResult:
    logger.info("directory_sync.requested")
    return await synchronize_directory(db, client)


@router.post(
    "/registrations/refresh",
    response_model=RefreshResult,
    summary="Refresh eMDR registration status",
)
async def refresh_registration_statuses(
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> RefreshResult:
    logger.info("registration_refresh.requested")
    return await refresh_registrations(db, client)


@router.put(
    "/{npi}",
    response_model=ProviderUpdateResult,
    summary="Update provider identity in the registry",
)
async def update_provider_identity(
    npi: str,
    data: ProviderUpdateRequest,
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> ProviderUpdateResult:
    return await update_provider(db, client, npi, data)


@router.post(
    "/{npi}/emdr/register",
    response_model=TransitionResult,
    summary="Register a provider for eMDR",
)
async def register_provider(
    npi: str,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> TransitionResult:
    return await registration_service.register(db, client, npi, data.provider_id)


@router.post(
    "/{npi}/emdr/deregister",
    response_model=TransitionResult,
    summary="Deregister a provider from eMDR",
)
async def deregister_provider(
    npi: str,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> TransitionResult:
    return await registration_service.deregister(db, client, npi, data.provider_id)


@router.post(
    "/{npi}/emdr/electronic-only",
    response_model=TransitionResult,
    summary="Set a registered provider to electronic-only delivery",
)
async def set_provider_electronic_only(
    npi: str,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    client: RegistryClient = Depends(get_registry_client),
) -> TransitionResult:
    return await registration_service.set_electronic_only(
        db, client, npi, data.provider_id
    )


@router.patch(
    "/{npi}/customer",
    response_model=RowsResponse,
    summary="Move a provider to another customer",
)
async def reassign_customer(
    npi: str,
    data: ReassignCustomerRequest,
    db: AsyncSession = Depends(get_db),
) -> RowsResponse:
    await reassign_provider_customer(db, npi, data.customer_id)
    rows = await compose_rows_from_db(db)
    return RowsResponse(rows=rows)

"""Compose the provider row view from the local store."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.customer import Customer, ProviderGroup
from ..models.provider import Provider
from ..schemas.provider import ProviderRow
from .snapshot import load_list_snapshot, map_list_item_to_detail, map_persisted_to_row

logger = logging.getLogger(__name__)


async def compose_rows_from_db(
    db: AsyncSession,
    customer_id: UUID | None = None,
    provider_group_ids: list[UUID] | None = None,
) -> list[ProviderRow]:
    """Read every provider (optionally scoped) into row views.

    Rows are ordered by customer, then NPI. Customer and group names are
    resolved with one batched lookup each.
    """
    query = (
        select(Provider)
        .options(selectinload(Provider.registration_status))
        .order_by(Provider.customer_id, Provider.npi)
        .execution_options(populate_existing=True)
    )
    if customer_id is not None:
        query = query.where(Provider.customer_id == customer_id)
    if provider_group_ids is not None:
        query = query.where(Provider.provider_group_id.in_(provider_group_ids))

    result = await db.execute(query)
    providers = list(result.scalars().all())

    customer_ids = {p.customer_id for p in providers if p.customer_id}
    group_ids = {p.provider_group_id for p in providers if p.provider_group_id}

    customer_names: dict[UUID, str] = {}
    if customer_ids:
        customer_result = await db.execute(
            select(Customer.id, Customer.name).where(Customer.id.in_(customer_ids))
        )
        customer_names = {row.id: row.name for row in customer_result}

    group_names: dict[UUID, str] = {}
    if group_ids:
        group_result = await db.execute(
            select(ProviderGroup.id, ProviderGroup.name).where(
                ProviderGroup.id.in_(group_ids)
            )
        )
        group_names = {row.id: row.name for row in group_result}

    rows = []
    for provider in providers:
        item = load_list_snapshot(provider.last_list_snapshot)
        rows.append(
            map_persisted_to_row(
                provider,
                list_detail=map_list_item_to_detail(item) if item else None,
                registration_status=provider.registration_status,
                customer_name=(
                    customer_names.get(provider.customer_id)
                    if provider.customer_id
                    else None
                ),
                provider_group_name=(
                    group_names.get(provider.provider_group_id)
                    if provider.provider_group_id
                    else None
                ),
            )
        )

    logger.debug("rows.composed", extra={"count": len(rows)})
    return rows

"""Customer scope operations."""

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.customer import SYSTEM_CUSTOMER_NAME, Customer
from ..models.provider import Provider

logger = logging.getLogger(__name__)

RESERVED_NAME_MESSAGE = (
    f'The special "{SYSTEM_CUSTOMER_NAME}" customer is reserved and cannot be renamed.'
)


async def list_customers(db: AsyncSession) -> list[Customer]:
    result = await db.execute(select(Customer).order_by(Customer.name))
    return list(result.scalars().all())


async def rename_customer(db: AsyncSession, customer_id: UUID, name: str) -> Customer:
    """Rename a customer. The sentinel customer keeps its name."""
    new_name = name.strip()
    if len(new_name) < 2 or len(new_name) > 200:
        raise HTTPException(
            status_code=400,
            detail="Customer name must be between 2 and 200 characters.",
        )

    result = await db.execute(select(Customer).where(Customer.id == customer_id))
    customer = result.scalar_one_or_none()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found.")

    is_sentinel = customer.is_system or customer.name == SYSTEM_CUSTOMER_NAME
    if is_sentinel and new_name != customer.name:
        logger.warning(
            "customer.rename_refused",
            extra={"customer_id": str(customer_id), "to": new_name},
        )
        raise HTTPException(status_code=400, detail=RESERVED_NAME_MESSAGE)

    previous = customer.name
    customer.name = new_name
    await db.commit()

    logger.info(
        "customer.renamed",
        extra={"customer_id": str(customer_id), "from": previous, "to": new_name},
    )
    return customer


async def reassign_provider_customer(
    db: AsyncSession, npi: str, customer_id: UUID
) -> Provider:
    """Move a provider into another customer's scope."""
    result = await db.execute(select(Provider).where(Provider.npi == npi))
    provider = result.scalar_one_or_none()
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found.")

    customer_result = await db.execute(select(Customer).where(Customer.id == customer_id))
    customer = customer_result.scalar_one_or_none()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found.")

    provider.customer_id = customer.id
    await db.commit()

    logger.info(
        "provider.reassigned",
        extra={
            "npi": npi,
            "customer_id": str(customer.id),
            "customer_name": customer.name,
        },
    )
    return provider

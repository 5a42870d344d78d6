"""Customer API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.customer import Customer
from ..schemas.provider import CustomerRenameRequest, CustomerResponse
from ..services.customer import list_customers, rename_customer

router = APIRouter(prefix="/api/customers", tags=["customers"])


def _to_response(customer: Customer) -> CustomerResponse:
    return CustomerResponse(
        id=str(customer.id), name=customer.name, is_system=customer.is_system
    )


@router.get("/", response_model=list[CustomerResponse], summary="List customers")
async def get_customers(db: AsyncSession = Depends(get_db)) -> list[CustomerResponse]:
    return [_to_response(c) for c in await list_customers(db)]


@router.patch(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Rename a customer",
)
async def patch_customer(
    customer_id: UUID,
    data: CustomerRenameRequest,
    db: AsyncSession = Depends(get_db),
) -> CustomerResponse:
    customer = await rename_customer(db, customer_id, data.name)
    return _to_response(customer)

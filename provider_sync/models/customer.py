"""Customer and ProviderGroup models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base

SYSTEM_CUSTOMER_NAME = "System"
SYSTEM_CUSTOMER_KEY = "system"


class Customer(Base):
    """Ownership scope for providers.

    One row is the reserved "System" sentinel that owns providers discovered
    in the registry before anyone claims them. It is identified by
    ``system_key`` (unique), and its name never changes.
    """

    __tablename__ = "customers"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    system_key: Mapped[str | None] = mapped_column(
        String(50), nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    @property
    def is_system(self) -> bool:
        return self.system_key == SYSTEM_CUSTOMER_KEY

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"


class ProviderGroup(Base):
    """Finer-grained scope under a customer. Read-only here."""

    __tablename__ = "provider_groups"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    customer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProviderGroup(id={self.id}, name={self.name})>"

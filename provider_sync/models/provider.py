"""Provider and ProviderRegistrationStatus models."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..database import Base


class Provider(Base):
    """A provider in the local directory, keyed by NPI.

    ``last_list_snapshot`` and ``last_update_response`` hold versioned
    envelopes (see ``schemas.registry``), never raw registry JSON.
    """

    __tablename__ = "providers"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    npi: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    street2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)

    remote_provider_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )

    customer_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    provider_group_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("provider_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    last_list_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_list_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_update_response: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    last_update_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    registration_status: Mapped["ProviderRegistrationStatus | None"] = relationship(
        "ProviderRegistrationStatus",
        back_populates="provider",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, npi={self.npi})>"


class ProviderRegistrationStatus(Base):
    """Latest registry registration lookup for a provider.

    Every refresh replaces the whole row. A failed lookup is stored too, with
    ``call_error_code`` set, so every candidate always has a status row.
    """

    __tablename__ = "provider_registration_statuses"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    provider_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    provider_npi: Mapped[str | None] = mapped_column(String(20), nullable=True)
    remote_provider_id: Mapped[str] = mapped_column(String(100), nullable=False)

    reg_status: Mapped[str | None] = mapped_column(String(200), nullable=True)
    stage: Mapped[str | None] = mapped_column(String(200), nullable=True)
    submission_status: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str | None] = mapped_column(String(200), nullable=True)
    call_error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    call_error_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    provider_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    street2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Comma-joined; read back as an ordered list
    transaction_id_list: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_changes: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    errors: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    error_list: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)

    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    provider: Mapped["Provider"] = relationship(
        "Provider", back_populates="registration_status"
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderRegistrationStatus(provider_id={self.provider_id}, "
            f"reg_status={self.reg_status})>"
        )

"""Pydantic schemas for the provider directory API."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from .registry import RegistrationPayload, StatusChange


class RegistrationState(str, Enum):
    """eMDR registration state, derived from the two registry flags."""

    NOT_REGISTERED = "not_registered"
    REGISTERED = "registered"
    REGISTERED_ELECTRONIC_ONLY = "registered_electronic_only"


TransitionKind = Literal["register", "deregister", "electronic-only"]


class ProviderRow(BaseModel):
    """Read-facing view of one provider."""

    npi: str
    provider_id: str | None = None
    provider_name: str | None = None
    provider_street: str | None = None
    provider_street2: str | None = None
    provider_city: str | None = None
    provider_state: str | None = None
    provider_zip: str | None = None

    registered_for_emdr: bool = False
    registered_for_emdr_electronic_only: bool = False
    registration_state: RegistrationState = RegistrationState.NOT_REGISTERED
    available_actions: list[TransitionKind] = Field(default_factory=list)

    # Free-text registry label, display only
    reg_status: str | None = None
    stage: str | None = None
    status: str | None = None
    submission_status: str | None = None
    last_submitted_transaction: str | None = None
    esmd_transaction_id: str | None = None
    transaction_id_list: list[str] | None = None
    status_changes: list[StatusChange] = Field(default_factory=list)
    notification_details: list[Any] = Field(default_factory=list)
    errors: list[Any] = Field(default_factory=list)
    error_list: list[Any] = Field(default_factory=list)

    # Locally owned
    customer_id: str | None = None
    customer_name: str | None = None
    provider_group_id: str | None = None
    provider_group_name: str | None = None


class SyncResult(BaseModel):
    """Result of a full directory synchronization."""

    rows: list[ProviderRow]
    error: str | None = None
    created: int = 0
    updated: int = 0


class RefreshResult(BaseModel):
    """Result of a registration status refresh."""

    rows: list[ProviderRow]
    error: str | None = None
    registrations: dict[str, RegistrationPayload] = Field(default_factory=dict)
    fetched_at: datetime
    candidates: int = 0
    fetch_errors: int = 0


class LastAction(BaseModel):
    """Summary of the most recent transition, for UI feedback."""

    kind: TransitionKind
    npi: str
    provider_id: str
    ok: bool
    at: datetime


class TransitionResult(BaseModel):
    """Result of an eMDR register/deregister/electronic-only transition."""

    rows: list[ProviderRow]
    error: str | None = None
    update_response: dict[str, Any] | None = None
    registrations: dict[str, RegistrationPayload] = Field(default_factory=dict)
    fetched_at: datetime
    last_action: LastAction
    follow_up_errors: list[str] = Field(default_factory=list)


class ProviderUpdateResult(BaseModel):
    """Result of pushing provider identity data to the registry."""

    rows: list[ProviderRow]
    error: str | None = None
    did_update: bool = False
    update_response: dict[str, Any] | None = None


class RowsResponse(BaseModel):
    """Plain row listing."""

    rows: list[ProviderRow]
    error: str | None = None


# --- Requests ---


class ProviderUpdateRequest(BaseModel):
    """Identity fields for the registry update; the NPI comes from the path."""

    provider_name: str = Field("", max_length=200)
    provider_street: str = Field("", max_length=200)
    provider_street2: str = Field("", max_length=200)
    provider_city: str = Field("", max_length=100)
    provider_state: str = Field("", max_length=20)
    provider_zip: str = Field("", max_length=20)


class TransitionRequest(BaseModel):
    """Registry-assigned id of the provider to transition."""

    provider_id: str = ""


class ReassignCustomerRequest(BaseModel):
    customer_id: UUID


class CustomerRenameRequest(BaseModel):
    name: str


class CustomerResponse(BaseModel):
    """Schema for customer response."""

    id: str
    name: str
    is_system: bool = False

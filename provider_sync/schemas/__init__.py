"""Pydantic schemas for registry payloads and API request/response validation."""

from .provider import (
    CustomerRenameRequest,
    CustomerResponse,
    LastAction,
    ProviderRow,
    ProviderUpdateRequest,
    ProviderUpdateResult,
    ReassignCustomerRequest,
    RefreshResult,
    RegistrationState,
    RowsResponse,
    SyncResult,
    TransitionRequest,
    TransitionResult,
)
from .registry import (
    ListDetail,
    ListSnapshot,
    ProviderListItem,
    ProviderListPage,
    RegistrationPayload,
    StatusChange,
    UpdateProviderPayload,
    UpdateResponseEnvelope,
)

__all__ = [
    "CustomerRenameRequest",
    "CustomerResponse",
    "LastAction",
    "ProviderRow",
    "ProviderUpdateRequest",
    "ProviderUpdateResult",
    "ReassignCustomerRequest",
    "RefreshResult",
    "RegistrationState",
    "RowsResponse",
    "SyncResult",
    "TransitionRequest",
    "TransitionResult",
    "ListDetail",
    "ListSnapshot",
    "ProviderListItem",
    "ProviderListPage",
    "RegistrationPayload",
    "StatusChange",
    "UpdateProviderPayload",
    "UpdateResponseEnvelope",
]

"""Pydantic schemas for provider registry payloads.

Registry payloads carry more than this service reads, so every model keeps
unknown keys (``extra="allow"``) and round-trips them into stored snapshots.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StatusChange(BaseModel):
    """One timestamped event in a provider's registration history."""

    model_config = ConfigDict(extra="allow")

    split_number: str | None = None
    time: str | None = None
    title: str | None = None
    esmd_transaction_id: str | None = None
    status: str | None = None


class ProviderListItem(BaseModel):
    """A single entry of the registry's paginated provider list."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    npi: str = Field(alias="providerNPI")
    provider_id: str | None = None
    last_submitted_transaction: str | None = None
    registered_for_emdr: bool | None = None
    registered_for_emdr_electronic_only: bool | None = None
    stage: str | None = None
    reg_status: str | None = None
    status: str | None = None
    esmd_transaction_id: str | None = Field(None, alias="esMDTransactionID")
    provider_name: str | None = None
    provider_street: str | None = None
    provider_street2: str | None = None
    provider_city: str | None = None
    provider_state: str | None = None
    provider_zip: str | None = None
    # The registry sends either a list or an already comma-joined string
    transaction_id_list: list[Any] | str | None = None
    notification_details: list[Any] | None = Field(None, alias="notificationDetails")
    status_changes: list[StatusChange] | None = None
    errors: list[Any] | None = None
    error_list: list[Any] | None = Field(None, alias="errorList")


class ProviderListPage(BaseModel):
    """One page of ``GET /providers``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    items: list[ProviderListItem] = Field(
        default_factory=list, alias="listResponseModel"
    )
    total_pages: int | None = Field(None, alias="totalPages")
    total_result_count: int | None = Field(None, alias="totalResultCount")
    page: int | None = None
    page_size: int | None = Field(None, alias="pageSize")


class RegistrationPayload(BaseModel):
    """Registration status for one provider, or a synthetic fetch failure."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    npi: str | None = Field(None, alias="providerNPI")
    provider_id: str
    reg_status: str | None = None
    stage: str | None = None
    submission_status: str | None = None
    status: str | None = None
    call_error_code: str | None = None
    call_error_description: str | None = None
    provider_name: str | None = None
    provider_street: str | None = None
    provider_street2: str | None = None
    provider_city: str | None = None
    provider_state: str | None = None
    provider_zip: str | None = None
    transaction_id_list: list[Any] | str | None = None
    status_changes: list[StatusChange] | None = None
    errors: list[Any] | None = None
    error_list: list[Any] | None = Field(None, alias="errorList")


class UpdateProviderPayload(BaseModel):
    """Identity data sent to the registry's idempotent provider update."""

    provider_name: str
    provider_npi: str
    provider_street: str
    provider_street2: str = ""
    provider_city: str
    provider_state: str
    provider_zip: str


class ListDetail(BaseModel):
    """Normalized view of a list item, as the row composer consumes it."""

    npi: str
    provider_id: str | None = None
    last_submitted_transaction: str | None = None
    registered_for_emdr: bool = False
    registered_for_emdr_electronic_only: bool = False
    stage: str | None = None
    reg_status: str | None = None
    status: str | None = None
    esmd_transaction_id: str | None = None
    provider_name: str | None = None
    provider_street: str | None = None
    provider_street2: str | None = None
    provider_city: str | None = None
    provider_state: str | None = None
    provider_zip: str | None = None
    transaction_id_list: str | None = None
    notification_details: list[Any] = Field(default_factory=list)
    status_changes: list[StatusChange] = Field(default_factory=list)
    errors: list[Any] = Field(default_factory=list)
    error_list: list[Any] = Field(default_factory=list)


# --- Stored envelopes ---


class ListSnapshot(BaseModel):
    """Envelope stored in ``Provider.last_list_snapshot``."""

    schema_version: Literal[1] = 1
    item: ProviderListItem


class UpdateResponseEnvelope(BaseModel):
    """Envelope stored in ``Provider.last_update_response``."""

    schema_version: Literal[1] = 1
    operation: str
    payload: dict[str, Any] = Field(default_factory=dict)

"""Pure mapping between registry payloads, stored rows and the row view.

Nothing here performs I/O or raises on malformed stored data: unreadable
snapshots are treated as absent.
"""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from ..models.provider import Provider, ProviderRegistrationStatus
from ..schemas.provider import ProviderRow, RegistrationState, TransitionKind
from ..schemas.registry import (
    ListDetail,
    ListSnapshot,
    ProviderListItem,
    UpdateResponseEnvelope,
)

logger = logging.getLogger(__name__)

# Remote list field -> Provider column, for the sparse patch
REMOTE_TO_COLUMN = {
    "provider_name": "name",
    "provider_street": "street",
    "provider_street2": "street2",
    "provider_city": "city",
    "provider_state": "state",
    "provider_zip": "zip",
    "provider_id": "remote_provider_id",
}

# Row fields owned by this service rather than the registry
LOCAL_ROW_FIELDS = frozenset(
    {"customer_id", "customer_name", "provider_group_id", "provider_group_name"}
)

# Row fields only the registry list carries
LIST_OWNED_ROW_FIELDS = (
    "registered_for_emdr",
    "registered_for_emdr_electronic_only",
    "last_submitted_transaction",
    "esmd_transaction_id",
    "notification_details",
)

_TRANSITIONS: dict[RegistrationState, list[TransitionKind]] = {
    RegistrationState.NOT_REGISTERED: ["register"],
    RegistrationState.REGISTERED: ["deregister", "electronic-only"],
    RegistrationState.REGISTERED_ELECTRONIC_ONLY: ["deregister"],
}


def to_csv(value: Any) -> str | None:
    """Normalize a list-or-string transaction id field to a comma-joined string."""
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    if isinstance(value, str):
        return value
    return None


def split_csv(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [part for part in value.split(",") if part]


def _coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


# --- Registration state ---


def derive_registration_state(
    registered: bool, electronic_only: bool
) -> RegistrationState:
    """Infer the eMDR state from the registry's two flags."""
    if electronic_only:
        return RegistrationState.REGISTERED_ELECTRONIC_ONLY
    if registered:
        return RegistrationState.REGISTERED
    return RegistrationState.NOT_REGISTERED


def allowed_transitions(state: RegistrationState) -> list[TransitionKind]:
    """Transitions a UI should offer from ``state``."""
    return list(_TRANSITIONS[state])


# --- Stored envelopes ---


def dump_list_snapshot(item: ProviderListItem) -> dict[str, Any]:
    """Serialize a list item into the envelope stored on the provider.

    Only keys the registry actually sent are kept, so a reload reproduces
    the same set of present fields.
    """
    return ListSnapshot(schema_version=1, item=item).model_dump(
        mode="json", by_alias=True, exclude_unset=True
    )


def load_list_snapshot(raw: Any) -> ProviderListItem | None:
    """Read a stored list snapshot, or ``None`` when missing or unreadable."""
    if not isinstance(raw, dict):
        return None
    try:
        return ListSnapshot.model_validate(raw).item
    except ValidationError:
        logger.warning(
            "snapshot.list_unreadable",
            extra={"keys": sorted(raw.keys())[:20]},
        )
        return None


def dump_update_response(operation: str, payload: dict[str, Any]) -> dict[str, Any]:
    return UpdateResponseEnvelope(
        schema_version=1, operation=operation, payload=payload
    ).model_dump(mode="json")


def load_update_response(raw: Any) -> UpdateResponseEnvelope | None:
    if not isinstance(raw, dict):
        return None
    try:
        return UpdateResponseEnvelope.model_validate(raw)
    except ValidationError:
        return None


# --- Mapping ---


def map_list_item_to_detail(item: ProviderListItem) -> ListDetail:
    """Normalize a registry list item into the fields the row view reads."""
    return ListDetail(
        npi=item.npi,
        provider_id=item.provider_id,
        last_submitted_transaction=item.last_submitted_transaction,
        registered_for_emdr=bool(item.registered_for_emdr),
        registered_for_emdr_electronic_only=bool(
            item.registered_for_emdr_electronic_only
        ),
        stage=item.stage,
        reg_status=item.reg_status,
        status=item.status,
        esmd_transaction_id=item.esmd_transaction_id,
        provider_name=item.provider_name,
        provider_street=item.provider_street,
        provider_street2=item.provider_street2,
        provider_city=item.provider_city,
        provider_state=item.provider_state,
        provider_zip=item.provider_zip,
        transaction_id_list=to_csv(item.transaction_id_list),
        notification_details=item.notification_details or [],
        status_changes=item.status_changes or [],
        errors=item.errors or [],
        error_list=item.error_list or [],
    )


def build_update_from_remote(item: ProviderListItem) -> dict[str, Any]:
    """Column patch for an existing provider from a remote list item.

    Only fields present on the remote item are included. A present ``null``
    overwrites the column; an absent field leaves it untouched.
    """
    present = item.model_fields_set
    return {
        column: getattr(item, field)
        for field, column in REMOTE_TO_COLUMN.items()
        if field in present
    }


def map_persisted_to_row(
    provider: Provider,
    list_detail: ListDetail | None = None,
    registration_status: ProviderRegistrationStatus | None = None,
    customer_name: str | None = None,
    provider_group_name: str | None = None,
) -> ProviderRow:
    """Build the row view for a stored provider.

    Each field comes from the registration status when it has a value, else
    from the list detail, else from the provider's own columns. Registration
    flags only ever come from the list detail.
    """
    rs = registration_status
    ld = list_detail

    def pick(rs_attr: str | None, ld_attr: str | None, column: str | None = None) -> Any:
        return _coalesce(
            getattr(rs, rs_attr) if rs is not None and rs_attr else None,
            getattr(ld, ld_attr) if ld is not None and ld_attr else None,
            getattr(provider, column) if column else None,
        )

    provider_id = pick("remote_provider_id", "provider_id", "remote_provider_id") or ""
    registered = bool(ld.registered_for_emdr) if ld is not None else False
    electronic_only = (
        bool(ld.registered_for_emdr_electronic_only) if ld is not None else False
    )
    state = derive_registration_state(registered, electronic_only)

    transaction_ids = split_csv(rs.transaction_id_list if rs is not None else None)
    if transaction_ids is None:
        transaction_ids = split_csv(ld.transaction_id_list if ld is not None else None)

    return ProviderRow(
        npi=provider.npi,
        provider_id=provider_id,
        provider_name=pick("provider_name", "provider_name", "name"),
        provider_street=pick("street", "provider_street", "street"),
        provider_street2=pick("street2", "provider_street2", "street2"),
        provider_city=pick("city", "provider_city", "city"),
        provider_state=pick("state", "provider_state", "state"),
        provider_zip=pick("zip", "provider_zip", "zip"),
        registered_for_emdr=registered,
        registered_for_emdr_electronic_only=electronic_only,
        registration_state=state,
        # Transitions need a registry id, so nothing is offered without one
        available_actions=allowed_transitions(state) if provider_id else [],
        reg_status=pick("reg_status", "reg_status"),
        stage=pick("stage", "stage"),
        status=pick("status", "status"),
        submission_status=pick("submission_status", None),
        last_submitted_transaction=pick(None, "last_submitted_transaction"),
        esmd_transaction_id=pick(None, "esmd_transaction_id"),
        transaction_id_list=transaction_ids,
        status_changes=pick("status_changes", "status_changes") or [],
        notification_details=pick(None, "notification_details") or [],
        errors=pick("errors", "errors") or [],
        error_list=pick("error_list", "error_list") or [],
        customer_id=str(provider.customer_id) if provider.customer_id else None,
        customer_name=customer_name,
        provider_group_id=(
            str(provider.provider_group_id) if provider.provider_group_id else None
        ),
        provider_group_name=provider_group_name,
    )


def map_list_item_to_row(item: ProviderListItem) -> ProviderRow:
    """Build the row view for a remote item that has no local provider."""
    detail = map_list_item_to_detail(item)
    state = derive_registration_state(
        detail.registered_for_emdr, detail.registered_for_emdr_electronic_only
    )
    provider_id = detail.provider_id or ""
    return ProviderRow(
        npi=detail.npi,
        provider_id=provider_id,
        provider_name=detail.provider_name,
        provider_street=detail.provider_street,
        provider_street2=detail.provider_street2,
        provider_city=detail.provider_city,
        provider_state=detail.provider_state,
        provider_zip=detail.provider_zip,
        registered_for_emdr=detail.registered_for_emdr,
        registered_for_emdr_electronic_only=detail.registered_for_emdr_electronic_only,
        registration_state=state,
        available_actions=allowed_transitions(state) if provider_id else [],
        reg_status=detail.reg_status,
        stage=detail.stage,
        status=detail.status,
        last_submitted_transaction=detail.last_submitted_transaction,
        esmd_transaction_id=detail.esmd_transaction_id,
        transaction_id_list=split_csv(detail.transaction_id_list),
        status_changes=detail.status_changes,
        notification_details=detail.notification_details,
        errors=detail.errors,
        error_list=detail.error_list,
    )


def merge_remote_into_base(
    base_rows: Iterable[ProviderRow],
    remote_items: Iterable[ProviderListItem],
) -> list[ProviderRow]:
    """Overlay fresh registry data on composed rows, keyed by NPI.

    Customer and group linkage stay as stored locally, as does a non-empty
    local display name. ``submission_status`` is not carried by list items,
    so the base value is kept. Remote items without a base row are appended.
    The result is sorted by NPI.
    """
    by_npi: dict[str, ProviderRow] = {row.npi: row for row in base_rows}

    for item in remote_items:
        remote = map_list_item_to_row(item)
        base = by_npi.get(remote.npi)
        if base is None:
            by_npi[remote.npi] = remote
            continue

        update = remote.model_dump(
            exclude=LOCAL_ROW_FIELDS | {"provider_name", "provider_id", "submission_status"}
        )
        update["provider_name"] = base.provider_name or remote.provider_name
        update["provider_id"] = remote.provider_id or base.provider_id
        update["available_actions"] = (
            allowed_transitions(remote.registration_state)
            if update["provider_id"]
            else []
        )
        by_npi[remote.npi] = ProviderRow.model_validate({**base.model_dump(), **update})

    return sorted(by_npi.values(), key=lambda row: row.npi)


def overlay_list_fields(
    rows: Iterable[ProviderRow],
    remote_items: Iterable[ProviderListItem],
) -> list[ProviderRow]:
    """Refresh list-owned fields of composed rows from fresh list items.

    Registration status fields are left as composed, so a stored lookup keeps
    precedence over the list. Rows without a matching item, and items without
    a row, are left alone.
    """
    by_npi: dict[str, ProviderListItem] = {item.npi: item for item in remote_items}

    result = []
    for row in rows:
        item = by_npi.get(row.npi)
        if item is None:
            result.append(row)
            continue

        detail = map_list_item_to_detail(item)
        state = derive_registration_state(
            detail.registered_for_emdr, detail.registered_for_emdr_electronic_only
        )
        update: dict[str, Any] = {
            field: getattr(detail, field) for field in LIST_OWNED_ROW_FIELDS
        }
        update["registration_state"] = state
        update["available_actions"] = (
            allowed_transitions(state) if row.provider_id else []
        )
        result.append(ProviderRow.model_validate({**row.model_dump(), **update}))

    return result

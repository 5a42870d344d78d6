"""Tests for the snapshot mapper."""

from uuid import uuid4

from provider_sync.models.provider import Provider, ProviderRegistrationStatus
from provider_sync.schemas.provider import ProviderRow, RegistrationState
from provider_sync.schemas.registry import ProviderListItem
from provider_sync.services.snapshot import (
    allowed_transitions,
    build_update_from_remote,
    derive_registration_state,
    dump_list_snapshot,
    load_list_snapshot,
    map_list_item_to_detail,
    map_list_item_to_row,
    map_persisted_to_row,
    merge_remote_into_base,
    overlay_list_fields,
    to_csv,
)


def _item(npi: str, **fields) -> ProviderListItem:
    return ProviderListItem.model_validate({"providerNPI": npi, **fields})


class TestToCsv:
    def test_joins_lists(self) -> None:
        assert to_csv(["T1", "T2", 3]) == "T1,T2,3"

    def test_keeps_strings(self) -> None:
        assert to_csv("T1,T2") == "T1,T2"

    def test_other_values_become_none(self) -> None:
        assert to_csv(None) is None
        assert to_csv(42) is None


class TestBuildUpdateFromRemote:
    def test_absent_fields_are_left_out(self) -> None:
        patch = build_update_from_remote(_item("1", provider_city="Shelbyville"))
        assert patch == {"city": "Shelbyville"}

    def test_present_null_overwrites(self) -> None:
        patch = build_update_from_remote(
            _item("1", provider_street=None, provider_id="P-9")
        )
        assert patch == {"street": None, "remote_provider_id": "P-9"}

    def test_empty_item_patches_nothing(self) -> None:
        assert build_update_from_remote(_item("1")) == {}


class TestRegistrationState:
    def test_derivation(self) -> None:
        assert derive_registration_state(False, False) == RegistrationState.NOT_REGISTERED
        assert derive_registration_state(True, False) == RegistrationState.REGISTERED
        assert (
            derive_registration_state(True, True)
            == RegistrationState.REGISTERED_ELECTRONIC_ONLY
        )

    def test_electronic_only_implies_registered(self) -> None:
        assert (
            derive_registration_state(False, True)
            == RegistrationState.REGISTERED_ELECTRONIC_ONLY
        )

    def test_allowed_transitions(self) -> None:
        assert allowed_transitions(RegistrationState.NOT_REGISTERED) == ["register"]
        assert allowed_transitions(RegistrationState.REGISTERED) == [
            "deregister",
            "electronic-only",
        ]
        # No direct widening back to standard delivery
        assert allowed_transitions(RegistrationState.REGISTERED_ELECTRONIC_ONLY) == [
            "deregister"
        ]


class TestListSnapshotEnvelope:
    def test_envelope_keeps_unknown_keys(self) -> None:
        item = _item("1", provider_city="Springfield", vendor_flag="x")
        raw = dump_list_snapshot(item)

        assert raw["schema_version"] == 1
        assert raw["item"] == {
            "providerNPI": "1",
            "provider_city": "Springfield",
            "vendor_flag": "x",
        }
        loaded = load_list_snapshot(raw)
        assert loaded is not None
        assert loaded.model_fields_set == item.model_fields_set

    def test_unreadable_snapshot_is_absent(self) -> None:
        assert load_list_snapshot(None) is None
        assert load_list_snapshot({"providerNPI": "1"}) is None
        assert load_list_snapshot({"schema_version": 2, "item": {"providerNPI": "1"}}) is None


class TestMapListItemToDetail:
    def test_normalizes_fields(self) -> None:
        detail = map_list_item_to_detail(
            _item(
                "1",
                registered_for_emdr=None,
                transaction_id_list=["A", "B"],
                esMDTransactionID="E-1",
                errorList=["bad"],
            )
        )
        assert detail.registered_for_emdr is False
        assert detail.transaction_id_list == "A,B"
        assert detail.esmd_transaction_id == "E-1"
        assert detail.error_list == ["bad"]
        assert detail.status_changes == []
        assert detail.notification_details == []


class TestMapPersistedToRow:
    def _provider(self, **fields) -> Provider:
        values = {
            "npi": "1",
            "name": "Local Name",
            "street": "1 Local St",
            "city": "Localville",
            "state": "IL",
            "zip": "00001",
            "remote_provider_id": "P-local",
        }
        values.update(fields)
        return Provider(**values)

    def test_provider_columns_only(self) -> None:
        row = map_persisted_to_row(self._provider())

        assert row.provider_name == "Local Name"
        assert row.provider_city == "Localville"
        assert row.provider_id == "P-local"
        assert row.registration_state == RegistrationState.NOT_REGISTERED
        assert row.available_actions == ["register"]
        assert row.transaction_id_list is None
        assert row.errors == []

    def test_registration_status_beats_list_detail_beats_provider(self) -> None:
        detail = map_list_item_to_detail(
            _item(
                "1",
                provider_id="P-list",
                reg_status="List Status",
                stage="List Stage",
                provider_city="Listville",
                registered_for_emdr=True,
                transaction_id_list="L1",
            )
        )
        status = ProviderRegistrationStatus(
            remote_provider_id="P-reg",
            reg_status="Reg Status",
            submission_status="Accepted",
            transaction_id_list="R1,,R2",
        )

        row = map_persisted_to_row(
            self._provider(), list_detail=detail, registration_status=status
        )

        assert row.provider_id == "P-reg"
        assert row.reg_status == "Reg Status"
        # Absent on the status, so the list detail wins
        assert row.stage == "List Stage"
        assert row.provider_city == "Listville"
        # Absent on both, so the provider column wins
        assert row.provider_street == "1 Local St"
        assert row.submission_status == "Accepted"
        assert row.transaction_id_list == ["R1", "R2"]
        assert row.registered_for_emdr is True
        assert row.registration_state == RegistrationState.REGISTERED

    def test_without_registry_id_nothing_is_offered(self) -> None:
        row = map_persisted_to_row(self._provider(remote_provider_id=None))
        assert row.provider_id == ""
        assert row.available_actions == []

    def test_local_linkage(self) -> None:
        customer_id = uuid4()
        row = map_persisted_to_row(
            self._provider(customer_id=customer_id),
            customer_name="Acme",
            provider_group_name="Cardiology",
        )
        assert row.customer_id == str(customer_id)
        assert row.customer_name == "Acme"
        assert row.provider_group_name == "Cardiology"


class TestMergeRemoteIntoBase:
    def test_merge_preserves_ownership(self) -> None:
        base = [
            ProviderRow(
                npi="1",
                provider_id="P-1",
                provider_name="Local Name",
                customer_id="C1",
                customer_name="Acme",
                submission_status="Accepted",
            )
        ]
        remote = [
            _item(
                "1",
                provider_name="Remote Name",
                provider_city="Remote City",
                registered_for_emdr=True,
            )
        ]

        merged = merge_remote_into_base(base, remote)

        assert len(merged) == 1
        row = merged[0]
        assert row.customer_id == "C1"
        assert row.customer_name == "Acme"
        assert row.provider_name == "Local Name"
        assert row.provider_id == "P-1"
        assert row.provider_city == "Remote City"
        assert row.submission_status == "Accepted"
        assert row.registration_state == RegistrationState.REGISTERED
        assert row.available_actions == ["deregister", "electronic-only"]

    def test_unmatched_items_are_appended_sorted(self) -> None:
        base = [ProviderRow(npi="2", customer_id="C1")]
        remote = [_item("3"), _item("1", provider_name="New")]

        merged = merge_remote_into_base(base, remote)

        assert [row.npi for row in merged] == ["1", "2", "3"]
        assert merged[0].customer_id is None
        assert merged[0].provider_name == "New"

    def test_remote_row_for_unknown_item(self) -> None:
        row = map_list_item_to_row(
            _item("9", provider_id="P-9", registered_for_emdr_electronic_only=True)
        )
        assert row.registration_state == RegistrationState.REGISTERED_ELECTRONIC_ONLY
        assert row.available_actions == ["deregister"]


class TestOverlayListFields:
    def test_registration_status_fields_survive(self) -> None:
        rows = [
            ProviderRow(
                npi="1",
                provider_id="P-1",
                reg_status="Approved",
                stage="Done",
                error_list=["E1"],
                transaction_id_list=["T9"],
            ),
            ProviderRow(npi="2", provider_id="P-2", reg_status="Pending"),
        ]
        remote = [_item("1", registered_for_emdr=True), _item("3")]

        overlaid = overlay_list_fields(rows, remote)

        assert [row.npi for row in overlaid] == ["1", "2"]
        row = overlaid[0]
        assert row.reg_status == "Approved"
        assert row.stage == "Done"
        assert row.error_list == ["E1"]
        assert row.transaction_id_list == ["T9"]
        assert row.registered_for_emdr is True
        assert row.registration_state == RegistrationState.REGISTERED
        assert row.available_actions == ["deregister", "electronic-only"]
        assert overlaid[1] == rows[1]

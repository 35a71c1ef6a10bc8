"""Tests for schemasync/lib/service.py - inbound request handling."""

import json
import logging

import pytest

from schemasync.lib.errors import InvalidRequest, MalformedChangeRequest, UnknownDataset
from schemasync.lib.service import ColumnChangeRequest, InspectRequest, ValidationService
from schemasync.lib.store import MetadataStore


@pytest.fixture
def service(gdp_dataset):
    svc = ValidationService()
    svc.register(gdp_dataset)
    return svc


class TestRequests:
    """Tests for the pydantic request models."""

    def test_inspect_request_aliases(self):
        """camelCase keys map onto the model."""
        request = InspectRequest.model_validate({"columnNames": ["Year"], "maxWorkers": 2})
        assert request.column_names == ["Year"]
        assert request.max_workers == 2
        assert request.include_errors is False

    def test_change_request_to_change(self):
        """A change request converts to a change variant."""
        request = ColumnChangeRequest.model_validate({"kind": "move", "columnIndex": 0, "newIndex": 1})
        change = request.to_change()
        assert (change.old_column_index, change.new_column_index) == (0, 1)


class TestInspect:
    """Tests for ValidationService.inspect."""

    def test_report(self, service):
        """The report is the JSON-shaped validation-reports dict."""
        result = service.inspect("gdp", {"columnNames": ["Year"]})
        assert [r["code"] for r in result["validation-reports"]] == [
            "type-or-format-error",
            "minimum-constraint",
        ]
        json.dumps(result)

    def test_include_errors(self, service):
        """includeErrors adds recovered errors."""
        result = service.inspect("gdp", {"columnNames": ["Nope"], "includeErrors": True})
        assert result["validation-reports"] == []
        assert result["errors"][0]["column"] == "Nope"

    def test_unknown_dataset(self, service):
        """Unregistered ids are rejected."""
        with pytest.raises(UnknownDataset, match="Unknown dataset 'missing'"):
            service.inspect("missing", {"columnNames": ["Year"]})

    @pytest.mark.parametrize("payload", [{}, {"columnNames": []}, {"columnNames": ["Year"], "maxWorkers": 0}])
    def test_invalid_request(self, service, payload):
        """Requests that do not validate raise InvalidRequest."""
        with pytest.raises(InvalidRequest):
            service.inspect("gdp", payload)


class TestColumnChanges:
    """Tests for notify_column_change and apply_column_change."""

    def test_notify_after_host_commit(self, service, gdp_dataset):
        """The host commits the change; the notification syncs the schema."""
        gdp_dataset.column_model.remove_column(1)
        assert service.notify_column_change("gdp", {"kind": "remove", "columnIndex": 1})
        assert gdp_dataset.schema.field_names == ["Country Name", "Year", "Value"]

    def test_malformed_notification_ignored(self, service, gdp_dataset, caplog):
        """A malformed notification is logged and leaves the schema alone."""
        caplog.set_level(logging.WARNING)
        assert service.notify_column_change("gdp", {"kind": "rename"}) is False
        assert len(gdp_dataset.schema) == 4
        assert "Ignoring column change" in caplog.text

    def test_apply_column_change(self, service, gdp_dataset):
        """apply_column_change edits the dataset and the schema together."""
        service.apply_column_change(
            "gdp",
            {"kind": "add", "columnIndex": 4, "columnName": "Source"},
            {"Source": ["wb", "wb", "wb", "wb"]},
        )
        assert gdp_dataset.column_model.column_names[-1] == "Source"
        assert gdp_dataset.schema.field_names[-1] == "Source"

    def test_apply_malformed_raises(self, service):
        """apply_column_change surfaces malformed payloads."""
        with pytest.raises(MalformedChangeRequest):
            service.apply_column_change("gdp", {"kind": "add", "columnIndex": -1, "columnName": "X"})


class TestPersistence:
    """Tests for the store-backed service."""

    def test_saves_after_change(self, tmp_path, gdp_dataset):
        """The package is saved after every schema update."""
        store = MetadataStore(tmp_path)
        service = ValidationService(store=store)
        service.register(gdp_dataset)

        gdp_dataset.column_model.remove_column(3)
        service.notify_column_change("gdp", {"kind": "remove", "columnIndex": 3})

        saved = store.load("gdp")
        assert saved.read_schema().field_names == ["Country Name", "Country Code", "Year"]

    def test_register_attaches_stored_package(self, tmp_path, gdp_dataset, dataset_factory):
        """A dataset without a package picks up the stored one."""
        store = MetadataStore(tmp_path)
        store.save("gdp", gdp_dataset.metadata)

        bare = dataset_factory(["Country Name", "Country Code", "Year", "Value"], [["x", "XYZ", "1990", "1.0"]], name="gdp")
        service = ValidationService(store=store)
        service.register(bare)

        assert bare.schema.get_field("Year").constraints == {"minimum": "1962"}
        assert service.dataset_ids == ["gdp"]

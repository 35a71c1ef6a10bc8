"""Tests for schemasync/lib/errors.py - the structured exception hierarchy."""

import pytest

from schemasync.lib.errors import (
    CoercionError,
    ConfigurationError,
    ConstructionError,
    InspectionCancelled,
    InvalidRequest,
    MalformedChangeRequest,
    MetadataStoreError,
    SchemaError,
    SchemaMissing,
    SchemaSyncError,
    UnknownConstraint,
    UnknownDataset,
)


class TestSchemaSyncError:
    """Tests for the base exception."""

    def test_basic_message(self):
        """Without extras the string is just the message."""
        error = SchemaSyncError("Something broke")
        assert str(error) == "Something broke"
        assert error.details == {}

    def test_full_formatting(self):
        """Column, details and suggestion are all rendered."""
        error = SchemaSyncError(
            "Bad value",
            column="Year",
            details={"row": 3},
            suggestion="Fix the data",
        )
        text = str(error)
        assert text.startswith("[Year]")
        assert "row: 3" in text
        assert "Suggestion: Fix the data" in text

    def test_to_dict(self):
        """to_dict exposes the structured fields."""
        error = SchemaError("Duplicate field name 'Year'", details={"field": "Year"})
        assert error.to_dict() == {
            "error_type": "SchemaError",
            "message": "Duplicate field name 'Year'",
            "column": None,
            "details": {"field": "Year"},
            "suggestion": None,
        }


class TestSubclasses:
    """Tests for the message and detail shape of each subclass."""

    @pytest.mark.parametrize(
        "error",
        [
            SchemaError("x"),
            SchemaMissing("gdp"),
            UnknownConstraint("foobar"),
            CoercionError("abc", "integer"),
            MalformedChangeRequest("bad"),
            ConstructionError("minimum", "abc", "not comparable"),
            ConfigurationError("bad"),
            InspectionCancelled("Year", 3),
            MetadataStoreError("io"),
            UnknownDataset("gdp"),
            InvalidRequest("bad"),
        ],
    )
    def test_all_derive_from_base(self, error):
        """Every engine error can be caught as SchemaSyncError."""
        assert isinstance(error, SchemaSyncError)

    def test_schema_missing(self):
        """SchemaMissing names the dataset and suggests attaching a package."""
        error = SchemaMissing("gdp")
        assert error.message == "No schema attached to dataset 'gdp'"
        assert error.details == {"dataset": "gdp"}
        assert "data package" in error.suggestion

    def test_coercion_error(self):
        """CoercionError records value, type and format."""
        error = CoercionError("abc", "integer", reason="not a whole number")
        assert error.message == "Cannot cast 'abc' to integer (default)"
        assert error.details["reason"] == "not a whole number"
        assert error.details["format"] is None

    def test_construction_error(self):
        """ConstructionError names the constraint and reason."""
        error = ConstructionError("pattern", "[", "bad regex")
        assert error.message == "Cannot build 'pattern' check: bad regex"
        assert error.details == {"constraint": "pattern", "payload": "'['"}

    def test_malformed_change_request(self):
        """The payload is kept and kinds are suggested."""
        error = MalformedChangeRequest("Unknown change kind 'rename'", payload={"kind": "rename"})
        assert error.details["payload"] == {"kind": "rename"}
        assert "add, remove, move, reorder, split" in error.suggestion

    def test_configuration_error_path(self):
        """The path goes into details next to any caller details."""
        error = ConfigurationError("Invalid settings", path="s.yaml", details={"errors": ["x"]})
        assert error.details == {"errors": ["x"], "path": "s.yaml"}

    def test_inspection_cancelled(self):
        """The column and row are recorded."""
        error = InspectionCancelled("Year", 7)
        assert error.column == "Year"
        assert error.row == 7
        assert str(error).startswith("[Year]\nInspection cancelled before row 7")

    def test_metadata_store_error_cause(self):
        """The cause is summarised in details."""
        cause = PermissionError("denied")
        error = MetadataStoreError("Could not write package", path="/tmp/p", cause=cause)
        assert error.cause is cause
        assert error.details["cause"] == "denied"
        assert error.details["cause_type"] == "PermissionError"
        assert error.details["path"] == "/tmp/p"

    def test_unknown_dataset(self):
        """UnknownDataset names the id."""
        error = UnknownDataset("gdp")
        assert error.dataset_id == "gdp"
        assert "Register" in error.suggestion

"""Tests for schemasync/lib/inspector.py - compile and execute passes."""

import logging
import threading

import pytest
from pydantic import ValidationError

from schemasync.lib.errors import (
    ConstructionError,
    InspectionCancelled,
    SchemaError,
    SchemaMissing,
    UnknownConstraint,
)
from schemasync.lib.inspector import InspectOptions, Report, ValidationInspector, inspect


# ============================================
# Scenarios
# ============================================


class TestYearScenario:
    """Year column with minimum 1962 and cells 1960, 1965, abc."""

    @pytest.fixture
    def dataset(self, dataset_factory):
        return dataset_factory(
            ["Year"],
            [["1960"], ["1965"], ["abc"]],
            [{"name": "Year", "type": "integer", "constraints": {"minimum": 1962}}],
        )

    def test_two_findings(self, dataset):
        """Row 0 fails minimum, row 2 fails type; row 1 passes."""
        report = inspect(dataset, ["Year"])
        assert {(f.row, f.code) for f in report.findings} == {
            (0, "minimum-constraint"),
            (2, "type-or-format-error"),
        }
        assert len(report) == 2

    def test_order_is_check_then_row(self, dataset):
        """The type check is compiled first, so its findings come first."""
        report = inspect(dataset, ["Year"])
        assert [f.code for f in report.findings] == ["type-or-format-error", "minimum-constraint"]

    def test_report_shape(self, dataset):
        """to_dict gives the validation-reports list with four keys per entry."""
        result = inspect(dataset, ["Year"]).to_dict()
        assert list(result) == ["validation-reports"]
        entry = result["validation-reports"][0]
        assert set(entry) == {"column", "row", "code", "message"}
        assert entry["column"] == "Year"


class TestBounds:
    """Every out-of-bound cell yields exactly one finding."""

    def test_min_and_max(self, dataset_factory):
        """On-bound values pass; each out-of-bound value is one finding."""
        dataset = dataset_factory(
            ["n"],
            [["0"], ["1"], ["5"], ["10"], ["11"], [""]],
            [{"name": "n", "type": "integer", "constraints": {"minimum": 1, "maximum": 10}}],
        )
        report = inspect(dataset, ["n"])
        assert [(f.row, f.code) for f in report.findings] == [
            (0, "minimum-constraint"),
            (4, "maximum-constraint"),
        ]


class TestUnknownConstraint:
    """Unknown constraint keys are skipped, not fatal."""

    def test_foobar_skipped(self, dataset_factory, caplog):
        """foobar is logged and skipped; minimum still runs."""
        dataset = dataset_factory(
            ["Year"],
            [["1960"], ["1965"]],
            [{"name": "Year", "type": "integer", "constraints": {"foobar": 1, "minimum": 1962}}],
        )
        caplog.set_level(logging.WARNING)
        report = inspect(dataset, ["Year"])

        assert [f.code for f in report.findings] == ["minimum-constraint"]
        assert "Skipping unknown constraint 'foobar'" in caplog.text
        assert len(report.errors) == 1
        assert isinstance(report.errors[0], UnknownConstraint)
        assert report.errors[0].column == "Year"

    def test_bad_payload_drops_one_check(self, dataset_factory):
        """A rejected payload drops that check only."""
        dataset = dataset_factory(
            ["code"],
            [["ab"], ["abcd"]],
            [{"name": "code", "type": "string", "constraints": {"pattern": "[", "maxLength": 3}}],
        )
        report = inspect(dataset, ["code"])
        assert [f.code for f in report.findings] == ["maximum-length-constraint"]
        assert isinstance(report.errors[0], ConstructionError)


class TestMissingSchema:
    """Inspection without a schema."""

    def test_empty_report(self, dataset_factory, caplog):
        """No schema gives an empty report and a logged note."""
        dataset = dataset_factory(["a"], [["1"]])
        caplog.set_level(logging.ERROR)
        report = inspect(dataset, ["a"])
        assert report.findings == []
        assert isinstance(report.errors[0], SchemaMissing)
        assert "No schema attached to dataset 'test'" in caplog.text

    def test_compile_raises(self, dataset_factory):
        """compile() itself needs a schema."""
        dataset = dataset_factory(["a"], [["1"]])
        with pytest.raises(SchemaMissing):
            ValidationInspector().compile(dataset, ["a"])


# ============================================
# Compile pass
# ============================================


class TestCompile:
    """Tests for the compile pass."""

    def test_plan_order(self, gdp_dataset):
        """Type check first, then constraints in declaration order."""
        plan = ValidationInspector().compile(gdp_dataset, ["Year", "Country Code"])
        assert [c.column_name for c in plan] == ["Year", "Country Code"]
        assert plan[0].codes == ["type-or-format-error", "minimum-constraint"]
        assert plan[1].codes == ["type-or-format-error", "pattern-constraint"]
        assert isinstance(plan[0].validators, tuple)

    def test_column_not_in_schema(self, gdp_dataset):
        """Unknown columns are skipped with a recorded error."""
        errors = []
        plan = ValidationInspector().compile(gdp_dataset, ["Nope", "Year"], errors)
        assert [c.column_name for c in plan] == ["Year"]
        assert isinstance(errors[0], SchemaError)
        assert errors[0].column == "Nope"

    def test_message_template_override(self, gdp_dataset):
        """Per-code templates replace the built-in ones."""
        inspector = ValidationInspector(message_templates={"minimum-constraint": "{value} < {constraint}"})
        report = inspector.inspect(gdp_dataset, ["Year"])
        minimum = [f for f in report.findings if f.code == "minimum-constraint"]
        assert minimum[0].message == "1960 < 1962"


# ============================================
# Execute pass
# ============================================


class TestExecute:
    """Tests for the execute pass."""

    def test_idempotent(self, gdp_dataset):
        """Two runs on unchanged input give identical reports."""
        columns = ["Country Name", "Country Code", "Year", "Value"]
        first = inspect(gdp_dataset, columns)
        second = inspect(gdp_dataset, columns)
        assert first.findings == second.findings
        assert first.to_dict() == second.to_dict()

    def test_parallel_matches_sequential(self, gdp_dataset):
        """Column-parallel runs keep the sequential order."""
        columns = ["Value", "Year", "Country Code", "Country Name"]
        sequential = inspect(gdp_dataset, columns)
        parallel = inspect(gdp_dataset, columns, InspectOptions(max_workers=4))
        assert parallel.findings == sequential.findings

    def test_gdp_findings(self, gdp_dataset):
        """Integral text in a number column passes; the bad year fails twice over."""
        report = inspect(gdp_dataset, ["Year", "Value"])
        assert [(f.column, f.row, f.code) for f in report.findings] == [
            ("Year", 3, "type-or-format-error"),
            ("Year", 2, "minimum-constraint"),
        ]
        assert report.findings_for("Value") == []

    def test_typed_cells_in_string_column(self, dataset_factory):
        """Numbers and booleans under a string field are read as text."""
        dataset = dataset_factory(
            ["A"],
            [[42], [3.5], [True], ["x"]],
            [{"name": "A", "type": "string"}],
        )
        assert inspect(dataset, ["A"]).findings == []

    def test_cancel(self, gdp_dataset):
        """A set cancel event aborts the run."""
        event = threading.Event()
        event.set()
        with pytest.raises(InspectionCancelled):
            inspect(gdp_dataset, ["Year"], InspectOptions(cancel_event=event))

    def test_metrics(self, gdp_dataset):
        """Phase timings and counters are recorded."""
        report = inspect(gdp_dataset, ["Year", "Value"])
        assert set(report.metrics.phases) == {"compile", "execute"}
        assert report.metrics.get("columns") == 2
        assert report.metrics.get("findings") == 2


class TestReportAndOptions:
    """Tests for Report and InspectOptions."""

    def test_include_errors(self, dataset_factory):
        """include_errors adds the recovered errors as dicts."""
        dataset = dataset_factory(["a"], [["1"]])
        result = inspect(dataset, ["a"]).to_dict(include_errors=True)
        assert result["validation-reports"] == []
        assert result["errors"][0]["error_type"] == "SchemaMissing"

    def test_passed(self):
        """An empty report passed."""
        assert Report().passed

    def test_options_alias(self):
        """Options accept the camelCase request key."""
        assert InspectOptions.model_validate({"maxWorkers": 3}).max_workers == 3

    def test_options_bounds(self):
        """maxWorkers must be at least one."""
        with pytest.raises(ValidationError):
            InspectOptions(max_workers=0)

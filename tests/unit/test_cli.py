"""Tests for the schemasync command line."""

import json
import logging

import pytest

from schemasync.__main__ import EXIT_ERROR, EXIT_FINDINGS, EXIT_OK, build_parser, main


@pytest.fixture(autouse=True)
def restore_logging(tmp_path, monkeypatch):
    """main() reconfigures the root logger; put it back afterwards."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "gdp.csv"
    path.write_text(
        "Country Name,Year,Value\n"
        "Arab World,1968,25760683041.0857\n"
        "Caribbean small states,1960,1916626437\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def package_path(tmp_path):
    path = tmp_path / "datapackage.json"
    path.write_text(
        json.dumps(
            {
                "name": "gdp",
                "resources": [
                    {
                        "name": "gdp",
                        "path": "gdp.csv",
                        "schema": {
                            "fields": [
                                {"name": "Country Name", "type": "string"},
                                {"name": "Year", "type": "integer", "constraints": {"minimum": 1962}},
                                {"name": "Value", "type": "number"},
                            ]
                        },
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_validate_arguments(self):
        """validate takes a CSV, a package and optional columns."""
        args = build_parser().parse_args(
            ["validate", "gdp.csv", "--package", "p.json", "--columns", "Year", "Value", "--workers", "2"]
        )
        assert args.columns == ["Year", "Value"]
        assert args.workers == 2

    def test_command_required(self):
        """A subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestValidateCommand:
    """Tests for schemasync validate."""

    def test_findings_exit_code(self, csv_path, package_path, capsys):
        """Findings are printed and the exit code is 1."""
        code = main(["validate", str(csv_path), "--package", str(package_path)])
        out = capsys.readouterr().out
        assert code == EXIT_FINDINGS
        assert "minimum-constraint" in out
        assert "1 finding(s) in 3 column(s) of 2 row(s)" in out

    def test_json_output(self, csv_path, package_path, capsys):
        """--json prints the report dict."""
        code = main(["validate", str(csv_path), "--package", str(package_path), "--columns", "Value", "--json"])
        result = json.loads(capsys.readouterr().out)
        assert code == EXIT_OK
        assert result == {"validation-reports": [], "errors": []}

    def test_missing_package(self, csv_path, tmp_path, capsys):
        """An unreadable package is an error exit."""
        code = main(["validate", str(csv_path), "--package", str(tmp_path / "nope.json")])
        assert code == EXIT_ERROR
        assert "Error:" in capsys.readouterr().err

    def test_bad_settings(self, csv_path, package_path, tmp_path, capsys):
        """A missing settings file is an error exit."""
        code = main(
            ["--settings", str(tmp_path / "nope.yaml"), "validate", str(csv_path), "--package", str(package_path)]
        )
        assert code == EXIT_ERROR


class TestInitCommand:
    """Tests for schemasync init."""

    def test_writes_string_package(self, csv_path, tmp_path):
        """init writes one string field per CSV column."""
        target = tmp_path / "out" / "datapackage.json"
        assert main(["init", str(csv_path), "--package", str(target)]) == EXIT_OK

        descriptor = json.loads(target.read_text(encoding="utf-8"))
        resource = descriptor["resources"][0]
        assert resource["path"] == "gdp.csv"
        assert [f["name"] for f in resource["schema"]["fields"]] == ["Country Name", "Year", "Value"]
        assert {f["type"] for f in resource["schema"]["fields"]} == {"string"}

    def test_refuses_overwrite(self, csv_path, package_path):
        """An existing package is kept unless --force is given."""
        before = package_path.read_text(encoding="utf-8")
        assert main(["init", str(csv_path), "--package", str(package_path)]) == EXIT_ERROR
        assert package_path.read_text(encoding="utf-8") == before
        assert main(["init", str(csv_path), "--package", str(package_path), "--force"]) == EXIT_OK

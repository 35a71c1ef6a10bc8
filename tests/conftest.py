"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from schemasync.lib.model import Dataset  # noqa: E402
from schemasync.lib.schema import PackageMetadata  # noqa: E402

GDP_COLUMNS = ["Country Name", "Country Code", "Year", "Value"]

GDP_RECORDS = [
    ["Arab World", "ARB", "1968", "25760683041.0857"],
    ["Arab World", "ARB", "1969", "28434203615.4829"],
    ["Caribbean small states", "CSS", "1960", "1916626437"],
    ["Euro area", "EMU", "abc", "2847385740000"],
]


def make_package(fields, name="gdp", **schema_extras):
    """Build a one-resource package around a list of field descriptors."""
    schema = {"fields": fields}
    schema.update(schema_extras)
    return PackageMetadata(
        {
            "name": name,
            "title": "GDP by country",
            "resources": [{"name": name, "path": f"{name}.csv", "schema": schema}],
        }
    )


def make_dataset(columns, records, fields=None, name="test", **schema_extras):
    """Dataset with raw text cells and, if ``fields`` is given, a schema."""
    metadata = make_package(fields, name=name, **schema_extras) if fields is not None else None
    return Dataset.from_records(name, list(columns), records, metadata)


@pytest.fixture
def gdp_fields():
    """Field descriptors for the GDP sample."""
    return [
        {"name": "Country Name", "type": "string"},
        {"name": "Country Code", "type": "string", "constraints": {"pattern": "[A-Z]{3}"}},
        {"name": "Year", "type": "integer", "constraints": {"minimum": "1962"}},
        {"name": "Value", "type": "number"},
    ]


@pytest.fixture
def gdp_dataset(gdp_fields):
    """Four GDP rows: one year below the minimum, one unreadable year."""
    return make_dataset(GDP_COLUMNS, GDP_RECORDS, gdp_fields, name="gdp")


@pytest.fixture
def abc_dataset():
    """Three string columns A, B, C with a matching schema."""
    return make_dataset(
        ["A", "B", "C"],
        [["a1", "John Smith", "c1"], ["a2", "Jane Doe", "c2"]],
        [
            {"name": "A", "type": "string"},
            {"name": "B", "type": "string", "constraints": {"required": True}},
            {"name": "C", "type": "string"},
        ],
        name="abc",
    )


@pytest.fixture
def dataset_factory():
    """``make_dataset`` as a fixture, for tests that build their own data."""
    return make_dataset

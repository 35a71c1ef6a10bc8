"""Schema-synchronized cell validation.

Validates the cells of a tabular dataset against the table schema stored
in its data-package metadata, and keeps that schema in step with
structural column edits.

Usage:
    python -m schemasync validate gdp.csv --package datapackage.json
"""

from schemasync.lib.inspector import Report, ValidationInspector, inspect
from schemasync.lib.model import Dataset
from schemasync.lib.schema import Field, PackageMetadata, Schema
from schemasync.lib.service import ValidationService
from schemasync.lib.synchronizer import SchemaSynchronizer

__version__ = "1.0.0"

__all__ = [
    "Dataset",
    "Field",
    "PackageMetadata",
    "Report",
    "Schema",
    "SchemaSynchronizer",
    "ValidationInspector",
    "ValidationService",
    "inspect",
]

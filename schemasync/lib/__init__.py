"""Validation engine modules.

This package contains the schema model, value coercion, the constraint
validators and registry, the inspector, and the schema synchronizer that
follows structural column edits.
"""

from schemasync.lib.changes import (
    ChangeKind,
    ColumnAddition,
    ColumnChange,
    ColumnMove,
    ColumnRemoval,
    ColumnReorder,
    ColumnSplit,
    change_from_dict,
    change_to_dict,
)
from schemasync.lib.checks import MESSAGE_TEMPLATES, ColumnTarget, Finding, Validator
from schemasync.lib.coercion import coerce, coerce_with_fallback
from schemasync.lib.editing import ColumnEditor
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
from schemasync.lib.frame import (
    create_pandera_schema,
    dataset_from_frame,
    dataset_to_frame,
    read_csv_dataset,
    validate_frame,
)
from schemasync.lib.inspector import InspectOptions, Report, ValidationInspector, inspect
from schemasync.lib.model import Cell, Column, ColumnModel, Dataset, Row
from schemasync.lib.observability import InspectionMetrics, setup_logging
from schemasync.lib.registry import DEFAULT_REGISTRY, ConstraintRegistry
from schemasync.lib.schema import Field, FieldType, PackageMetadata, Schema
from schemasync.lib.service import ValidationService
from schemasync.lib.settings import EngineSettings, LoggingConfig, load_settings
from schemasync.lib.store import MetadataStore
from schemasync.lib.synchronizer import SchemaSynchronizer, is_in_sync

__all__ = [
    # Changes
    "ChangeKind",
    "ColumnAddition",
    "ColumnChange",
    "ColumnMove",
    "ColumnRemoval",
    "ColumnReorder",
    "ColumnSplit",
    "change_from_dict",
    "change_to_dict",
    # Checks
    "MESSAGE_TEMPLATES",
    "ColumnTarget",
    "Finding",
    "Validator",
    "coerce",
    "coerce_with_fallback",
    # Editing and sync
    "ColumnEditor",
    "SchemaSynchronizer",
    "is_in_sync",
    # Errors
    "CoercionError",
    "ConfigurationError",
    "ConstructionError",
    "InspectionCancelled",
    "InvalidRequest",
    "MalformedChangeRequest",
    "MetadataStoreError",
    "SchemaError",
    "SchemaMissing",
    "SchemaSyncError",
    "UnknownConstraint",
    "UnknownDataset",
    # Frames
    "create_pandera_schema",
    "dataset_from_frame",
    "dataset_to_frame",
    "read_csv_dataset",
    "validate_frame",
    # Inspection
    "InspectOptions",
    "Report",
    "ValidationInspector",
    "inspect",
    "DEFAULT_REGISTRY",
    "ConstraintRegistry",
    # Model
    "Cell",
    "Column",
    "ColumnModel",
    "Dataset",
    "Row",
    "Field",
    "FieldType",
    "PackageMetadata",
    "Schema",
    # Service, settings, store
    "ValidationService",
    "EngineSettings",
    "LoggingConfig",
    "load_settings",
    "MetadataStore",
    "InspectionMetrics",
    "setup_logging",
]

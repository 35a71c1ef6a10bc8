"""Structured exception hierarchy for the validation engine.

Every error carries a message plus optional details and a fix suggestion,
so callers can log it as structured data with ``to_dict()``.

Most of these are recovered inside the engine: the inspector and the
synchronizer log them and carry on with the best report they can build.
Only ``MetadataStoreError`` (I/O against the package store),
``InspectionCancelled`` and the service-level request errors
(``UnknownDataset``, ``InvalidRequest``) reach the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "SchemaSyncError",
    "SchemaError",
    "SchemaMissing",
    "UnknownConstraint",
    "CoercionError",
    "MalformedChangeRequest",
    "ConstructionError",
    "ConfigurationError",
    "InspectionCancelled",
    "MetadataStoreError",
    "UnknownDataset",
    "InvalidRequest",
]


class SchemaSyncError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        *,
        column: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.column = column
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if column:
            parts.insert(0, f"[{column}]")

        if details:
            parts.append("\nDetails:")
            parts.extend(f"  {k}: {v}" for k, v in details.items())

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging and reports."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "column": self.column,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class SchemaError(SchemaSyncError):
    """A schema descriptor is structurally invalid (e.g. duplicate names)."""


class SchemaMissing(SchemaSyncError):
    """The dataset has no schema attached, so nothing can be checked."""

    def __init__(self, dataset_name: str, **kwargs: Any) -> None:
        self.dataset_name = dataset_name
        kwargs.setdefault(
            "suggestion",
            "Attach a data package with a resource schema before validating.",
        )
        super().__init__(
            f"No schema attached to dataset '{dataset_name}'",
            details={"dataset": dataset_name},
            **kwargs,
        )


class UnknownConstraint(SchemaSyncError):
    """No validator is registered under a constraint name."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name
        super().__init__(
            f"Unknown constraint '{name}'",
            details={"constraint": name},
            **kwargs,
        )


class CoercionError(SchemaSyncError):
    """A raw value cannot be read as the declared field type/format."""

    def __init__(
        self,
        value: Any,
        field_type: str,
        field_format: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.value = value
        self.field_type = field_type
        self.field_format = field_format
        self.reason = reason

        details: Dict[str, Any] = {
            "value": repr(value),
            "type": field_type,
            "format": field_format,
        }
        if reason:
            details["reason"] = reason

        super().__init__(
            f"Cannot cast {value!r} to {field_type} ({field_format or 'default'})",
            details=details,
            **kwargs,
        )


class MalformedChangeRequest(SchemaSyncError):
    """A column-change notification has an unknown kind or missing keys."""

    def __init__(self, message: str, *, payload: Any = None, **kwargs: Any) -> None:
        self.payload = payload
        details = kwargs.pop("details", {})
        if payload is not None:
            details["payload"] = payload
        kwargs.setdefault(
            "suggestion",
            "Use one of: add, remove, move, reorder, split.",
        )
        super().__init__(message, details=details, **kwargs)


class ConstructionError(SchemaSyncError):
    """A constraint validator rejected its payload."""

    def __init__(
        self,
        constraint: str,
        payload: Any,
        reason: str,
        **kwargs: Any,
    ) -> None:
        self.constraint = constraint
        self.payload = payload
        self.reason = reason
        super().__init__(
            f"Cannot build '{constraint}' check: {reason}",
            details={"constraint": constraint, "payload": repr(payload)},
            **kwargs,
        )


class ConfigurationError(SchemaSyncError):
    """Engine settings are invalid or unreadable."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)


class InspectionCancelled(SchemaSyncError):
    """The caller abandoned a validation run between rows."""

    def __init__(self, column: str, row: int, **kwargs: Any) -> None:
        self.row = row
        super().__init__(
            f"Inspection cancelled before row {row}",
            column=column,
            details={"row": row},
            **kwargs,
        )


class MetadataStoreError(SchemaSyncError):
    """Reading or writing the persisted package failed.

    This is the one fatal error class: it is surfaced to the caller and is
    never turned into a validation finding.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        self.cause = cause

        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        kwargs.setdefault(
            "suggestion",
            "Check that the store directory exists and is writable.",
        )
        super().__init__(message, details=details, **kwargs)


class UnknownDataset(SchemaSyncError):
    """No dataset is registered under the requested id."""

    def __init__(self, dataset_id: str, **kwargs: Any) -> None:
        self.dataset_id = dataset_id
        kwargs.setdefault("suggestion", "Register the dataset with the service first.")
        super().__init__(
            f"Unknown dataset '{dataset_id}'",
            details={"dataset": dataset_id},
            **kwargs,
        )


class InvalidRequest(SchemaSyncError):
    """An inbound inspect request does not validate."""

    def __init__(self, message: str, *, payload: Any = None, **kwargs: Any) -> None:
        self.payload = payload
        details = kwargs.pop("details", {})
        if payload is not None:
            details["payload"] = payload
        super().__init__(message, details=details, **kwargs)

"""Table schema and data-package metadata.

A ``Schema`` is the ordered list of ``Field`` descriptors for one table.
It lives inside a data-package descriptor under ``resources[0].schema``;
``PackageMetadata`` wraps that descriptor and only ever rewrites the
schema subtree, leaving every other key as it was loaded.

Descriptor layout (frictionless data package):
    {
      "name": "gdp",
      "resources": [
        {"name": "gdp", "path": "gdp.csv",
         "schema": {"fields": [
            {"name": "Year", "type": "integer",
             "constraints": {"minimum": 1962}}
         ]}}
      ]
    }
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from schemasync.lib.errors import SchemaError

logger = logging.getLogger(__name__)

__all__ = [
    "FieldType",
    "Field",
    "Schema",
    "PackageMetadata",
    "DEFAULT_FORMAT",
    "DEFAULT_MISSING_VALUES",
]

DEFAULT_FORMAT = "default"
DEFAULT_MISSING_VALUES = ("",)

_FIELD_KEYS = ("name", "type", "format", "constraints")


class FieldType(Enum):
    """Declared field types understood by the coercer."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    YEAR = "year"
    YEARMONTH = "yearmonth"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass
class Field:
    """A named, typed column descriptor.

    ``constraints`` keeps insertion order; validators are compiled in that
    order. Keys this engine does not interpret (title, trueValues, ...)
    are kept in ``extras`` and written back untouched.
    """

    name: str
    type: str = FieldType.STRING.value
    format: Optional[str] = None
    constraints: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def string(cls, name: str) -> "Field":
        """An unconstrained string field, used for every new column."""
        return cls(name=name)

    @property
    def effective_format(self) -> str:
        return self.format or DEFAULT_FORMAT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Field":
        if not isinstance(data, dict) or not data.get("name"):
            raise SchemaError(
                "Field descriptor must be an object with a 'name'",
                details={"descriptor": data},
            )
        constraints = data.get("constraints") or {}
        if not isinstance(constraints, dict):
            raise SchemaError(
                f"Constraints of field '{data['name']}' must be an object",
                column=data["name"],
            )
        return cls(
            name=str(data["name"]),
            type=str(data.get("type") or FieldType.STRING.value),
            format=data.get("format"),
            constraints=dict(constraints),
            extras={k: v for k, v in data.items() if k not in _FIELD_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.format is not None:
            result["format"] = self.format
        if self.constraints:
            result["constraints"] = dict(self.constraints)
        result.update(self.extras)
        return result


class Schema:
    """Ordered sequence of fields with unique names."""

    def __init__(
        self,
        fields: Optional[Iterable[Field]] = None,
        extras: Optional[Dict[str, Any]] = None,
    ):
        self._fields: List[Field] = []
        self.extras: Dict[str, Any] = dict(extras or {})
        for f in fields or []:
            self.insert_field(len(self._fields), f)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Schema":
        if not isinstance(data, dict):
            raise SchemaError("Schema descriptor must be an object")
        raw_fields = data.get("fields") or []
        if not isinstance(raw_fields, list):
            raise SchemaError("Schema 'fields' must be a list")
        return cls(
            fields=[Field.from_dict(f) for f in raw_fields],
            extras={k: v for k, v in data.items() if k != "fields"},
        )

    @classmethod
    def from_column_names(cls, names: Iterable[str]) -> "Schema":
        return cls(Field.string(name) for name in names)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"fields": [f.to_dict() for f in self._fields]}
        result.update(copy.deepcopy(self.extras))
        return result

    @property
    def fields(self) -> List[Field]:
        return list(self._fields)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self._fields]

    @property
    def missing_values(self) -> List[str]:
        values = self.extras.get("missingValues")
        if values is None:
            return list(DEFAULT_MISSING_VALUES)
        return [str(v) for v in values]

    def get_field(self, name: str) -> Optional[Field]:
        for f in self._fields:
            if f.name == name:
                return f
        return None

    def insert_field(self, index: int, new_field: Field) -> None:
        """Insert ``new_field`` at ``index`` (clamped to the list bounds)."""
        if self.get_field(new_field.name) is not None:
            raise SchemaError(
                f"Duplicate field name '{new_field.name}'",
                column=new_field.name,
                suggestion="Field names must be unique within a schema.",
            )
        index = max(0, min(index, len(self._fields)))
        self._fields.insert(index, new_field)

    def remove_field(self, index: int) -> Field:
        if not 0 <= index < len(self._fields):
            raise SchemaError(
                f"No field at position {index}",
                details={"field_count": len(self._fields)},
            )
        return self._fields.pop(index)

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Schema(fields={self.field_names!r})"


class PackageMetadata:
    """Data-package descriptor holding one table resource.

    The descriptor is opaque apart from ``resources[0].schema``.
    """

    def __init__(self, descriptor: Optional[Dict[str, Any]] = None):
        self.descriptor: Dict[str, Any] = descriptor if descriptor is not None else {}

    @classmethod
    def new(
        cls,
        name: str,
        column_names: Optional[Iterable[str]] = None,
    ) -> "PackageMetadata":
        """Build a single-resource package, optionally with a string schema."""
        resource: Dict[str, Any] = {"name": _slug(name)}
        if column_names is not None:
            resource["schema"] = Schema.from_column_names(column_names).to_dict()
        return cls({"name": _slug(name), "resources": [resource]})

    @property
    def resource(self) -> Optional[Dict[str, Any]]:
        resources = self.descriptor.get("resources") or []
        return resources[0] if resources else None

    def ensure_resource(self, name: str) -> Dict[str, Any]:
        """Return the first resource, creating it if the package has none."""
        resource = self.resource
        if resource is None:
            resource = {"name": _slug(name)}
            self.descriptor.setdefault("resources", []).append(resource)
            logger.info("Created resource '%s' in package", resource["name"])
        return resource

    def read_schema(self) -> Optional[Schema]:
        resource = self.resource
        if resource is None or resource.get("schema") is None:
            return None
        return Schema.from_dict(resource["schema"])

    def write_schema(self, schema: Schema, name: str = "data") -> None:
        self.ensure_resource(name)["schema"] = schema.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.descriptor)


def _slug(name: str) -> str:
    # data-package names are lower-case with . _ - only
    cleaned = "".join(ch if ch.isalnum() or ch in "._-" else "-" for ch in name.lower())
    return cleaned.strip("-") or "data"

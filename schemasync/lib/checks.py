"""Per-column cell checks.

One validator is built for each (column, constraint) pair of a validation
run. Every validator exposes the same small surface (see ``Validator``):

    include(cell)     filter hook; cells it rejects are not checked
    check_cell(cell)  True when the cell passes; never raises
    lookup(cell)      values used to fill the finding message
    validate(rows)    scan all rows and return one Finding per failure

Validators are frozen once built so a compiled list can be shared between
worker threads. Shared behaviour lives in the module-level helpers
``scan_rows`` and ``render_message`` rather than in a base class.

Messages use the per-code templates in ``MESSAGE_TEMPLATES``; a validator
built with ``message_template`` overrides the template for its own code.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from schemasync.lib.coercion import coerce, coerce_with_fallback
from schemasync.lib.errors import CoercionError, ConstructionError, InspectionCancelled
from schemasync.lib.schema import DEFAULT_MISSING_VALUES, Field

if TYPE_CHECKING:
    from schemasync.lib.model import Cell, Dataset, Row

logger = logging.getLogger(__name__)

__all__ = [
    "Severity",
    "Finding",
    "ColumnTarget",
    "Validator",
    "MESSAGE_TEMPLATES",
    "TypeOrFormatValidator",
    "MinimumValidator",
    "MaximumValidator",
    "MinLengthValidator",
    "MaxLengthValidator",
    "PatternValidator",
    "EnumValidator",
    "RequiredValidator",
    "UniqueValidator",
    "scan_rows",
    "render_message",
]

MESSAGE_TEMPLATES: Mapping[str, str] = MappingProxyType({
    "type-or-format-error": (
        "The value {value} in row {row_number} and column {column_number} "
        "is not type {field_type} and format {field_format}"
    ),
    "minimum-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the minimum constraint of {constraint}"
    ),
    "maximum-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the maximum constraint of {constraint}"
    ),
    "minimum-length-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the minimum length constraint of {constraint}"
    ),
    "maximum-length-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the maximum length constraint of {constraint}"
    ),
    "pattern-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the pattern constraint of {constraint}"
    ),
    "enumerable-constraint": (
        "The value {value} in row {row_number} and column {column_number} "
        "does not conform to the given enumeration: {constraint}"
    ),
    "required-constraint": (
        "Column {column_number} is a required field, but row {row_number} has no value"
    ),
    "unique-constraint": (
        "Rows {row_numbers} has unique constraint violation in column {column_number}"
    ),
})


class Severity(Enum):
    """Severity of a finding."""

    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class Finding:
    """One failing cell."""

    column: str
    row: int
    code: str
    message: str
    severity: Severity = Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "row": self.row,
            "code": self.code,
            "message": self.message,
        }


@dataclass(frozen=True)
class ColumnTarget:
    """The column a validator checks, resolved once per run."""

    dataset: "Dataset" = field(repr=False, compare=False)
    column_index: int
    cell_index: int
    field: Field
    missing_values: Tuple[str, ...] = DEFAULT_MISSING_VALUES

    @classmethod
    def resolve(cls, dataset: "Dataset", column_index: int, target: Field) -> "ColumnTarget":
        column = dataset.column_model.columns[column_index]
        missing = dataset.schema.missing_values if dataset.schema else DEFAULT_MISSING_VALUES
        return cls(
            dataset=dataset,
            column_index=column_index,
            cell_index=column.cell_index,
            field=target,
            missing_values=tuple(missing),
        )

    @property
    def column_name(self) -> str:
        return self.field.name

    def coerce(self, value: Any, strict: bool = False) -> Any:
        return coerce(
            value,
            self.field.type,
            self.field.format,
            strict=strict,
            options=self.field.extras,
            missing_values=self.missing_values,
        )

    def coerce_cell(self, cell: Optional["Cell"]) -> Any:
        """Typed value of a cell, None for a missing one."""
        return self.coerce(None if cell is None else cell.value)

    def is_null(self, cell: Optional["Cell"]) -> bool:
        if cell is None or cell.value is None:
            return True
        return isinstance(cell.value, str) and cell.value in self.missing_values


class Validator(Protocol):
    """Common surface of every cell check."""

    code: str
    target: ColumnTarget
    message_template: Optional[str]

    def include(self, cell: Optional["Cell"]) -> bool: ...

    def check_cell(self, cell: Optional["Cell"]) -> bool: ...

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]: ...

    def validate(
        self,
        rows: Sequence["Row"],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Finding]: ...


# ============================================
# Shared helpers
# ============================================


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_message(validator: Validator, cell: Optional["Cell"], row_index: int) -> str:
    """Fill the message template of ``validator`` for one failing cell."""
    target = validator.target
    values: Dict[str, Any] = {
        "value": "" if cell is None or cell.value is None else cell.value,
        "row_number": row_index + 1,
        "column_number": target.column_index + 1,
        "column_name": target.column_name,
    }
    values.update(validator.lookup(cell))
    template = validator.message_template or MESSAGE_TEMPLATES[validator.code]
    return template.format_map(_KeepMissing(values))


def scan_rows(
    validator: Validator,
    rows: Sequence["Row"],
    cancel_event: Optional[threading.Event] = None,
) -> List[Finding]:
    """Run ``validator`` over every row, in row order.

    Raises:
        InspectionCancelled: If ``cancel_event`` is set between two rows
    """
    target = validator.target
    findings: List[Finding] = []
    for row_index, row in enumerate(rows):
        if cancel_event is not None and cancel_event.is_set():
            raise InspectionCancelled(target.column_name, row_index)
        cell = row.get_cell(target.cell_index)
        if not validator.include(cell):
            continue
        if not validator.check_cell(cell):
            findings.append(
                Finding(
                    column=target.column_name,
                    row=row_index,
                    code=validator.code,
                    message=render_message(validator, cell, row_index),
                )
            )
    return findings


def _include_all(cell: Optional["Cell"]) -> bool:
    return True


def _readable(target: ColumnTarget, cell: Optional["Cell"]) -> bool:
    """Unreadable cells are reported by the type check, not by value checks."""
    try:
        target.coerce_cell(cell)
    except CoercionError:
        return False
    return True


def _length_payload(constraint: str, payload: Any) -> int:
    if isinstance(payload, bool):
        raise ConstructionError(constraint, payload, "expected a non-negative integer")
    try:
        length = int(str(payload).strip())
    except ValueError:
        raise ConstructionError(constraint, payload, "expected a non-negative integer") from None
    if length < 0:
        raise ConstructionError(constraint, payload, "expected a non-negative integer")
    return length


def _flag_payload(constraint: str, payload: Any) -> bool:
    if isinstance(payload, bool):
        return payload
    if isinstance(payload, str) and payload.strip().lower() in ("true", "false"):
        return payload.strip().lower() == "true"
    raise ConstructionError(constraint, payload, "expected true or false")


def _bound(constraint: str, target: ColumnTarget, payload: Any) -> Any:
    try:
        bound = target.coerce(payload)
    except CoercionError as e:
        raise ConstructionError(
            constraint,
            payload,
            f"bound is not a valid {target.field.type}",
            column=target.column_name,
        ) from e
    if bound is None:
        raise ConstructionError(constraint, payload, "bound is empty", column=target.column_name)
    return bound


def _hashable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return value


# ============================================
# Validators
# ============================================


@dataclass(frozen=True)
class TypeOrFormatValidator:
    """Cell must be readable as the field's declared type and format.

    Always the first check compiled for a column. Missing values pass.
    """

    target: ColumnTarget
    message_template: Optional[str] = None
    code: str = field(default="type-or-format-error", init=False)

    include = staticmethod(_include_all)

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        f = self.target.field
        try:
            coerce_with_fallback(
                None if cell is None else cell.value,
                f.type,
                f.format,
                options=f.extras,
                missing_values=self.target.missing_values,
            )
        except CoercionError:
            return False
        return True

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {
            "field_type": self.target.field.type,
            "field_format": self.target.field.effective_format,
        }

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class MinimumValidator:
    """Typed value must not be below the bound.

    ``check_cell`` fails unreadable values; during a scan they are filtered
    out by ``include`` and left to the type check.
    """

    target: ColumnTarget
    bound: Any
    constraint: Any
    message_template: Optional[str] = None
    code: str = field(default="minimum-constraint", init=False)

    def include(self, cell: Optional["Cell"]) -> bool:
        return _readable(self.target, cell)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "MinimumValidator":
        return cls(target=target, bound=_bound("minimum", target, payload), constraint=payload)

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        try:
            value = self.target.coerce_cell(cell)
        except CoercionError:
            return False
        if value is None:
            return True
        try:
            return not value < self.bound
        except TypeError:
            return False

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.constraint}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class MaximumValidator:
    """Typed value must not exceed the bound; unreadable values fail."""

    target: ColumnTarget
    bound: Any
    constraint: Any
    message_template: Optional[str] = None
    code: str = field(default="maximum-constraint", init=False)

    def include(self, cell: Optional["Cell"]) -> bool:
        return _readable(self.target, cell)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "MaximumValidator":
        return cls(target=target, bound=_bound("maximum", target, payload), constraint=payload)

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        try:
            value = self.target.coerce_cell(cell)
        except CoercionError:
            return False
        if value is None:
            return True
        try:
            return not value > self.bound
        except TypeError:
            return False

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.constraint}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class MinLengthValidator:
    """Raw text must be at least ``min_length`` long. Empty cells fail."""

    target: ColumnTarget
    min_length: int
    message_template: Optional[str] = None
    code: str = field(default="minimum-length-constraint", init=False)

    include = staticmethod(_include_all)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "MinLengthValidator":
        return cls(target=target, min_length=_length_payload("minLength", payload))

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        if cell is None or cell.is_blank:
            return False
        return len(cell.text()) >= self.min_length

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.min_length}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class MaxLengthValidator:
    """Raw text must be at most ``max_length`` long. Empty cells pass."""

    target: ColumnTarget
    max_length: int
    message_template: Optional[str] = None
    code: str = field(default="maximum-length-constraint", init=False)

    include = staticmethod(_include_all)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "MaxLengthValidator":
        return cls(target=target, max_length=_length_payload("maxLength", payload))

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        if cell is None or cell.is_blank:
            return True
        return len(cell.text()) <= self.max_length

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.max_length}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class PatternValidator:
    """Raw text must fully match the regular expression."""

    target: ColumnTarget
    pattern: "re.Pattern[str]"
    message_template: Optional[str] = None
    code: str = field(default="pattern-constraint", init=False)

    include = staticmethod(_include_all)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "PatternValidator":
        if not isinstance(payload, str):
            raise ConstructionError("pattern", payload, "expected a regular expression string")
        try:
            compiled = re.compile(payload)
        except re.error as e:
            raise ConstructionError("pattern", payload, f"invalid regular expression: {e}") from e
        return cls(target=target, pattern=compiled)

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        if self.target.is_null(cell):
            return True
        return self.pattern.fullmatch(cell.text()) is not None

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.pattern.pattern}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class EnumValidator:
    """Typed value must be one of the listed values."""

    target: ColumnTarget
    allowed: Tuple[Any, ...]
    constraint: Any
    message_template: Optional[str] = None
    code: str = field(default="enumerable-constraint", init=False)

    def include(self, cell: Optional["Cell"]) -> bool:
        return _readable(self.target, cell)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "EnumValidator":
        if not isinstance(payload, (list, tuple)) or not payload:
            raise ConstructionError("enum", payload, "expected a non-empty list")
        try:
            allowed = tuple(_hashable(target.coerce(v)) for v in payload)
        except CoercionError as e:
            raise ConstructionError(
                "enum",
                payload,
                f"value {e.value!r} is not a valid {target.field.type}",
                column=target.column_name,
            ) from e
        return cls(target=target, allowed=allowed, constraint=list(payload))

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        try:
            value = self.target.coerce_cell(cell)
        except CoercionError:
            return False
        return value is None or _hashable(value) in self.allowed

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": ", ".join(str(v) for v in self.constraint)}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class RequiredValidator:
    """A required field must have a value in every row."""

    target: ColumnTarget
    required: bool
    message_template: Optional[str] = None
    code: str = field(default="required-constraint", init=False)

    include = staticmethod(_include_all)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "RequiredValidator":
        return cls(target=target, required=_flag_payload("required", payload))

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        return not (self.required and self.target.is_null(cell))

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        return {"constraint": self.required}

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


@dataclass(frozen=True)
class UniqueValidator:
    """Every row holding a value that occurs more than once fails.

    Occurrences are counted over the whole column when the validator is
    built, so ``check_cell`` still answers for a single cell.
    """

    target: ColumnTarget
    unique: bool
    occurrences: Mapping[Any, Tuple[int, ...]]
    message_template: Optional[str] = None
    code: str = field(default="unique-constraint", init=False)

    include = staticmethod(_include_all)

    @classmethod
    def from_constraint(cls, target: ColumnTarget, payload: Any) -> "UniqueValidator":
        unique = _flag_payload("unique", payload)
        occurrences: Dict[Any, List[int]] = defaultdict(list)
        if unique:
            for row_index, row in enumerate(target.dataset.rows):
                key = _unique_key(target, row.get_cell(target.cell_index))
                if key is not None:
                    occurrences[key].append(row_index)
        return cls(
            target=target,
            unique=unique,
            occurrences=MappingProxyType({k: tuple(v) for k, v in occurrences.items()}),
        )

    def check_cell(self, cell: Optional["Cell"]) -> bool:
        if not self.unique:
            return True
        key = _unique_key(self.target, cell)
        return key is None or len(self.occurrences.get(key, ())) <= 1

    def lookup(self, cell: Optional["Cell"]) -> Dict[str, Any]:
        rows = self.occurrences.get(_unique_key(self.target, cell), ())
        return {
            "constraint": self.unique,
            "row_numbers": ", ".join(str(r + 1) for r in rows),
        }

    def validate(self, rows, cancel_event=None) -> List[Finding]:
        return scan_rows(self, rows, cancel_event)


def _unique_key(target: ColumnTarget, cell: Optional["Cell"]) -> Any:
    """Typed value used for duplicate detection; raw text when unreadable."""
    if target.is_null(cell):
        return None
    try:
        return _hashable(target.coerce_cell(cell))
    except CoercionError:
        return ("raw", cell.text())


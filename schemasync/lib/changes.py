"""Structural column changes.

Each change kind is its own frozen dataclass tagged with a ``ChangeKind``.
The set is closed: the synchronizer handles exactly these five and treats
anything else as unhandled.

Inbound notifications are plain dicts:
    {"kind": "add", "columnIndex": 2, "columnName": "Region"}
    {"kind": "remove", "columnIndex": 2}
    {"kind": "move", "columnIndex": 0, "newIndex": 3}
    {"kind": "reorder", "columnNames": ["B", "A", "C"]}
    {"kind": "split", "columnIndex": 1, "columnNames": ["First", "Last"],
     "removeOriginal": true}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple, Union

from schemasync.lib.errors import MalformedChangeRequest

__all__ = [
    "ChangeKind",
    "ColumnAddition",
    "ColumnRemoval",
    "ColumnMove",
    "ColumnReorder",
    "ColumnSplit",
    "ColumnChange",
    "change_from_dict",
    "change_to_dict",
]


class ChangeKind(Enum):
    ADD = "add"
    REMOVE = "remove"
    MOVE = "move"
    REORDER = "reorder"
    SPLIT = "split"


@dataclass(frozen=True)
class ColumnAddition:
    column_name: str
    column_index: int
    kind: ChangeKind = field(default=ChangeKind.ADD, init=False)


@dataclass(frozen=True)
class ColumnRemoval:
    old_column_index: int
    kind: ChangeKind = field(default=ChangeKind.REMOVE, init=False)


@dataclass(frozen=True)
class ColumnMove:
    old_column_index: int
    new_column_index: int
    kind: ChangeKind = field(default=ChangeKind.MOVE, init=False)


@dataclass(frozen=True)
class ColumnReorder:
    """Full reorder; columns not listed are dropped."""

    column_names: Tuple[str, ...]
    kind: ChangeKind = field(default=ChangeKind.REORDER, init=False)


@dataclass(frozen=True)
class ColumnSplit:
    column_index: int
    column_names: Tuple[str, ...]
    remove_original: bool = False
    kind: ChangeKind = field(default=ChangeKind.SPLIT, init=False)


ColumnChange = Union[ColumnAddition, ColumnRemoval, ColumnMove, ColumnReorder, ColumnSplit]


def _require(payload: Mapping[str, Any], key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise MalformedChangeRequest(
            f"'{payload.get('kind')}' change requires '{key}'",
            payload=dict(payload),
        )
    return payload[key]


def _index(payload: Mapping[str, Any], key: str) -> int:
    value = _require(payload, key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedChangeRequest(
            f"'{key}' must be a non-negative integer",
            payload=dict(payload),
        )
    return value


def _names(payload: Mapping[str, Any]) -> Tuple[str, ...]:
    value = _require(payload, "columnNames")
    if not isinstance(value, (list, tuple)) or not all(isinstance(n, str) for n in value):
        raise MalformedChangeRequest("'columnNames' must be a list of strings", payload=dict(payload))
    return tuple(value)


def _flag(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key, False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise MalformedChangeRequest(f"'{key}' must be true or false", payload=dict(payload))


def change_from_dict(payload: Mapping[str, Any]) -> ColumnChange:
    """Parse an inbound column-change notification.

    Raises:
        MalformedChangeRequest: On an unknown kind or missing/invalid keys
    """
    if not isinstance(payload, Mapping):
        raise MalformedChangeRequest("Change notification must be an object", payload=payload)

    raw_kind = payload.get("kind")
    try:
        kind = ChangeKind(str(raw_kind).lower())
    except ValueError:
        raise MalformedChangeRequest(
            f"Unknown column change kind '{raw_kind}'",
            payload=dict(payload),
        ) from None

    if kind is ChangeKind.ADD:
        name = _require(payload, "columnName")
        return ColumnAddition(column_name=str(name), column_index=_index(payload, "columnIndex"))
    if kind is ChangeKind.REMOVE:
        return ColumnRemoval(old_column_index=_index(payload, "columnIndex"))
    if kind is ChangeKind.MOVE:
        return ColumnMove(
            old_column_index=_index(payload, "columnIndex"),
            new_column_index=_index(payload, "newIndex"),
        )
    if kind is ChangeKind.REORDER:
        return ColumnReorder(column_names=_names(payload))
    return ColumnSplit(
        column_index=_index(payload, "columnIndex"),
        column_names=_names(payload),
        remove_original=_flag(payload, "removeOriginal"),
    )


def change_to_dict(change: ColumnChange) -> Dict[str, Any]:
    """Inverse of ``change_from_dict``, for logging and persistence."""
    if isinstance(change, ColumnAddition):
        return {"kind": "add", "columnIndex": change.column_index, "columnName": change.column_name}
    if isinstance(change, ColumnRemoval):
        return {"kind": "remove", "columnIndex": change.old_column_index}
    if isinstance(change, ColumnMove):
        return {
            "kind": "move",
            "columnIndex": change.old_column_index,
            "newIndex": change.new_column_index,
        }
    if isinstance(change, ColumnReorder):
        return {"kind": "reorder", "columnNames": list(change.column_names)}
    return {
        "kind": "split",
        "columnIndex": change.column_index,
        "columnNames": list(change.column_names),
        "removeOriginal": change.remove_original,
    }

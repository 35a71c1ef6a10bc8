"""Keeps a dataset's schema in step with its column model.

The column-editing layer calls ``on_column_change`` after each structural
change has been committed to the column model. The synchronizer applies
the matching delta to a copy of the field list and, if that succeeds,
swaps the copy in and writes it back under ``resources[0].schema``.

Deltas:
    add      insert a plain string field at the new column's position
    remove   drop the field at the old position
    move     take the field out and put it back, unchanged, at the new position
    reorder  rebuild every field as a plain string field, in the new order
             (constraints are not carried over)
    split    with removeOriginal, replace the origin field by the new
             fields; otherwise insert them right after it

A dataset without a schema gets one built from its column model. As the
model already contains the change, no delta is applied in that case.
"""

from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, Tuple

from schemasync.lib.changes import (
    ChangeKind,
    ColumnAddition,
    ColumnChange,
    ColumnMove,
    ColumnRemoval,
    ColumnReorder,
    ColumnSplit,
    change_to_dict,
)
from schemasync.lib.errors import SchemaError
from schemasync.lib.model import Dataset
from schemasync.lib.schema import Field, PackageMetadata, Schema

logger = logging.getLogger(__name__)

__all__ = ["SchemaSynchronizer", "is_in_sync"]

Delta = Callable[[Schema, ColumnChange], Schema]


def is_in_sync(dataset: Dataset) -> bool:
    """True when field order matches column order exactly."""
    if dataset.schema is None:
        return False
    return dataset.schema.field_names == dataset.column_model.column_names


def _add(schema: Schema, change: ColumnAddition) -> Schema:
    schema.insert_field(change.column_index, Field.string(change.column_name))
    return schema


def _remove(schema: Schema, change: ColumnRemoval) -> Schema:
    schema.remove_field(change.old_column_index)
    return schema


def _move(schema: Schema, change: ColumnMove) -> Schema:
    moved = schema.remove_field(change.old_column_index)
    schema.insert_field(change.new_column_index, moved)
    return schema


def _reorder(schema: Schema, change: ColumnReorder) -> Schema:
    return Schema((Field.string(name) for name in change.column_names), extras=schema.extras)


def _split(schema: Schema, change: ColumnSplit) -> Schema:
    if change.remove_original:
        schema.remove_field(change.column_index)
        position = change.column_index
    else:
        position = change.column_index + 1
    for offset, name in enumerate(change.column_names):
        schema.insert_field(position + offset, Field.string(name))
    return schema


_DELTAS: Dict[ChangeKind, Tuple[type, Delta]] = {
    ChangeKind.ADD: (ColumnAddition, _add),
    ChangeKind.REMOVE: (ColumnRemoval, _remove),
    ChangeKind.MOVE: (ColumnMove, _move),
    ChangeKind.REORDER: (ColumnReorder, _reorder),
    ChangeKind.SPLIT: (ColumnSplit, _split),
}


class SchemaSynchronizer:
    """Applies column-change deltas to a dataset's schema.

    Callers are responsible for holding the dataset's write lock; see
    ``schemasync.lib.editing.ColumnEditor``.
    """

    def on_column_change(self, dataset: Dataset, change: ColumnChange) -> bool:
        """Update the schema of ``dataset`` after ``change``.

        Returns:
            True if the schema was (re)written, False if it was left untouched
        """
        if self._ensure_schema(dataset):
            return True

        kind = getattr(change, "kind", None)
        entry = _DELTAS.get(kind) if isinstance(kind, ChangeKind) else None
        if entry is None or not isinstance(change, entry[0]):
            logger.warning("Unhandled column change: %r", change)
            return False

        _, delta = entry
        working = copy.deepcopy(dataset.schema)
        try:
            updated = delta(working, change)
        except SchemaError as e:
            logger.error(
                "Could not apply %s to schema of '%s', schema left untouched: %s",
                change_to_dict(change),
                dataset.name,
                e.message,
            )
            return False

        dataset.schema = updated
        dataset.metadata.write_schema(updated, dataset.name)
        logger.debug("Applied %s to schema of '%s'", change_to_dict(change), dataset.name)

        if not is_in_sync(dataset):
            logger.warning(
                "Schema of '%s' does not match its columns after %s: fields=%s columns=%s",
                dataset.name,
                kind.value,
                updated.field_names,
                dataset.column_model.column_names,
            )
        return True

    def _ensure_schema(self, dataset: Dataset) -> bool:
        """Create the package and/or schema if missing. True if created."""
        if dataset.metadata is None:
            dataset.metadata = PackageMetadata.new(dataset.name)
            logger.info("Created package metadata for dataset '%s'", dataset.name)

        if dataset.schema is not None:
            return False

        dataset.schema = Schema.from_column_names(dataset.column_model.column_names)
        dataset.metadata.write_schema(dataset.schema, dataset.name)
        logger.info(
            "Initialised schema of '%s' from its %d column(s)",
            dataset.name,
            len(dataset.schema),
        )
        return True

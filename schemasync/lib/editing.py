"""Structural column edits that keep the schema in step.

``ColumnEditor`` is the only place that mutates a dataset's column model.
Each edit runs under the dataset's write lock: the change is committed to
the column model first, then the synchronizer updates the schema. An
inspection holding the read lock therefore never sees a column model and
schema that disagree.

Example:
    editor = ColumnEditor()
    editor.add_column(dataset, "Region", 2)
    editor.split_column(dataset, "Name", " ", ["First", "Last"], remove_original=True)
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from schemasync.lib.changes import (
    ColumnAddition,
    ColumnChange,
    ColumnMove,
    ColumnRemoval,
    ColumnReorder,
    ColumnSplit,
    change_to_dict,
)
from schemasync.lib.errors import SchemaError
from schemasync.lib.model import Cell, Column, ColumnModel, Dataset
from schemasync.lib.synchronizer import SchemaSynchronizer

logger = logging.getLogger(__name__)

__all__ = ["ColumnEditor"]


def _check_index(model: ColumnModel, index: int, *, allow_end: bool = False) -> None:
    upper = len(model) if allow_end else len(model) - 1
    if not 0 <= index <= upper:
        raise SchemaError(
            f"Column index {index} out of range for {len(model)} column(s)",
            details={"index": index, "columns": model.column_names},
        )


def _check_reorder(model: ColumnModel, names: Sequence[str]) -> None:
    # names may drop columns, but each must exist and appear once
    seen = set()
    for name in names:
        if name in seen:
            raise SchemaError(f"Column '{name}' listed twice in reorder", column=name)
        if model.get_column_by_name(name) is None:
            raise SchemaError(
                f"No column named '{name}' to reorder",
                column=name,
                details={"columns": model.column_names},
            )
        seen.add(name)


class ColumnEditor:
    """Applies column changes to a dataset and notifies the synchronizer."""

    def __init__(self, synchronizer: Optional[SchemaSynchronizer] = None):
        self.synchronizer = synchronizer or SchemaSynchronizer()

    def apply(
        self,
        dataset: Dataset,
        change: ColumnChange,
        values: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> bool:
        """Commit ``change`` to the column model, then sync the schema.

        Args:
            dataset: Dataset to edit
            change: Structural change to apply
            values: Optional per-row values for columns the change creates,
                keyed by column name

        Returns:
            True if the schema was updated

        Raises:
            SchemaError: If the change does not fit the current column model;
                nothing is modified in that case
        """
        with dataset.lock.write_locked():
            created = self._commit(dataset, change)
            if values:
                self._fill(dataset, created, values)
            logger.info("Applied column change %s to '%s'", change_to_dict(change), dataset.name)
            return self.synchronizer.on_column_change(dataset, change)

    # ============================================
    # Convenience wrappers
    # ============================================

    def add_column(
        self,
        dataset: Dataset,
        name: str,
        index: int,
        values: Optional[Sequence[Any]] = None,
    ) -> bool:
        change = ColumnAddition(column_name=name, column_index=index)
        return self.apply(dataset, change, {name: values} if values is not None else None)

    def remove_column(self, dataset: Dataset, name: str) -> bool:
        index = self._index_of(dataset, name)
        return self.apply(dataset, ColumnRemoval(old_column_index=index))

    def move_column(self, dataset: Dataset, name: str, new_index: int) -> bool:
        index = self._index_of(dataset, name)
        return self.apply(dataset, ColumnMove(old_column_index=index, new_column_index=new_index))

    def reorder_columns(self, dataset: Dataset, names: Sequence[str]) -> bool:
        return self.apply(dataset, ColumnReorder(column_names=tuple(names)))

    def split_column(
        self,
        dataset: Dataset,
        name: str,
        separator: str,
        new_names: Sequence[str],
        remove_original: bool = False,
    ) -> bool:
        """Split a column's text on ``separator`` into ``new_names``.

        At most ``len(new_names)`` pieces are produced per cell; the last
        piece keeps any remaining separators. Missing pieces are None.
        """
        if not new_names:
            raise SchemaError("Split needs at least one new column name", column=name)
        index = self._index_of(dataset, name)
        pieces: List[List[Optional[str]]] = [[] for _ in new_names]
        for cell in dataset.column_cells(index):
            parts = [] if cell is None or cell.is_blank else cell.text().split(
                separator, len(new_names) - 1
            )
            for i in range(len(new_names)):
                pieces[i].append(parts[i] if i < len(parts) else None)

        change = ColumnSplit(
            column_index=index,
            column_names=tuple(new_names),
            remove_original=remove_original,
        )
        return self.apply(dataset, change, dict(zip(new_names, pieces)))

    # ============================================
    # Internals
    # ============================================

    def _index_of(self, dataset: Dataset, name: str) -> int:
        index = dataset.column_model.get_column_index_by_name(name)
        if index < 0:
            raise SchemaError(f"No column named '{name}' in dataset '{dataset.name}'", column=name)
        return index

    def _commit(self, dataset: Dataset, change: ColumnChange) -> List[Column]:
        """Mutate the column model. Returns the columns the change created."""
        model = dataset.column_model

        if isinstance(change, ColumnAddition):
            _check_index(model, change.column_index, allow_end=True)
            column = Column(change.column_name, model.allocate_cell_index())
            model.add_column(change.column_index, column)
            return [column]

        if isinstance(change, ColumnRemoval):
            _check_index(model, change.old_column_index)
            model.remove_column(change.old_column_index)
            return []

        if isinstance(change, ColumnMove):
            _check_index(model, change.old_column_index)
            _check_index(model, change.new_column_index)
            model.move_column(change.old_column_index, change.new_column_index)
            return []

        if isinstance(change, ColumnReorder):
            _check_reorder(model, change.column_names)
            model.reorder(change.column_names)
            return []

        if isinstance(change, ColumnSplit):
            _check_index(model, change.column_index)
            for name in change.column_names:
                if model.get_column_by_name(name) is not None:
                    raise SchemaError(f"Column '{name}' already exists", column=name)
            if change.remove_original:
                model.remove_column(change.column_index)
                position = change.column_index
            else:
                position = change.column_index + 1
            created = []
            for offset, name in enumerate(change.column_names):
                column = Column(name, model.allocate_cell_index())
                model.add_column(position + offset, column)
                created.append(column)
            return created

        raise SchemaError(f"Unsupported column change: {change!r}")

    def _fill(
        self,
        dataset: Dataset,
        columns: Sequence[Column],
        values: Mapping[str, Sequence[Any]],
    ) -> None:
        for column in columns:
            column_values = values.get(column.name)
            if column_values is None:
                continue
            for row, value in zip(dataset.rows, column_values):
                row.set_cell(column.cell_index, None if value is None else Cell(value))

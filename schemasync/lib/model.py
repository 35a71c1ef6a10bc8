"""In-memory dataset: column model, rows, cells and the schema lock.

The column model is the source of truth for column identity and order.
The schema attached through ``PackageMetadata`` is a derived view that the
synchronizer keeps in step after every structural column change.

Rows store cells by *cell index*, not by column position, so moving a
column only touches the column model and never the row data.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Iterable, List, Optional

from schemasync.lib.errors import SchemaError
from schemasync.lib.schema import PackageMetadata, Schema

logger = logging.getLogger(__name__)

__all__ = [
    "Cell",
    "Row",
    "Column",
    "ColumnModel",
    "Dataset",
    "ReadWriteLock",
]


@dataclass(frozen=True)
class Cell:
    """A raw, untyped cell value plus optional recorded metadata."""

    value: Any
    meta: Optional[Dict[str, Any]] = None

    @property
    def is_blank(self) -> bool:
        return self.value is None or (isinstance(self.value, str) and self.value == "")

    def text(self) -> str:
        return "" if self.value is None else str(self.value)


@dataclass
class Row:
    """Cells addressed by cell index; missing trailing cells read as None."""

    cells: List[Optional[Cell]] = field(default_factory=list)

    @classmethod
    def of(cls, *values: Any) -> "Row":
        return cls([Cell(v) for v in values])

    def get_cell(self, cell_index: int) -> Optional[Cell]:
        if 0 <= cell_index < len(self.cells):
            return self.cells[cell_index]
        return None

    def set_cell(self, cell_index: int, cell: Optional[Cell]) -> None:
        while len(self.cells) <= cell_index:
            self.cells.append(None)
        self.cells[cell_index] = cell


@dataclass
class Column:
    name: str
    cell_index: int


class ColumnModel:
    """Ordered columns of a dataset."""

    def __init__(self, columns: Optional[Iterable[Column]] = None):
        self.columns: List[Column] = list(columns or [])
        self._max_cell_index = max((c.cell_index for c in self.columns), default=-1)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ColumnModel":
        return cls(Column(name, i) for i, name in enumerate(names))

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def allocate_cell_index(self) -> int:
        self._max_cell_index += 1
        return self._max_cell_index

    def get_column_index_by_name(self, name: str) -> int:
        """Position of the named column, or -1."""
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        return -1

    def get_column_by_name(self, name: str) -> Optional[Column]:
        index = self.get_column_index_by_name(name)
        return self.columns[index] if index >= 0 else None

    def add_column(self, index: int, column: Column) -> None:
        if self.get_column_by_name(column.name) is not None:
            raise SchemaError(f"Column '{column.name}' already exists", column=column.name)
        self._max_cell_index = max(self._max_cell_index, column.cell_index)
        self.columns.insert(max(0, min(index, len(self.columns))), column)

    def remove_column(self, index: int) -> Column:
        return self.columns.pop(index)

    def move_column(self, old_index: int, new_index: int) -> None:
        column = self.columns.pop(old_index)
        self.columns.insert(new_index, column)

    def reorder(self, names: Iterable[str]) -> None:
        """Keep only ``names``, in that order. Unknown and repeated names are ignored."""
        by_name = {c.name: c for c in self.columns}
        self.columns = [by_name.pop(n) for n in names if n in by_name]

    def __len__(self) -> int:
        return len(self.columns)


class ReadWriteLock:
    """Writer-preferring reader/writer lock.

    Many inspections may read a dataset at once; a schema synchronization
    waits for them to drain and blocks new readers until it is done.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Generator[None, None, None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Generator[None, None, None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class Dataset:
    """A table of rows with its column model and package metadata.

    ``schema`` is parsed from the package when metadata is attached and is
    then mutated in place by the synchronizer, which also writes it back
    into the package descriptor.
    """

    def __init__(
        self,
        name: str,
        column_model: ColumnModel,
        rows: Optional[List[Row]] = None,
        metadata: Optional[PackageMetadata] = None,
    ):
        self.name = name
        self.column_model = column_model
        self.rows: List[Row] = rows if rows is not None else []
        self.lock = ReadWriteLock()
        self.metadata: Optional[PackageMetadata] = None
        self.schema: Optional[Schema] = None
        if metadata is not None:
            self.attach_metadata(metadata)

    @classmethod
    def from_records(
        cls,
        name: str,
        column_names: List[str],
        records: Iterable[Iterable[Any]],
        metadata: Optional[PackageMetadata] = None,
    ) -> "Dataset":
        """Build a dataset from positional row values."""
        rows = [Row.of(*values) for values in records]
        return cls(name, ColumnModel.from_names(column_names), rows, metadata)

    def attach_metadata(self, metadata: PackageMetadata) -> None:
        """Attach a package and parse its schema as the working copy.

        A schema that fails to parse is logged and left detached; the
        package itself is still attached so the synchronizer can rebuild it.
        """
        self.metadata = metadata
        try:
            self.schema = metadata.read_schema()
        except SchemaError as e:
            logger.error("Could not read schema of dataset '%s': %s", self.name, e)
            self.schema = None

    def get_cell(self, row_index: int, column_index: int) -> Optional[Cell]:
        column = self.column_model.columns[column_index]
        return self.rows[row_index].get_cell(column.cell_index)

    def column_cells(self, column_index: int) -> List[Optional[Cell]]:
        cell_index = self.column_model.columns[column_index].cell_index
        return [row.get_cell(cell_index) for row in self.rows]

    def __repr__(self) -> str:
        return (
            f"Dataset(name={self.name!r}, columns={self.column_model.column_names!r}, "
            f"rows={len(self.rows)})"
        )

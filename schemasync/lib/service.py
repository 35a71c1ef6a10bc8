"""Command-layer entry points: inspect requests and column-change notifications.

Payloads arrive as JSON-shaped dicts and are validated with pydantic
before they reach the engine.

Usage:
```python
service = ValidationService(store=MetadataStore("./packages"))
service.register(dataset)

report = service.inspect("orders", {"columnNames": ["Year"], "maxWorkers": 2})
service.notify_column_change("orders", {"kind": "remove", "columnIndex": 2})
```
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from schemasync.lib.changes import ColumnChange, change_from_dict
from schemasync.lib.editing import ColumnEditor
from schemasync.lib.errors import InvalidRequest, MalformedChangeRequest, UnknownDataset
from schemasync.lib.inspector import InspectOptions, ValidationInspector
from schemasync.lib.model import Dataset
from schemasync.lib.registry import DEFAULT_REGISTRY, ConstraintRegistry
from schemasync.lib.store import MetadataStore
from schemasync.lib.synchronizer import SchemaSynchronizer

logger = logging.getLogger(__name__)

__all__ = ["InspectRequest", "ColumnChangeRequest", "ValidationService"]


class InspectRequest(BaseModel):
    """``{"columnNames": [...], "maxWorkers": 1, "includeErrors": false}``"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    column_names: List[str] = Field(alias="columnNames", min_length=1)
    max_workers: int = Field(default=1, ge=1, le=64, alias="maxWorkers")
    include_errors: bool = Field(default=False, alias="includeErrors")


class ColumnChangeRequest(BaseModel):
    """Shape check of a column-change notification.

    Kind-specific rules (which keys each kind needs) are applied by
    ``change_from_dict`` in ``to_change``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: str
    column_index: Optional[int] = Field(default=None, ge=0, alias="columnIndex")
    new_index: Optional[int] = Field(default=None, ge=0, alias="newIndex")
    column_name: Optional[str] = Field(default=None, alias="columnName")
    column_names: Optional[List[str]] = Field(default=None, alias="columnNames")
    remove_original: bool = Field(default=False, alias="removeOriginal")

    def to_change(self) -> ColumnChange:
        return change_from_dict(self.model_dump(by_alias=True, exclude_none=True))


class ValidationService:
    """Holds registered datasets and serves the two inbound operations.

    Args:
        store: Optional metadata store; when set, packages are loaded on
            register and saved after every schema update
        registry: Constraint registry handed to the inspector
        message_templates: Per-code message overrides
        max_workers: Default column parallelism for inspect requests
            that do not name one
    """

    def __init__(
        self,
        store: Optional[MetadataStore] = None,
        registry: ConstraintRegistry = DEFAULT_REGISTRY,
        message_templates: Optional[Mapping[str, str]] = None,
        max_workers: int = 1,
    ):
        self.store = store
        self.inspector = ValidationInspector(registry, message_templates)
        self.synchronizer = SchemaSynchronizer()
        self.editor = ColumnEditor(self.synchronizer)
        self.max_workers = max_workers
        self._datasets: Dict[str, Dataset] = {}
        self._lock = threading.Lock()

    # ============================================
    # Dataset registry
    # ============================================

    def register(self, dataset: Dataset, dataset_id: Optional[str] = None) -> str:
        """Register ``dataset`` and return its id (defaults to its name).

        If the dataset has no package and the store holds one for this id,
        the stored package is attached.
        """
        dataset_id = dataset_id or dataset.name
        if dataset.metadata is None and self.store is not None:
            metadata = self.store.load(dataset_id)
            if metadata is not None:
                dataset.attach_metadata(metadata)
                logger.info("Attached stored package to dataset '%s'", dataset_id)
        with self._lock:
            self._datasets[dataset_id] = dataset
        logger.debug("Registered dataset '%s' (%r)", dataset_id, dataset)
        return dataset_id

    def get(self, dataset_id: str) -> Dataset:
        with self._lock:
            try:
                return self._datasets[dataset_id]
            except KeyError:
                raise UnknownDataset(dataset_id) from None

    @property
    def dataset_ids(self) -> List[str]:
        with self._lock:
            return list(self._datasets)

    # ============================================
    # Inbound operations
    # ============================================

    def inspect(
        self,
        dataset_id: str,
        payload: Mapping[str, Any],
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """Run an inspection and return the JSON-shaped report.

        Raises:
            UnknownDataset: If ``dataset_id`` is not registered
            InvalidRequest: If ``payload`` does not validate
            InspectionCancelled: If ``cancel_event`` is set mid-run
        """
        dataset = self.get(dataset_id)
        merged = dict(payload)
        merged.setdefault("maxWorkers", self.max_workers)
        try:
            request = InspectRequest.model_validate(merged)
        except ValidationError as e:
            raise InvalidRequest(
                f"Invalid inspect request: {e.error_count()} error(s)",
                payload=dict(payload),
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

        options = InspectOptions(max_workers=request.max_workers, cancel_event=cancel_event)
        report = self.inspector.inspect(dataset, request.column_names, options)
        return report.to_dict(include_errors=request.include_errors)

    def notify_column_change(self, dataset_id: str, payload: Mapping[str, Any]) -> bool:
        """Sync the schema after the host committed a column change.

        A malformed notification is logged and leaves the schema untouched.

        Returns:
            True if the schema was updated

        Raises:
            UnknownDataset: If ``dataset_id`` is not registered
            MetadataStoreError: If persisting the updated package fails
        """
        dataset = self.get(dataset_id)
        change = self._parse_change(payload)
        if change is None:
            return False

        with dataset.lock.write_locked():
            updated = self.synchronizer.on_column_change(dataset, change)
        if updated:
            self._persist(dataset_id, dataset)
        return updated

    def apply_column_change(
        self,
        dataset_id: str,
        payload: Mapping[str, Any],
        values: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> bool:
        """Apply a column change to the dataset itself, then sync the schema.

        Raises:
            UnknownDataset: If ``dataset_id`` is not registered
            MalformedChangeRequest: If ``payload`` is not a valid change
            SchemaError: If the change does not fit the column model
            MetadataStoreError: If persisting the updated package fails
        """
        dataset = self.get(dataset_id)
        change = self._validate_change(payload)
        updated = self.editor.apply(dataset, change, values)
        if updated:
            self._persist(dataset_id, dataset)
        return updated

    # ============================================
    # Internals
    # ============================================

    def _validate_change(self, payload: Mapping[str, Any]) -> ColumnChange:
        try:
            request = ColumnChangeRequest.model_validate(payload)
        except ValidationError as e:
            raise MalformedChangeRequest(
                f"Invalid column change: {e.error_count()} error(s)",
                payload=dict(payload) if isinstance(payload, Mapping) else payload,
            ) from e
        return request.to_change()

    def _parse_change(self, payload: Mapping[str, Any]) -> Optional[ColumnChange]:
        try:
            return self._validate_change(payload)
        except MalformedChangeRequest as e:
            logger.warning("Ignoring column change: %s", e.message, extra={"payload": e.payload})
            return None

    def _persist(self, dataset_id: str, dataset: Dataset) -> None:
        if self.store is None or dataset.metadata is None:
            return
        with dataset.lock.read_locked():
            self.store.save(dataset_id, dataset.metadata)

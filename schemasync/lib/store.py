"""File-backed persistence for package metadata.

Layout::

    <root>/
        <dataset_id>/
            datapackage.json

Reads and writes are retried on ``OSError`` with tenacity; once retries
are exhausted the failure is raised as ``MetadataStoreError``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

import tenacity

from schemasync.lib.errors import MetadataStoreError
from schemasync.lib.schema import PackageMetadata

logger = logging.getLogger(__name__)

__all__ = ["MetadataStore", "DESCRIPTOR_FILENAME"]

DESCRIPTOR_FILENAME = "datapackage.json"

T = TypeVar("T")


class MetadataStore:
    """Loads and saves ``datapackage.json`` descriptors under a root directory.

    Args:
        root: Directory holding one sub-directory per dataset
        retry_attempts: Total attempts per read or write (1 disables retry)
        backoff_seconds: Base delay for the exponential backoff
    """

    def __init__(
        self,
        root: Union[str, Path],
        retry_attempts: int = 3,
        backoff_seconds: float = 0.1,
    ):
        self.root = Path(root)
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds

    def path_for(self, dataset_id: str) -> Path:
        if not dataset_id or os.sep in dataset_id or dataset_id in (".", ".."):
            raise MetadataStoreError(f"Invalid dataset id '{dataset_id}'")
        return self.root / dataset_id / DESCRIPTOR_FILENAME

    def exists(self, dataset_id: str) -> bool:
        return self.path_for(dataset_id).is_file()

    def load(self, dataset_id: str) -> Optional[PackageMetadata]:
        """Load the package of ``dataset_id``; None if never saved.

        Raises:
            MetadataStoreError: If the file cannot be read or is not valid JSON
        """
        path = self.path_for(dataset_id)
        if not path.is_file():
            logger.debug("No package stored for '%s' at %s", dataset_id, path)
            return None

        text = self._retrying(lambda: path.read_text(encoding="utf-8"), path, "read")
        try:
            descriptor = json.loads(text)
        except json.JSONDecodeError as e:
            raise MetadataStoreError(
                f"Package at {path} is not valid JSON: {e}",
                path=str(path),
                cause=e,
            ) from e
        if not isinstance(descriptor, dict):
            raise MetadataStoreError(f"Package at {path} is not a JSON object", path=str(path))

        logger.debug("Loaded package for '%s' from %s", dataset_id, path)
        return PackageMetadata(descriptor)

    def save(self, dataset_id: str, metadata: PackageMetadata) -> Path:
        """Write the package of ``dataset_id``, replacing any previous one.

        The descriptor is written to a temporary file first and then moved
        into place, so readers never see a half-written file.

        Raises:
            MetadataStoreError: If the file cannot be written
        """
        path = self.path_for(dataset_id)
        payload = json.dumps(metadata.to_dict(), indent=2, sort_keys=False)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(payload + "\n", encoding="utf-8")
            os.replace(tmp_path, path)

        self._retrying(write, path, "write")
        logger.info("Saved package for '%s' to %s", dataset_id, path)
        return path

    def _retrying(self, operation: Callable[[], T], path: Path, action: str) -> T:
        def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
            exception = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Attempt %d/%d to %s %s failed: %s. Retrying in %.1fs...",
                retry_state.attempt_number,
                self.retry_attempts,
                action,
                path,
                exception,
                retry_state.next_action.sleep if retry_state.next_action else 0,
            )

        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.retry_attempts),
            wait=tenacity.wait_exponential(multiplier=self.backoff_seconds, min=self.backoff_seconds),
            retry=tenacity.retry_if_exception_type(OSError),
            before_sleep=before_sleep_handler,
            reraise=True,
        )
        try:
            return retrying(operation)
        except OSError as e:
            logger.error("All %d attempts to %s %s failed: %s", self.retry_attempts, action, path, e)
            raise MetadataStoreError(
                f"Could not {action} package at {path}",
                path=str(path),
                cause=e,
            ) from e

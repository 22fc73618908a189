"""
Import state persistence.

This module provides the ImportStateStore class, which owns the resource
mapping file: the durable record binding each discovered Azure resource to
its Terraform address, type and import status.

The file is a JSON object keyed by resource ID, compatible with the
aztfexport resource mapping format and extended with status fields::

    {
      "/subscriptions/.../resourceGroups/rg": {
        "resource_id": "/subscriptions/.../resourceGroups/rg",
        "resource_type": "azurerm_resource_group",
        "resource_name": "res-0",
        "target_address": "azurerm_resource_group.res-0",
        "status": "imported",
        "error": null,
        "version": 4
      }
    }

Every write replaces the whole file atomically (temp file, fsync,
``os.replace``), so the file on disk is always a complete, parseable
snapshot of some prefix of the recorded transitions.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from aztf_bridge.client.exceptions import CorruptMappingError, StateError
from aztf_bridge.session.models import ImportSession, ImportStatus, ResourceItem
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("resource_type", "resource_name")


class ImportStateStore:
    """
    Owns reads and writes of the resource mapping file.

    Writes go through a single lock so that concurrent completions can never
    interleave partial updates. Each record carries the item's transition
    version; a write carrying a version that is not newer than the stored
    one is rejected, which catches two actors mutating one item.

    Usage:
        store = ImportStateStore(output_dir / "aztfexportResourceMapping.json")
        session = store.load()
        ...
        store.record_transition(item)
        ...
        store.finalize(session)
    """

    def __init__(self, path: str | Path):
        """
        Initialize the state store.

        Args:
            path: Location of the mapping file
        """
        self.path = Path(path)
        self._lock = threading.RLock()
        self._records: dict[str, dict[str, Any]] = {}
        # case-folded resource ID -> key it is stored under
        self._keys: dict[str, str] = {}
        self._writes = 0

    @property
    def records(self) -> dict[str, dict[str, Any]]:
        """Copy of the records as last written."""
        with self._lock:
            return {k: dict(v) for k, v in self._records.items()}

    @property
    def write_count(self) -> int:
        """Number of successful file writes."""
        return self._writes

    def load(self) -> ImportSession:
        """
        Load the mapping file into a session.

        A missing file is not an error and yields an empty session. Records
        left ``importing`` by an interrupted run come back ``pending``:
        their import was never confirmed.

        Returns:
            Session with one item per record, in file order

        Raises:
            CorruptMappingError: If the file content is malformed
        """
        with self._lock:
            if not self.path.exists():
                logger.info("mapping_file_not_found", path=str(self.path))
                self._set_records({})
                return ImportSession()

            records = read_mapping_file(self.path)
            session = ImportSession()
            for cloud_id, record in records.items():
                status = ImportStatus(record["status"])
                if status == ImportStatus.IMPORTING:
                    logger.warning("interrupted_import_found", cloud_id=cloud_id)
                    status = ImportStatus.PENDING
                item = ResourceItem(
                    cloud_id=cloud_id,
                    display_name=record.get("display_name") or record["resource_name"],
                    target_name=record["resource_name"],
                    target_type=record["resource_type"],
                    fixed_type=record["resource_type"] or None,
                    status=status,
                    version=int(record.get("version", 0)),
                )
                if record.get("error"):
                    item.import_error = StateError(record["error"])
                try:
                    session.add(item)
                except ValueError as e:
                    raise CorruptMappingError(str(self.path), str(e)) from e

            self._set_records(records)
            logger.info(
                "mapping_file_loaded",
                path=str(self.path),
                records=len(records),
                imported=len(session.by_status(ImportStatus.IMPORTED)),
            )
            return session

    def record_transition(self, item: ResourceItem) -> None:
        """
        Persist the current state of one item.

        Raises:
            StateError: If the item's version is not newer than the stored one,
                or the file cannot be written
        """
        with self._lock:
            key = self._key_for(item.cloud_id)
            stored = self._records.get(key)
            if stored is not None and int(stored.get("version", 0)) >= item.version:
                raise StateError(
                    f"Stale write for {item.cloud_id}: version {item.version} "
                    f"is not newer than stored version {stored.get('version')}"
                )
            records = dict(self._records)
            records[key] = _record_for(item, key)
            self._write(records)
            logger.debug(
                "transition_recorded",
                cloud_id=item.cloud_id,
                status=item.status.value,
                version=item.version,
            )

    def finalize(self, session: ImportSession) -> Path:
        """
        Write the complete mapping for a session.

        Records for resources outside the session (e.g. from an earlier run
        in the same directory) are kept.

        Returns:
            Path of the mapping file
        """
        with self._lock:
            records = dict(self._records)
            for item in session:
                key = self._key_for(item.cloud_id)
                records[key] = _record_for(item, key)
            self._write(records)
            logger.info("mapping_file_finalized", path=str(self.path), records=len(records))
            return self.path

    def _write(self, records: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(records, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            logger.error("mapping_file_write_failed", path=str(self.path), error=str(e))
            raise StateError(f"Failed to write mapping file {self.path}: {e}") from e
        self._set_records(records)
        self._writes += 1

    def _key_for(self, cloud_id: str) -> str:
        """Key of the stored record for a resource ID, matched case-insensitively.

        ARM resource IDs are case-insensitive, so discovery may return a
        different casing than an earlier run saved. The record keeps its
        original key.
        """
        return self._keys.get(cloud_id.lower(), cloud_id)

    def _set_records(self, records: dict[str, dict[str, Any]]) -> None:
        self._records = records
        self._keys = {key.lower(): key for key in records}


def _record_for(item: ResourceItem, key: str) -> dict[str, Any]:
    error = item.import_error or item.validation_error
    return {
        "resource_id": key,
        "resource_type": "" if item.status == ImportStatus.SKIPPED else item.target_type,
        "resource_name": item.target_name,
        "target_address": "" if item.status == ImportStatus.SKIPPED else item.target_address,
        "status": item.status.value,
        "error": str(error) if error else None,
        "version": item.version,
    }


def read_mapping_file(path: str | Path) -> dict[str, dict[str, Any]]:
    """
    Read and validate a resource mapping file.

    Plain aztfexport mapping files (no ``status`` field) are accepted; their
    records are treated as pending.

    Raises:
        CorruptMappingError: If the file is not a valid mapping
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise CorruptMappingError(str(path), f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise CorruptMappingError(str(path), f"not a text file: {e}") from e

    if not isinstance(data, dict):
        raise CorruptMappingError(str(path), "top level must be an object keyed by resource ID")

    records: dict[str, dict[str, Any]] = {}
    valid_statuses = {s.value for s in ImportStatus}
    for cloud_id, record in data.items():
        if not isinstance(record, dict):
            raise CorruptMappingError(str(path), f"record for {cloud_id} is not an object")
        for name in REQUIRED_FIELDS:
            if not isinstance(record.get(name), str):
                raise CorruptMappingError(str(path), f"record for {cloud_id} lacks {name!r}")
        status = record.get("status", ImportStatus.PENDING.value)
        if status not in valid_statuses:
            raise CorruptMappingError(
                str(path), f"record for {cloud_id} has unknown status {status!r}"
            )
        if status == ImportStatus.IMPORTED.value and not record["resource_type"]:
            raise CorruptMappingError(
                str(path), f"record for {cloud_id} is imported but has no resource_type"
            )
        version = record.get("version", 0)
        if not isinstance(version, int) or version < 0:
            raise CorruptMappingError(str(path), f"record for {cloud_id} has bad version")
        if record.get("resource_id") not in (None, cloud_id):
            raise CorruptMappingError(
                str(path), f"record key {cloud_id} does not match its resource_id"
            )
        records[cloud_id] = {**record, "resource_id": cloud_id, "status": status}
    return records

"""Directory-backed task record storage.

Layout:
  <root>/<task_id>                 -> one JSON record per task
  <root>/.locks/<task_id>.lock     -> per-task file lock
  <root>/.tombstones/<task_id>     -> marker left behind by delete; ids are never reissued

Every write goes to a temporary file in <root> and is moved into place with
os.replace, so a reader sees either the old record or the new one.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from relleno.core.errors import ConflictError, StorageError, TaskNotFoundError
from relleno.core.json_values import non_finite_paths
from relleno.models.task import TaskDefinition, TaskRecord

logger = logging.getLogger(__name__)

TASK_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")

# Attempts at minting an unused id before giving up
MAX_ID_ATTEMPTS = 8

RECORD_FILE_MODE = 0o644


def new_task_id() -> str:
    return str(uuid.uuid4())


class DocumentStore:
    """Create, read, update and delete task records by id."""

    def __init__(
        self,
        root: str = ".",
        lock_timeout: float = 10.0,
        id_factory: Callable[[], str] = new_task_id,
    ) -> None:
        self._root = Path(root).expanduser().resolve()
        self._locks_dir = self._root / ".locks"
        self._tombstones_dir = self._root / ".tombstones"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            self._locks_dir.mkdir(exist_ok=True)
            self._tombstones_dir.mkdir(exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot prepare record directory {self._root}", exc) from exc
        self._lock_timeout = lock_timeout
        self._id_factory = id_factory

    @property
    def root(self) -> Path:
        return self._root

    def create(self, definition: TaskDefinition) -> str:
        """Persist a new record under a freshly minted id and return the id."""
        for _ in range(MAX_ID_ATTEMPTS):
            task_id = self._id_factory()
            if not TASK_ID_PATTERN.match(task_id):
                raise StorageError(f"Id factory produced a malformed id '{task_id}'")
            with self._file_lock(task_id):
                if self._record_path(task_id).exists() or self._tombstone_path(task_id).exists():
                    logger.warning("Task id %s already used, minting another", task_id)
                    continue
                record = TaskRecord.from_definition(task_id, definition)
                self._write_atomic(record)
            logger.info("Created task %s", task_id)
            return task_id
        raise StorageError(f"Could not mint an unused task id after {MAX_ID_ATTEMPTS} attempts")

    def read(self, task_id: str) -> TaskRecord:
        path = self._record_path(task_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TaskNotFoundError(task_id) from exc
        except OSError as exc:
            raise StorageError(f"Failed to read task '{task_id}'", exc) from exc
        return self._decode(task_id, raw)

    def update(self, task_id: str, mutator: Callable[[TaskRecord], TaskRecord]) -> TaskRecord:
        """Read, mutate and write back a record while holding its lock.

        If ``mutator`` raises, nothing is written and the exception propagates.

        Raises:
            TaskNotFoundError: If no record exists
            ConflictError: If the lock is not acquired within the lock timeout
            StorageError: On I/O failure
        """
        with self._file_lock(task_id):
            current = self.read(task_id)
            updated = mutator(current)
            if updated.id != task_id:
                raise ValueError(f"Mutator changed task id from '{task_id}' to '{updated.id}'")
            self._write_atomic(updated)
        logger.debug("Updated task %s", task_id)
        return updated

    def delete(self, task_id: str) -> None:
        """Remove a record and retire its id."""
        path = self._record_path(task_id)
        with self._file_lock(task_id):
            if not path.exists():
                raise TaskNotFoundError(task_id)
            try:
                self._tombstone_path(task_id).touch()
                path.unlink()
            except FileNotFoundError as exc:
                raise TaskNotFoundError(task_id) from exc
            except OSError as exc:
                raise StorageError(f"Failed to delete task '{task_id}'", exc) from exc
        try:
            self._lock_path(task_id).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove lock file for deleted task %s: %s", task_id, exc)
        logger.info("Deleted task %s", task_id)

    @contextmanager
    def _file_lock(self, task_id: str) -> Iterator[None]:
        """Hold the per-task lock for the duration of the block."""
        self._record_path(task_id)
        lock = FileLock(str(self._lock_path(task_id)), timeout=self._lock_timeout)
        try:
            lock.acquire()
        except Timeout as exc:
            logger.warning("Timed out after %ss waiting for lock on task %s", self._lock_timeout, task_id)
            raise ConflictError(task_id, self._lock_timeout) from exc
        except OSError as exc:
            raise StorageError(f"Failed to lock task '{task_id}'", exc) from exc
        try:
            yield
        finally:
            lock.release()

    def _record_path(self, task_id: str) -> Path:
        # Ids outside the canonical form can never name a record
        if not TASK_ID_PATTERN.match(task_id):
            raise TaskNotFoundError(task_id)
        return self._root / task_id

    def _tombstone_path(self, task_id: str) -> Path:
        return self._tombstones_dir / task_id

    def _lock_path(self, task_id: str) -> Path:
        return self._locks_dir / f"{task_id}.lock"

    def _decode(self, task_id: str, raw: str) -> TaskRecord:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return TaskRecord.from_storage(task_id, data)
        except ValueError as exc:
            raise StorageError(f"Record for task '{task_id}' is corrupt", exc) from exc

    def _write_atomic(self, record: TaskRecord) -> None:
        bad = non_finite_paths(record.model_dump(by_alias=True, exclude={"id"}))
        if bad:
            raise StorageError(f"Task '{record.id}' holds NaN or Infinity at {', '.join(bad)}; refusing to write")
        payload = json.dumps(record.to_storage(), indent=1, ensure_ascii=False, allow_nan=False)
        path = self._record_path(record.id)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{record.id}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, RECORD_FILE_MODE)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write task '{record.id}'", exc) from exc


__all__ = ["DocumentStore", "TASK_ID_PATTERN", "new_task_id"]

"""Task lifecycle operations: create, read, update document, delete."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from relleno.core.errors import DocumentValidationError, InvalidStateError, StorageError, ValidationIssue
from relleno.core.json_values import non_finite_paths
from relleno.models.task import TaskDefinition, TaskRecord
from relleno.services.document_store import DocumentStore
from relleno.services.schema_service import SchemaValidator

logger = logging.getLogger(__name__)


class TaskService:
    """Schema-gated access to stored tasks.

    Every document write passes through the SchemaValidator before the
    store sees it; a document that fails its schema is never persisted.
    """

    def __init__(
        self,
        store: DocumentStore,
        validator: SchemaValidator,
        default_spa_path: str | None = None,
    ) -> None:
        self._store = store
        self._validator = validator
        self._default_spa_path = Path(default_spa_path).expanduser() if default_spa_path else None

    @property
    def store(self) -> DocumentStore:
        return self._store

    def create_task(self, definition: TaskDefinition) -> str:
        """Validate a task definition and persist it.

        Raises:
            SchemaError: If the schema does not compile
            DocumentValidationError: If the document fails the schema, or the
                editor configuration holds NaN or Infinity
            InvalidStateError: If the initial state is not a declared transition
        """
        self._validator.check(definition.json_schema, definition.document)
        bad_config = non_finite_paths(definition.ui_config)
        if bad_config:
            raise DocumentValidationError(
                [
                    ValidationIssue(
                        keyword="type",
                        path=path,
                        schema_path="",
                        message="NaN and Infinity are not JSON numbers (editor configuration)",
                    )
                    for path in bad_config
                ]
            )
        if definition.current_state and definition.current_state not in definition.transitions:
            raise InvalidStateError(None, definition.current_state)
        task_id = self._store.create(definition)
        logger.info(
            "Task %s created with %d transitions (state=%r)",
            task_id,
            len(definition.transitions),
            definition.current_state,
        )
        return task_id

    def get_task(self, task_id: str) -> TaskRecord:
        return self._store.read(task_id)

    def get_document(self, task_id: str) -> Any:
        return self.get_task(task_id).document

    def get_schema(self, task_id: str) -> Any:
        return self.get_task(task_id).json_schema

    def get_config(self, task_id: str) -> Any:
        return self.get_task(task_id).ui_config

    def get_state(self, task_id: str) -> str:
        return self.get_task(task_id).current_state

    def get_spa(self, task_id: str) -> str:
        """Return the editor page for a task, falling back to the default page."""
        markup = self.get_task(task_id).spa_markup
        if markup or self._default_spa_path is None:
            return markup
        try:
            return self._default_spa_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read default editor page {self._default_spa_path}", exc) from exc

    def update_document(self, task_id: str, document: Any) -> None:
        """Replace a task's document after validating it against the stored schema.

        Validation runs while the task is locked, so the schema check and the
        write see the same record. The schema itself is never replaced here.

        Raises:
            TaskNotFoundError: If the task does not exist
            DocumentValidationError: If the document fails the stored schema
        """

        def _replace(record: TaskRecord) -> TaskRecord:
            self._validator.check(record.json_schema, document)
            return record.model_copy(update={"document": document})

        self._store.update(task_id, _replace)
        logger.info("Task %s document replaced", task_id)

    def delete_task(self, task_id: str) -> None:
        self._store.delete(task_id)

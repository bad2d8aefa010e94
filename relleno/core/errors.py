"""Error types raised by the task engine.

Services raise these; the API layer translates them into HTTP responses.
Nothing here is retried automatically.
"""

from __future__ import annotations

from dataclasses import dataclass


class TaskError(Exception):
    """Base class for all task engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TaskNotFoundError(TaskError):
    """Raised when no record exists for a task id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class SchemaError(TaskError):
    """Raised when a JSON Schema cannot be compiled."""


@dataclass(frozen=True)
class ValidationIssue:
    """One failed schema assertion."""

    keyword: str
    path: str
    schema_path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "keyword": self.keyword,
            "path": self.path,
            "schema_path": self.schema_path,
            "message": self.message,
        }


class DocumentValidationError(TaskError):
    """Raised when a document does not conform to its schema."""

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        if issues:
            first = issues[0]
            message = f"Document failed validation at '{first.path or '/'}' ({first.keyword}): {first.message}"
        else:
            message = "Document failed validation"
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return {"message": self.message, "errors": [issue.to_dict() for issue in self.issues]}


class InvalidStateError(TaskError):
    """Raised when a state is not declared in the task's transitions."""

    def __init__(self, task_id: str | None, state: str) -> None:
        self.task_id = task_id
        self.state = state
        super().__init__(f"Invalid state '{state}'")


class StorageError(TaskError):
    """Raised when the record directory cannot be read or written."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        cause_str = f" (caused by: {self.cause})" if self.cause else ""
        return f"{self.message}{cause_str}"


class ConflictError(TaskError):
    """Raised when a task's lock cannot be acquired in time."""

    def __init__(self, task_id: str, timeout: float) -> None:
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"Task '{task_id}' is locked by another writer (waited {timeout:g}s)")


class SideEffectError(TaskError):
    """Raised when a transition notification cannot be delivered."""

    def __init__(self, url: str, method: str, reason: str) -> None:
        self.url = url
        self.method = method
        self.reason = reason
        super().__init__(f"{method} {url} failed: {reason}")

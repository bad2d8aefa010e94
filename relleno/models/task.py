"""Task models: the persisted record, its transition rules and API payloads.

Each field accepts two spellings on input: the descriptive name
(``targetUrl``, ``uiConfig``, ...) and the short name used by existing
record files (``url``, ``config``, ...). Records are written with the short
names so directories created by earlier deployments stay readable.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from relleno.models.base import StrictBaseModel

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")
DEFAULT_NOTIFY_METHOD = "POST"


class TransitionRule(StrictBaseModel):
    """Side effects applied when a task enters a state."""

    target_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("targetUrl", "url", "target_url"),
        serialization_alias="url",
        description="Endpoint notified on entering the state",
    )
    method: str | None = Field(default=None, description="HTTP verb for the notification")
    delete_on_enter: bool = Field(
        default=False,
        validation_alias=AliasChoices("deleteOnEnter", "delete", "delete_on_enter"),
        serialization_alias="delete",
        description="Delete the task instead of persisting the new state",
    )
    send_document: bool = Field(
        default=False,
        validation_alias=AliasChoices("sendDocument", "send_document"),
        serialization_alias="sendDocument",
        description="Include the current document as the notification body",
    )

    @field_validator("delete_on_enter", "send_document", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("target_url")
    @classmethod
    def _blank_url_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method '{value}'. Expected one of {', '.join(HTTP_METHODS)}")
        return method

    @property
    def http_method(self) -> str:
        return self.method or DEFAULT_NOTIFY_METHOD


class TaskDefinition(StrictBaseModel):
    """Everything a client submits to create a task."""

    document: Any = Field(..., description="JSON document being edited")
    json_schema: Any = Field(
        ...,
        validation_alias=AliasChoices("schema", "json_schema"),
        serialization_alias="schema",
        description="JSON Schema constraining the document",
    )
    ui_config: Any = Field(
        default=None,
        validation_alias=AliasChoices("uiConfig", "config", "ui_config"),
        serialization_alias="config",
        description="Opaque editor configuration",
    )
    spa_markup: str = Field(
        default="",
        validation_alias=AliasChoices("spaMarkup", "spa", "spa_markup"),
        serialization_alias="spa",
        description="Editor page served verbatim",
    )
    current_state: str = Field(
        default="",
        validation_alias=AliasChoices("currentState", "state", "current_state"),
        serialization_alias="state",
        description="Current workflow state; empty when the workflow has not started",
    )
    transitions: dict[str, TransitionRule] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("transitions", "states"),
        serialization_alias="states",
        description="State name to transition rule",
    )

    @field_validator("spa_markup", "current_state", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("transitions", mode="before")
    @classmethod
    def _null_is_no_transitions(cls, value: Any) -> Any:
        return {} if value is None else value


class TaskRecord(TaskDefinition):
    """A persisted task. The id is the record's file name, never part of its content."""

    id: str = Field(..., min_length=1)

    @classmethod
    def from_definition(cls, task_id: str, definition: TaskDefinition) -> TaskRecord:
        return cls.model_validate({"id": task_id, **dict(definition)})

    @classmethod
    def from_storage(cls, task_id: str, data: dict[str, Any]) -> TaskRecord:
        return cls.model_validate({**data, "id": task_id})

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})

    def rule_for(self, state: str) -> TransitionRule | None:
        return self.transitions.get(state)


class TaskCreatedResponse(StrictBaseModel):
    id: str


class TransitionOutcome(StrictBaseModel):
    """Result of a committed transition."""

    task_id: str
    state: str
    deleted: bool = False
    notified: bool = False


__all__ = [
    "DEFAULT_NOTIFY_METHOD",
    "HTTP_METHODS",
    "TaskCreatedResponse",
    "TaskDefinition",
    "TaskRecord",
    "TransitionOutcome",
    "TransitionRule",
]

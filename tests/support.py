"""Test doubles and builders shared across the suite."""

from __future__ import annotations

from typing import Any

from relleno.core.errors import SideEffectError
from relleno.models.task import TaskDefinition
from relleno.services.document_store import DocumentStore


class RecordingNotifier:
    """Notifier double that records dispatches instead of sending them."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    def dispatch(
        self,
        url: str,
        method: str,
        task_id: str,
        document: Any = None,
        send_document: bool = False,
    ) -> None:
        if self.fail:
            raise SideEffectError(url, method, "simulated dispatch failure")
        self.calls.append(
            {
                "url": url,
                "method": method,
                "task_id": task_id,
                "document": document,
                "send_document": send_document,
            }
        )


def make_definition(**overrides: Any) -> TaskDefinition:
    data: dict[str, Any] = {
        "document": {"x": 1},
        "schema": {"type": "object", "required": ["x"]},
        "transitions": {"done": {"deleteOnEnter": True}},
    }
    data.update(overrides)
    return TaskDefinition.model_validate(data)


def stored_ids(store: DocumentStore) -> list[str]:
    return sorted(p.name for p in store.root.iterdir() if not p.name.startswith("."))

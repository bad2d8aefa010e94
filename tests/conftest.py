"""Shared fixtures: a temporary record directory and services built on it."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from relleno.main import app
from relleno.services.document_store import DocumentStore
from relleno.services.schema_service import SchemaValidator
from relleno.services.task_service import TaskService
from relleno.services.workflow_engine import WorkflowEngine

from .support import RecordingNotifier


@pytest.fixture
def store(tmp_path) -> DocumentStore:
    return DocumentStore(str(tmp_path / "docs"), lock_timeout=0.2)


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator(cache_size=8)


@pytest.fixture
def service(store: DocumentStore, validator: SchemaValidator) -> TaskService:
    return TaskService(store, validator)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(store: DocumentStore, notifier: RecordingNotifier) -> WorkflowEngine:
    return WorkflowEngine(store, notifier)


@pytest.fixture
def client(service: TaskService, engine: WorkflowEngine) -> Iterator[TestClient]:
    app.state.task_service = service
    app.state.workflow_engine = engine
    try:
        yield TestClient(app)
    finally:
        del app.state.task_service
        del app.state.workflow_engine

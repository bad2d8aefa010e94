import pytest

from relleno.core.errors import (
    DocumentValidationError,
    InvalidStateError,
    SchemaError,
    TaskNotFoundError,
)
from relleno.services.document_store import DocumentStore
from relleno.services.schema_service import SchemaValidator
from relleno.services.task_service import TaskService

from .support import make_definition, stored_ids


def test_create_task_returns_id_and_serves_views(service: TaskService) -> None:
    definition = make_definition(
        uiConfig={"theme": "dark"},
        spaMarkup="<html>editor</html>",
        transitions={"review": {"targetUrl": "http://hooks.local/review"}},
        currentState="review",
    )
    task_id = service.create_task(definition)

    assert service.get_document(task_id) == {"x": 1}
    assert service.get_schema(task_id) == {"type": "object", "required": ["x"]}
    assert service.get_config(task_id) == {"theme": "dark"}
    assert service.get_spa(task_id) == "<html>editor</html>"
    assert service.get_state(task_id) == "review"


def test_invalid_document_is_never_stored(service: TaskService, store: DocumentStore) -> None:
    with pytest.raises(DocumentValidationError) as exc_info:
        service.create_task(make_definition(document={"y": 2}))

    assert exc_info.value.issues[0].keyword == "required"
    assert stored_ids(store) == []


def test_malformed_schema_is_never_stored(service: TaskService, store: DocumentStore) -> None:
    with pytest.raises(SchemaError):
        service.create_task(make_definition(schema={"type": 12}))
    assert stored_ids(store) == []


def test_undeclared_initial_state_is_rejected(service: TaskService, store: DocumentStore) -> None:
    with pytest.raises(InvalidStateError):
        service.create_task(make_definition(currentState="limbo"))
    assert stored_ids(store) == []


def test_update_document_replaces_valid_documents(service: TaskService) -> None:
    task_id = service.create_task(make_definition())
    service.update_document(task_id, {"x": 2, "extra": True})
    assert service.get_document(task_id) == {"x": 2, "extra": True}


def test_update_document_rejects_invalid_and_keeps_previous(service: TaskService) -> None:
    task_id = service.create_task(make_definition())

    with pytest.raises(DocumentValidationError):
        service.update_document(task_id, {"y": 2})
    assert service.get_document(task_id) == {"x": 1}


def test_update_document_never_touches_schema(service: TaskService) -> None:
    task_id = service.create_task(make_definition())
    service.update_document(task_id, {"x": 5})
    assert service.get_schema(task_id) == {"type": "object", "required": ["x"]}


def test_update_unknown_task(service: TaskService) -> None:
    with pytest.raises(TaskNotFoundError):
        service.update_document("0f8fad5b-d9cb-469f-a165-70867728950e", {"x": 1})


def test_delete_task(service: TaskService) -> None:
    task_id = service.create_task(make_definition())
    service.delete_task(task_id)
    with pytest.raises(TaskNotFoundError):
        service.get_task(task_id)


def test_default_editor_page_is_served_when_task_has_none(store: DocumentStore, tmp_path) -> None:
    page = tmp_path / "editor.html"
    page.write_text("<html>default editor</html>", encoding="utf-8")
    service = TaskService(store, SchemaValidator(), default_spa_path=str(page))

    plain = service.create_task(make_definition())
    custom = service.create_task(make_definition(spa="<html>custom</html>"))

    assert service.get_spa(plain) == "<html>default editor</html>"
    assert service.get_spa(custom) == "<html>custom</html>"


def test_editor_page_is_empty_without_default(service: TaskService) -> None:
    task_id = service.create_task(make_definition())
    assert service.get_spa(task_id) == ""


def test_non_finite_numbers_are_never_stored(service: TaskService, store: DocumentStore) -> None:
    with pytest.raises(DocumentValidationError) as exc_info:
        service.create_task(make_definition(document={"x": float("nan")}))
    assert exc_info.value.issues[0].path == "/x"
    assert stored_ids(store) == []

    task_id = service.create_task(make_definition())
    with pytest.raises(DocumentValidationError):
        service.update_document(task_id, {"x": float("-inf")})
    assert service.get_document(task_id) == {"x": 1}


def test_non_finite_config_is_never_stored(service: TaskService, store: DocumentStore) -> None:
    with pytest.raises(DocumentValidationError) as exc_info:
        service.create_task(make_definition(uiConfig={"zoom": float("inf")}))
    assert exc_info.value.issues[0].path == "/zoom"
    assert stored_ids(store) == []

"""Task endpoints: create, fetch views, replace document, change state, delete."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse

from relleno.core.errors import (
    ConflictError,
    DocumentValidationError,
    InvalidStateError,
    SchemaError,
    StorageError,
    TaskNotFoundError,
)
from relleno.models.task import TaskCreatedResponse, TaskDefinition
from relleno.services.task_service import TaskService
from relleno.services.workflow_engine import WorkflowEngine

router = APIRouter()


def get_task_service(request: Request) -> TaskService:
    """Task service built at startup."""
    service = getattr(request.app.state, "task_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task storage is not initialized",
        )
    return service


def get_workflow_engine(request: Request) -> WorkflowEngine:
    """Workflow engine built at startup."""
    engine = getattr(request.app.state, "workflow_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow engine is not initialized",
        )
    return engine


def _storage_failure(exc: StorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _requested_state(payload: Any) -> str:
    """Accept a JSON string, {"state": ...}, or a plain-text body."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace").strip()
    if isinstance(payload, dict):
        payload = payload.get("state")
    if not isinstance(payload, str):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Request body must name the target state as a JSON string",
        )
    return payload


@router.post("", response_model=TaskCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskDefinition,
    service: TaskService = Depends(get_task_service),
) -> TaskCreatedResponse:
    """Validate and store a new task."""
    try:
        task_id = await run_in_threadpool(service.create_task, payload)
    except DocumentValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.to_dict()) from exc
    except (SchemaError, InvalidStateError) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return TaskCreatedResponse(id=task_id)


@router.get("/{task_id}", response_class=HTMLResponse)
async def get_editor_page(task_id: str, service: TaskService = Depends(get_task_service)) -> HTMLResponse:
    """Serve the task's editor page."""
    try:
        markup = await run_in_threadpool(service.get_spa, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return HTMLResponse(content=markup)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, service: TaskService = Depends(get_task_service)) -> Response:
    """Delete a task permanently."""
    try:
        await run_in_threadpool(service.delete_task, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/document")
async def get_document(task_id: str, service: TaskService = Depends(get_task_service)) -> JSONResponse:
    """Return the task's document."""
    try:
        document = await run_in_threadpool(service.get_document, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return JSONResponse(content=document)


@router.put("/{task_id}/document", status_code=status.HTTP_204_NO_CONTENT)
async def replace_document(
    task_id: str,
    document: Any = Body(...),
    service: TaskService = Depends(get_task_service),
) -> Response:
    """Replace the task's document; it must satisfy the stored schema."""
    try:
        await run_in_threadpool(service.update_document, task_id, document)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DocumentValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.to_dict()) from exc
    except SchemaError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/schema")
async def get_schema(task_id: str, service: TaskService = Depends(get_task_service)) -> JSONResponse:
    """Return the task's JSON Schema."""
    try:
        schema = await run_in_threadpool(service.get_schema, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return JSONResponse(content=schema)


@router.get("/{task_id}/config")
async def get_config(task_id: str, service: TaskService = Depends(get_task_service)) -> JSONResponse:
    """Return the task's editor configuration (null when none was given)."""
    try:
        config = await run_in_threadpool(service.get_config, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return JSONResponse(content=config)


@router.get("/{task_id}/state")
async def get_state(task_id: str, service: TaskService = Depends(get_task_service)) -> JSONResponse:
    """Return the task's current state as a JSON string."""
    try:
        state = await run_in_threadpool(service.get_state, task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return JSONResponse(content=state)


@router.post("/{task_id}/state", status_code=status.HTTP_204_NO_CONTENT)
async def change_state(
    task_id: str,
    payload: Any = Body(...),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> Response:
    """Move the task into the named state, applying that state's side effects."""
    requested = _requested_state(payload)
    try:
        await engine.request_transition(task_id, requested)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/states")
async def list_states(task_id: str, engine: WorkflowEngine = Depends(get_workflow_engine)) -> JSONResponse:
    """Return the states the task may be moved into, sorted by name."""
    try:
        states = await engine.states(task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    return JSONResponse(content=states)

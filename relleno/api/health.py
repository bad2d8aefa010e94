"""Health check endpoints."""

from fastapi import APIRouter, HTTPException, Request, status

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(request: Request) -> dict[str, str]:
    """Readiness check: the record directory must be initialized and writable."""
    service = getattr(request.app.state, "task_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task storage is not initialized")
    root = service.store.root
    if not root.is_dir():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Record directory {root} is missing")
    return {"status": "ready", "docs_dir": str(root)}

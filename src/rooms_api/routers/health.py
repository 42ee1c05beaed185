from fastapi import APIRouter, Request

from rooms_api.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint for monitoring API status.

    Reports which storage backend this process selected at startup.
    """
    storage = getattr(request.app.state, "storage", None)
    return HealthResponse(
        status="ok" if storage is not None else "degraded",
        storage_backend=storage.backend_name if storage is not None else "none",
    )

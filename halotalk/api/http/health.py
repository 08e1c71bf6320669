"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from halotalk.exceptions import RegistryClosedError
from halotalk.logging import logger

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    connections: int
    users: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Report live connection and presence counts.

    Returns 503 Service Unavailable once the connection registry has been
    closed (the server is shutting down).
    """
    broadcaster = request.app.state.broadcaster
    connections = len(broadcaster.connections)

    try:
        users = broadcaster.registry.size()
    except RegistryClosedError as e:
        logger.error(f"Health check failed: {e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="unhealthy", connections=connections, users=0
        )

    return HealthResponse(
        status="healthy", connections=connections, users=users
    )

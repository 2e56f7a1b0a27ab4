"""
Health check endpoint.

Reports that the API is up and which phase the trading session is in.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ... import __version__
from ...services.runtime import SessionRuntime
from ..dependencies import get_session_runtime_dep
from ..schemas import HealthCheckResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    runtime: Annotated[SessionRuntime, Depends(get_session_runtime_dep)]
) -> HealthCheckResponse:
    """
    Example:
        GET /health
        Response: {"status": "healthy", "version": "0.1.0", "session_phase": "active"}
    """
    return HealthCheckResponse(
        status="healthy", version=__version__, session_phase=runtime.machine.phase
    )

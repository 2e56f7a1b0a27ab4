"""
FastAPI dependency injection helpers.

Provides reusable dependencies for routes to access configuration and the
session runtime.
"""

from typing import Annotated

from fastapi import Depends

from ..config import Settings, get_settings
from ..services.runtime import SessionRuntime, get_session_runtime


def get_session_runtime_dep(
    settings: Annotated[Settings, Depends(get_settings)]
) -> SessionRuntime:
    """
    Get session runtime instance.

    Args:
        settings: Application settings

    Returns:
        SessionRuntime singleton instance
    """
    return get_session_runtime(settings)

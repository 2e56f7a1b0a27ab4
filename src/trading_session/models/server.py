"""
Session API payload schemas.

Payloads are validated at the client boundary so malformed responses surface
as MalformedResponseError instead of propagating missing fields.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DataEnvelope(BaseModel):
    """
    Generic `{"Data": ...}` wrapper used by the settings endpoints.

    Numeric values arrive as strings (e.g. `{"Data": "1800000"}`).
    """

    model_config = ConfigDict(populate_by_name=True)

    data: Any = Field(alias="Data")

    def as_int(self) -> int:
        return int(float(self.data))


class SessionStatus(BaseModel):
    """
    Server view of the trading session.

    Attributes:
        enabled: Whether session enforcement is active
        confirmed: Whether the session passed step-up confirmation
        ttl_ms: Remaining validity in milliseconds
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = Field(alias="Enabled")
    confirmed: bool = Field(alias="Confirmed")
    ttl_ms: int = Field(default=0, ge=0, alias="Ttl")


class SessionStatusEnvelope(BaseModel):
    """`{"TradingSession": {...}}` wrapper returned by the status endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    trading_session: SessionStatus = Field(alias="TradingSession")


class StructuredError(BaseModel):
    """JSON error body, optionally carrying a human-readable message."""

    message: str | None = None

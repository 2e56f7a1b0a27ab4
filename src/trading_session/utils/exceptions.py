"""
Custom exceptions for the trading session guard.

These exceptions provide structured error handling for different failure scenarios.
"""


class TradingSessionError(Exception):
    """Base exception for all trading session errors."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR") -> None:
        """
        Initialize exception with message and error code.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (SNAKE_CASE)
        """
        self.message = message
        self.code = code
        super().__init__(message)


class SessionApiError(TradingSessionError):
    """
    Raised when a session API request fails.

    Attributes:
        status_code: HTTP status of the failed response, if one was received
        body: Raw response body, kept for callers that parse structured errors
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        code: str = "SESSION_API_ERROR",
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code
        self.body = body


class SessionApiConnectionError(SessionApiError):
    """Raised when the session API cannot be reached."""

    def __init__(self, message: str = "Unable to connect to the session API") -> None:
        super().__init__(message, code="SESSION_API_UNAVAILABLE")


class MalformedResponseError(SessionApiError):
    """Raised when a session API payload does not match its schema."""

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(message, body=body, code="MALFORMED_RESPONSE")


class MissingConfirmationIdentifierError(TradingSessionError):
    """Raised when no confirmation identifier is persisted for the signed-in user."""

    def __init__(
        self, message: str = "No confirmation identifier found, signing out"
    ) -> None:
        super().__init__(message, code="MISSING_CONFIRMATION_IDENTIFIER")


class ValidationError(TradingSessionError):
    """Raised when data validation fails."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, code=code)


class InvalidDurationError(ValidationError):
    """Raised when a requested session duration is not positive."""

    def __init__(self, message: str = "Session duration must be positive") -> None:
        super().__init__(message, code="INVALID_DURATION")


class NoConfirmationInProgressError(TradingSessionError):
    """Raised when a confirmation action arrives with no open confirmation surface."""

    def __init__(self, message: str = "No confirmation is in progress") -> None:
        super().__init__(message, code="NO_CONFIRMATION_IN_PROGRESS")

"""Custom exception classes for journeytrack."""


class JourneyTrackError(Exception):
    """Base exception for all journeytrack errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize JourneyTrackError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code associated with the failure.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for structured logging."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class StorageAccessError(JourneyTrackError):
    """Raised when a key-value store cannot be read or written."""

    def __init__(self, store: str, key: str | None = None, original_error: str | None = None):
        """Initialize StorageAccessError.

        Args:
            store: Name of the store that failed.
            key: Key being accessed, if any.
            original_error: Underlying error message.
        """
        self.store = store
        self.key = key
        super().__init__(
            message=f"Storage '{store}' is not accessible",
            error_code="STORAGE_ACCESS_ERROR",
            details={"store": store, "key": key, "original_error": original_error},
        )


class JourneyApiError(JourneyTrackError):
    """Raised when the remote journey API call fails."""

    def __init__(
        self,
        path: str,
        status_code: int | None = None,
        message: str | None = None,
        original_error: str | None = None,
    ):
        """Initialize JourneyApiError.

        Args:
            path: API path that was called.
            status_code: HTTP status code, None for transport failures.
            message: Optional custom message.
            original_error: Underlying error message.
        """
        self.path = path
        self.http_status = status_code
        super().__init__(
            message=message or f"Journey API call to '{path}' failed",
            error_code="JOURNEY_API_ERROR",
            status_code=status_code or 502,
            details={
                "path": path,
                "http_status": status_code,
                "original_error": original_error,
            },
        )

    @property
    def is_transport_error(self) -> bool:
        """Whether the request never produced an HTTP response."""
        return self.http_status is None


class SessionInactiveError(JourneyTrackError):
    """Raised when a write is attempted after the session has ended."""

    def __init__(self, operation: str):
        """Initialize SessionInactiveError."""
        self.operation = operation
        super().__init__(
            message=f"Session ended before '{operation}' could run",
            error_code="SESSION_INACTIVE",
            status_code=409,
            details={"operation": operation},
        )


class ConfigurationError(JourneyTrackError):
    """Raised when tracker configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", setting: str | None = None):
        """Initialize ConfigurationError."""
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=400,
            details={"setting": setting} if setting else None,
        )

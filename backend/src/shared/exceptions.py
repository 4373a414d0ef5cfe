class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str = "Resource", id: str = ""):
        super().__init__(f"{resource} not found: {id}" if id else f"{resource} not found")


class SessionClosedError(AppError):
    """Raised when mutating a collaborative session that has already ended."""

    def __init__(self, session_id: str = ""):
        super().__init__(f"Session is closed: {session_id}" if session_id else "Session is closed")


class ConflictError(AppError):
    """Raises on optimistic locking conflicts (stale version)."""

    def __init__(self, message: str = "Resource was modified by another user"):
        super().__init__(message)


class AuthenticationError(AppError):
    """Raised when credentials are invalid."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class AuthorizationError(AppError):
    """Raised when a user lacks permission for an action."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class TransportError(AppError):
    """Recoverable failure while polling for realtime updates."""

    def __init__(self, message: str = "Realtime poll failed", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MaxRetriesExceededError(AppError):
    """Raised when the polling client gives up after repeated transport failures."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Giving up after {attempts} failed poll attempts")

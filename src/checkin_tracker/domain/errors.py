"""Error types raised by the check-in tracker."""


class CheckinTrackerError(Exception):
    """Base class for check-in tracker errors."""


class SessionValidationError(CheckinTrackerError):
    """Raised when a request is rejected before any state changes."""

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)


class SessionNotFoundError(SessionValidationError):
    """Raised when a session id is unknown."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Customer not found: {session_id}")


class ImportRejectedError(SessionValidationError):
    """Raised when a backup file fails validation."""


class PersistenceError(CheckinTrackerError):
    """Raised when the remote store rejects or fails a write."""

"""Service-level exceptions mapped to HTTP responses by the API layer."""


class PhotoStudioError(Exception):
    """Base error for request-level failures."""


class SessionNotFoundError(PhotoStudioError):
    """Raised when a session id is unknown."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ValidationError(PhotoStudioError):
    """Raised when a request is rejected before any work starts."""


class SessionBusyError(PhotoStudioError):
    """Raised when a session already has a generation in flight."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} is already generating")
        self.session_id = session_id


class AssetNotFoundError(PhotoStudioError):
    """Raised when a stored image does not exist."""

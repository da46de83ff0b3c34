"""Custom exception hierarchy for strata."""


class StrataError(Exception):
    """Base exception for strata."""
    pass


class ActionParseError(StrataError):
    """Raised when planner output cannot be decoded into actions."""
    pass


class RemoteServiceError(StrataError):
    """A collaborator call failed. Carries the HTTP status when one is known."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MissingTokenError(RemoteServiceError):
    """Raised when a remote call is attempted without an access token."""

    def __init__(self, message: str = "missing access token"):
        super().__init__(message, status_code=401)


class StorageError(StrataError):
    """Raised when there's an issue with SQLite storage."""
    pass


class BridgeError(StrataError):
    """Raised when a confirmation request is answered with an invalid choice."""
    pass

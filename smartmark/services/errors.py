"""Error taxonomy shared by the store client, the session resolver and the views."""


class SmartMarkError(Exception):
    """Base class for recoverable application errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(SmartMarkError):
    """
    Raised before any network activity when user input is unacceptable.

    Always recoverable; surfaced as inline form text.
    """


class StoreError(SmartMarkError):
    """Raised when the persistence collaborator fails or rejects a call."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.operation}] {self.message}"


class AuthError(SmartMarkError):
    """Raised when the identity collaborator cannot produce or end a session."""

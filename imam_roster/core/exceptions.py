class RosterError(Exception):
    """Base exception for roster rule violations. Carries the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RosterError):
    """Raised when input is missing or out of range."""


class AuthenticationError(RosterError):
    """Raised for a wrong access code, bad credentials, or an expired admin session."""

    status_code = 401


class NotFoundError(RosterError):
    status_code = 404


class ConflictError(RosterError):
    status_code = 409


class QuotaExceededError(ConflictError):
    """Raised when a write would give an imam more days than their quota."""

    def __init__(self, requested: int, quota: int):
        super().__init__(f"Total bookings ({requested}) would exceed quota ({quota})")
        self.requested = requested
        self.quota = quota


class AccessCodeExhaustedError(ConflictError):
    """Raised when no unused access code was found within the retry budget."""


class RateLimitedError(RosterError):
    status_code = 429


class StorageError(RosterError):
    """Raised when the database cannot be reached or rejects a write unexpectedly."""

    status_code = 503

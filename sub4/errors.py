class Sub4Error(Exception):
    """Base error for the milestone pipeline."""

class InvalidInput(Sub4Error, ValueError):
    """Caller contract violation. Always a bug, never retried."""

class NotFound(Sub4Error):
    """Missing member or activity."""

class NotAuthorized(Sub4Error):
    """Member has deauthorized; no usable Strava credential exists."""

class ApiError(Sub4Error):
    """Non-2xx response from the Strava API."""

    def __init__(self, message: str, status_code: int, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

class RateLimited(ApiError):
    """Strava returned 429. Retried without consuming an attempt."""

    def __init__(self, message: str = "Rate limit exceeded", reset_at: int | None = None):
        super().__init__(message, 429)
        self.reset_at = reset_at

class PersistenceError(Sub4Error):
    """Database failure fatal to the enclosing operation."""

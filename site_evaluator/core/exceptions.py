"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when a request is malformed or ambiguous. No side effects have happened."""
    pass


class InvalidStatusTransitionError(ValidationError):
    """Raised when a job lifecycle transition is not permitted."""
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot transition job from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class NotResolvableError(AppError):
    """Raised when a locator cannot be geocoded. No Location is created."""
    pass


class NotFoundError(AppError):
    """Raised when a job, location or report id is unknown."""
    def __init__(self, resource: str, identifier: object):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class ProviderError(AppError):
    """Raised when a single external data provider fails.

    Always recovered inside the location cache and recorded against the
    affected section.
    """
    def __init__(self, provider: str, message: str, original_error: Exception = None):
        super().__init__(f"{provider}: {message}", original_error=original_error)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its per-call timeout."""
    pass


class ProviderNotAvailableError(ProviderError):
    """Raised when a provider has no data for the requested property."""
    pass


class RenderError(AppError):
    """Raised when report rendering fails. Nothing is persisted."""
    pass


class PersistenceError(AppError):
    """Raised when a database operation fails."""
    pass


class ConcurrencyError(PersistenceError):
    """Raised when an optimistic version check loses a race."""
    pass


class StorageError(AppError):
    """Raised when report artifact storage fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass

class ServiceError(Exception):
    """Base error for the matching and engagement core"""


class ValidationError(ServiceError, ValueError):
    """Malformed input. Raised before any storage mutation begins."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(ServiceError):
    """Referenced row does not exist or does not belong to the caller"""

    def __init__(self, message: str = "Not found or access denied"):
        self.message = message
        super().__init__(message)


class StorageError(ServiceError):
    """Underlying persistence failure"""

    def __init__(self, operation: str, **context):
        self.operation = operation
        self.context = context
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        super().__init__(f"{operation} failed ({details})" if details else f"{operation} failed")

class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class StoreUnavailableError(AppError):
    """Raised when the durable store has no usable connection."""
    def __init__(self, message: str = "Database not available"):
        super().__init__(message, status_code=503)

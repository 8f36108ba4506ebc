class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ConfigError(AppError):
    """Raised when a time-block configuration is malformed (reversed, empty or overlapping blocks)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ScopeError(AppError):
    """Raised when a generation or validation request selects nothing to schedule."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class StateError(AppError):
    """Raised when a proposal operation is attempted in the wrong lifecycle state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ApplyConflict(AppError):
    """Raised when applying a proposal fails; the proposal stays pending and may be retried."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

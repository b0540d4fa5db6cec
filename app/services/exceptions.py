"""
Errors raised by the service layer.

Routes never build HTTP errors for these themselves; the handlers registered
in `app.main` map each class to its status code.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Bad input: empty message, empty recipient set, unknown enum value."""
    status_code = 400


class NotFoundError(ServiceError):
    """Row is missing or belongs to another user."""
    status_code = 404


class StoreUnavailable(ServiceError):
    """The database failed mid-operation. Completed writes are kept."""
    status_code = 503

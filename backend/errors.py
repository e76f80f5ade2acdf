from typing import Optional


class StoreError(Exception):
    """Base error for request failures that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error or message

    def to_dict(self):
        return {"success": False, "message": self.message, "error": self.error}


class ValidationError(StoreError):
    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ExpiredError(StoreError):
    status_code = 400


class PersistenceError(StoreError):
    status_code = 500

"""
Exceptions raised by Only Locks services and routes.

Every exception carries the HTTP status it maps to; the handlers registered
in ``create_app`` turn them into JSON error responses.
"""


class ApiError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": {"message": self.message, "status": self.status_code}}


class ValidationError(ApiError):
    """Rejected input: nothing was persisted"""

    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class UnauthorizedError(ApiError):
    status_code = 401

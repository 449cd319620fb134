"""Error taxonomy for the API.

Every failure a handler reports is one of these classes; ``main`` registers
a handler that turns them into JSON responses:

    ApiError
    ├── Unauthenticated    401
    ├── InvalidCredential  400
    ├── ValidationError    400
    ├── NotFound           404
    ├── Conflict           409
    └── Internal           500
"""
from typing import Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[list] = None):
        self.message = message
        self.errors = errors
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {'message': self.message, 'errorType': self.__class__.__name__}
        if self.errors:
            body['errors'] = self.errors
        return body


class Unauthenticated(ApiError):
    """No usable credential: missing, expired, or without a user claim."""
    status_code = 401


class InvalidCredential(ApiError):
    """A credential was presented but failed verification."""
    status_code = 400


class ValidationError(ApiError):
    status_code = 400


class NotFound(ApiError):
    """Entity absent or owned by someone else; the two are not distinguished."""
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class Internal(ApiError):
    status_code = 500

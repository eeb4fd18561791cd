"""
Typed service errors

Every service function raises ServiceError instead of returning None/False
for failures. The HTTP layer maps the error kind to a status code; callers
branch on `kind`, never on the message text.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    VALIDATION = ('validation', 400)
    UNAUTHORIZED = ('unauthorized', 401)
    FORBIDDEN = ('forbidden', 403)
    NOT_FOUND = ('not_found', 404)
    DUPLICATE = ('duplicate', 409)
    IN_USE = ('in_use', 409)
    LOCATION_UPSERT_FAILED = ('location_upsert_failed', 500)

    def __init__(self, code: str, status_code: int):
        self.code = code
        self.status_code = status_code


class ServiceError(Exception):
    """Raised by the service layer; carries an ErrorKind and optional field errors."""

    def __init__(self, kind: ErrorKind, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or {}

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': False,
            'message': self.message,
            'errorKind': self.kind.code,
        }
        if self.errors:
            payload['errors'] = self.errors
        return payload


def validation_error(field: str, message: str) -> ServiceError:
    return ServiceError(ErrorKind.VALIDATION, message, {field: [message]})


def not_found(entity: str) -> ServiceError:
    return ServiceError(ErrorKind.NOT_FOUND, f'{entity} not found')


def forbidden(message: str = 'Forbidden') -> ServiceError:
    return ServiceError(ErrorKind.FORBIDDEN, message)

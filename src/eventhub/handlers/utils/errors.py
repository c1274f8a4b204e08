"""
Error taxonomy for the event registration API.

Every domain failure is an ``HttpError`` tagged with an ``ErrorKind``. The kind
carries the default HTTP status and machine readable code, so the response
wrapper is the single place that turns an error into a status code and a JSON
envelope. The subclasses below only pick a kind; they add no behavior.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.handlers.utils.observability import logger, metrics, tracer


class ErrorKind(str, Enum):
    """Known error kinds with their default status code and error code."""

    BAD_REQUEST = 'BAD_REQUEST'
    VALIDATION = 'VALIDATION_ERROR'
    NOT_FOUND = 'NOT_FOUND'
    CONFLICT = 'CONFLICT'
    NOT_AUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    AUTHENTICATION = 'AUTHENTICATION_FAILED'
    AUTHORIZATION = 'INSUFFICIENT_PERMISSIONS'
    INVALID_TOKEN = 'INVALID_TOKEN'
    RATE_LIMITED = 'RATE_LIMIT_EXCEEDED'
    INTERNAL = 'INTERNAL_ERROR'

    @property
    def status_code(self) -> int:
        return _KIND_STATUS_CODES[self]


_KIND_STATUS_CODES = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_AUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


class HttpError(Exception):
    """Base exception for errors that map to an HTTP status code."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.details = details
        self.code = code or self.kind.value

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the ``error`` member of the response envelope."""
        error: Dict[str, Any] = {'message': self.message, 'code': self.code}
        if self.details:
            error['details'] = self.details
        return error


class BadRequestError(HttpError):
    kind = ErrorKind.BAD_REQUEST


class ValidationError(HttpError):
    kind = ErrorKind.VALIDATION


class NotFoundError(HttpError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(HttpError):
    kind = ErrorKind.CONFLICT


class NotAuthorizedError(HttpError):
    kind = ErrorKind.NOT_AUTHORIZED


class ForbiddenError(HttpError):
    kind = ErrorKind.FORBIDDEN


class AuthenticationError(HttpError):
    kind = ErrorKind.AUTHENTICATION


class AuthorizationError(HttpError):
    kind = ErrorKind.AUTHORIZATION


class InvalidTokenError(HttpError):
    kind = ErrorKind.INVALID_TOKEN


class RateLimitedError(HttpError):
    """Raised when a client exceeds its request window."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.retry_after = retry_after


def get_error_status_code(error: BaseException, custom_error_map: Optional[Mapping[str, int]] = None) -> int:
    """
    Resolve the HTTP status code for an error.

    Custom mappings win over the defaults. They are looked up by error class
    name first and by error code second.

    Args:
        error: The raised exception
        custom_error_map: Optional overrides keyed by class name or error code

    Returns:
        HTTP status code, 500 for anything unrecognized
    """
    if custom_error_map:
        by_name = custom_error_map.get(type(error).__name__)
        if by_name is not None:
            return by_name
        code = getattr(error, 'code', None)
        if isinstance(code, str) and code in custom_error_map:
            return custom_error_map[code]

    if isinstance(error, HttpError):
        return error.status_code

    status_code = getattr(error, 'status_code', None)
    if isinstance(status_code, int) and 400 <= status_code <= 599:
        return status_code

    return 500


def log_error_metrics(error: BaseException, status_code: int) -> None:
    """Log a mapped error and record error metrics for monitoring."""
    code = error.code if isinstance(error, HttpError) else type(error).__name__

    metrics.add_metric(name='ErrorCount', unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=f'Error{status_code // 100}xxCount', unit=MetricUnit.Count, value=1)
    tracer.put_annotation('error_code', code)

    log_extra = {
        'error_code': code,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'status_code': status_code,
    }
    if isinstance(error, HttpError) and error.details:
        log_extra['details'] = error.details

    if status_code >= 500:
        logger.exception('Server error occurred', extra=log_extra)
    else:
        logger.warning('Client error occurred', extra=log_extra)

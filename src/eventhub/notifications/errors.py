"""
Errors raised while delivering notification emails.

Every error says whether retrying the queue message can help. The email
worker sends non-retryable failures to the dead-letter queue and lets the
queue redeliver retryable ones.
"""

from typing import Any, Dict, Optional

# Transport failure codes that are worth a delayed retry
NETWORK_ERROR_CODES = frozenset({'ECONNRESET', 'ENOTFOUND', 'ETIMEDOUT', 'ECONNREFUSED'})


class NotificationError(Exception):
    """Base exception for notification failures."""

    def __init__(
        self,
        message: str,
        code: str = 'NOTIFICATION_ERROR',
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.details = details


class EmailConfigurationError(NotificationError):
    """Missing or invalid email settings. Never retryable."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'EMAIL_CONFIGURATION_ERROR', False, details)


class TemplateDataError(NotificationError):
    """A message could not be turned into template data. Never retryable."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'TEMPLATE_DATA_ERROR', False, details)


def is_retryable_status(status_code: Optional[int]) -> bool:
    """Server errors, timeouts and throttling are retryable; other client errors are not."""
    if status_code is None:
        return True
    if status_code in (408, 429):
        return True
    return not 400 <= status_code < 500


class EmailApiError(NotificationError):
    """The email provider rejected or failed a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if retryable is None:
            retryable = is_retryable_status(status_code)
        super().__init__(message, 'EMAIL_API_ERROR', retryable, details)
        self.status_code = status_code


class MessageProcessingError(NotificationError):
    def __init__(self, message: str, retryable: bool = True, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'MESSAGE_PROCESSING_ERROR', retryable, details)


class MessageValidationError(NotificationError):
    """A queue message is malformed. Never retryable."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'MESSAGE_VALIDATION_ERROR', False, details)
        self.field = field


class NetworkError(NotificationError):
    """Transport level failure talking to the email provider."""

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        if code not in NETWORK_ERROR_CODES:
            raise ValueError(f'Unknown network error code: {code}')
        super().__init__(message, code, True, details)

"""
Registration and payment notifications.

The API builds messages and publishes them to SQS; the email processor
validates each queued message, turns it into template data and sends it
through the templated email API.
"""

from .errors import (
    EmailApiError,
    EmailConfigurationError,
    MessageProcessingError,
    MessageValidationError,
    NetworkError,
    NotificationError,
    TemplateDataError,
)
from .messages import NotificationMessage, PaymentConfirmationMessage, RegistrationNotificationMessage

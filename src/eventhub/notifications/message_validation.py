"""
Parsing and validation of queue messages.

Queue bodies are untrusted JSON. The ``validate_*`` functions never raise;
they return a ``ValidationResult`` whose ``error`` names the first offending
field. ``require_valid_message`` raises ``MessageValidationError`` instead,
for the worker.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from eventhub.handlers.utils.observability import logger
from eventhub.notifications.errors import MessageValidationError
from eventhub.notifications.messages import (
    PAYMENT_CONFIRMED,
    REGISTRATION_SUCCESS,
    NotificationMessage,
    PaymentConfirmationMessage,
    RegistrationNotificationMessage,
)


@dataclass
class ValidationResult:
    success: bool
    data: Optional[NotificationMessage] = None
    error: Optional[str] = None
    field: Optional[str] = None


def _field_path(location: Tuple[Union[str, int], ...]) -> str:
    path = ''
    for part in location:
        if isinstance(part, int):
            path += f'[{part}]'
        else:
            path += f'.{part}' if path else str(part)
    return path


def _describe(error: ValidationError) -> Tuple[str, Optional[str]]:
    first = error.errors()[0]
    field = _field_path(first['loc']) or None
    message = first['msg'].removeprefix('Value error, ')
    return (f'{field}: {message}' if field else message), field


def _failure(message: str, field: Optional[str] = None) -> ValidationResult:
    return ValidationResult(success=False, error=message, field=field)


def validate_registration_notification_message(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _failure('Message must be an object')
    if data.get('type') != REGISTRATION_SUCCESS:
        return _failure(f'Message type must be "{REGISTRATION_SUCCESS}"', 'type')

    registration_type = data.get('registrationType')
    if registration_type not in ('individual', 'team'):
        return _failure('Registration type must be "individual" or "team"', 'registrationType')
    if registration_type == 'team' and not data.get('team'):
        return _failure('Team data is required for team registrations', 'team')

    try:
        return ValidationResult(success=True, data=RegistrationNotificationMessage.model_validate(data))
    except ValidationError as e:
        return _failure(*_describe(e))


def validate_payment_confirmation_message(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _failure('Message must be an object')
    if data.get('type') != PAYMENT_CONFIRMED:
        return _failure(f'Message type must be "{PAYMENT_CONFIRMED}"', 'type')

    try:
        return ValidationResult(success=True, data=PaymentConfirmationMessage.model_validate(data))
    except ValidationError as e:
        return _failure(*_describe(e))


def parse_and_validate_message(record: Mapping[str, Any]) -> ValidationResult:
    """
    Parse an SQS record body and validate it by message type.

    The record's ``messageId`` and the current time fill in ``messageId`` and
    ``timestamp`` when the body has none.
    """
    try:
        body: Dict[str, Any] = json.loads(record.get('body') or '')
    except (TypeError, ValueError):
        return _failure('Invalid JSON in message body')

    if not isinstance(body, dict):
        return _failure('Message body must be a JSON object')

    if not body.get('messageId') and record.get('messageId'):
        body['messageId'] = record['messageId']
    if not body.get('timestamp'):
        body['timestamp'] = datetime.now(timezone.utc).isoformat()

    message_type = body.get('type')
    if message_type == REGISTRATION_SUCCESS:
        return validate_registration_notification_message(body)
    if message_type == PAYMENT_CONFIRMED:
        return validate_payment_confirmation_message(body)
    return _failure(f'Unknown message type: {message_type}', 'type')


def require_valid_message(record: Mapping[str, Any]) -> NotificationMessage:
    """
    Raises:
        MessageValidationError: If the record does not hold a valid message
    """
    result = parse_and_validate_message(record)
    if not result.success:
        logger.warning('Invalid notification message', extra={
            'message_id': record.get('messageId'),
            'validation_error': result.error,
        })
        raise MessageValidationError(
            f'Message validation failed: {result.error}',
            field=result.field,
            details={'messageId': record.get('messageId')},
        )
    return result.data


def is_registration_message(message: NotificationMessage) -> bool:
    return message.type == REGISTRATION_SUCCESS


def is_payment_confirmation_message(message: NotificationMessage) -> bool:
    return message.type == PAYMENT_CONFIRMED

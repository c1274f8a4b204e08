"""
Templated email delivery.

``EmailClient`` talks to the provider's HTTP API with httpx and turns
transport failures into ``NetworkError`` codes the worker knows how to retry.
``EmailService`` picks the template, subject and recipient for a validated
notification message.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx
from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError

from eventhub.handlers.models.env_vars import get_email_env_vars
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.notifications.errors import EmailApiError, EmailConfigurationError, NetworkError
from eventhub.notifications.messages import NotificationMessage
from eventhub.notifications.template_data import (
    TemplateType,
    apply_template_data_defaults,
    template_type_for,
    transform_notification_message,
    validate_template_data,
)

_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

SUBJECTS: Dict[str, str] = {
    'individual': 'Registration Confirmation - {event}',
    'team': 'Team Registration Confirmation - {event}',
    'confirmation': 'Payment Confirmed - {event}',
}


@dataclass(frozen=True)
class EmailAddress:
    email: str
    name: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        payload = {'address': self.email}
        if self.name:
            payload['display_name'] = self.name
        return payload


@dataclass(frozen=True)
class EmailConfig:
    api_key: str
    api_url: str
    from_email: str
    from_name: str
    templates: Dict[str, str]
    timeout_seconds: float = 10.0

    def __post_init__(self):
        if not self.api_key:
            raise EmailConfigurationError('Email API key is required')
        if not self.from_email or not _EMAIL_PATTERN.match(self.from_email):
            raise EmailConfigurationError(f'Invalid from email format: {self.from_email}')
        missing = [name for name in SUBJECTS if not self.templates.get(name)]
        if missing:
            raise EmailConfigurationError(f'Missing template IDs: {", ".join(missing)}')

    @classmethod
    def from_env(cls) -> 'EmailConfig':
        """
        Raises:
            EmailConfigurationError: If required settings are missing or invalid
        """
        try:
            env = get_email_env_vars()
        except ValueError as e:
            # The modeler wraps the pydantic error in a plain ValueError
            cause = e if isinstance(e, ValidationError) else e.__cause__
            fields = []
            if isinstance(cause, ValidationError):
                fields = sorted({str(error['loc'][0]) for error in cause.errors() if error['loc']})
            raise EmailConfigurationError(
                f'Missing or invalid email settings: {", ".join(fields) or str(e)}',
                details={'fields': fields},
            ) from e

        return cls(
            api_key=env.EMAIL_API_KEY,
            api_url=env.EMAIL_API_URL,
            from_email=env.FROM_EMAIL,
            from_name=env.FROM_NAME,
            templates={
                'individual': env.INDIVIDUAL_TEMPLATE_ID,
                'team': env.TEAM_TEMPLATE_ID,
                'confirmation': env.CONFIRMATION_TEMPLATE_ID,
            },
            timeout_seconds=env.EMAIL_TIMEOUT_SECONDS,
        )

    @property
    def sender(self) -> EmailAddress:
        return EmailAddress(self.from_email, self.from_name)


def _network_error(error: httpx.TransportError) -> NetworkError:
    if isinstance(error, httpx.TimeoutException):
        return NetworkError(f'Email API request timed out: {error}', 'ETIMEDOUT')
    if isinstance(error, httpx.ConnectError):
        text = str(error).lower()
        if 'name or service not known' in text or 'nodename' in text or 'getaddrinfo' in text:
            return NetworkError(f'Email API host not found: {error}', 'ENOTFOUND')
        return NetworkError(f'Email API connection refused: {error}', 'ECONNREFUSED')
    return NetworkError(f'Email API connection failed: {error}', 'ECONNRESET')


class EmailClient:
    """HTTP client for the templated email API."""

    def __init__(self, config: EmailConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self._http = http_client or httpx.Client(timeout=config.timeout_seconds)

    @tracer.capture_method
    def send_templated_email(
        self,
        sender: EmailAddress,
        to: EmailAddress,
        subject: str,
        template_id: Union[int, str],
        template_data: Dict[str, Any],
    ) -> str:
        """
        Send one templated email and return the provider's reference id.

        Raises:
            NetworkError: On transport failures
            EmailApiError: When the provider answers with an error
        """
        payload = {
            'from': sender.to_payload(),
            'to': [to.to_payload()],
            'subject': subject,
            'template_id': int(template_id) if str(template_id).isdigit() else template_id,
            'template_data': template_data,
        }

        try:
            response = self._http.post(
                self.config.api_url,
                json=payload,
                headers={'X-API-Key': self.config.api_key},
            )
        except httpx.TransportError as e:
            raise _network_error(e)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400:
            raise EmailApiError(
                body.get('message') or f'Email API returned status {response.status_code}',
                status_code=response.status_code,
                details={'statusCode': response.status_code},
            )
        if body.get('success') is False:
            raise EmailApiError(body.get('message') or 'Email API reported a failure', status_code=response.status_code)

        data = body.get('data') if isinstance(body.get('data'), dict) else {}
        return str(data.get('reference_id') or body.get('reference_id') or '')

    def close(self) -> None:
        self._http.close()


@dataclass
class SendResult:
    reference_id: str
    template_type: TemplateType
    recipient: str


class EmailService:
    """Sends the email that belongs to a notification message."""

    def __init__(self, config: EmailConfig, client: Optional[EmailClient] = None):
        self.config = config
        self.client = client or EmailClient(config)

    @classmethod
    def from_env(cls) -> 'EmailService':
        return cls(EmailConfig.from_env())

    def template_id(self, template_type: TemplateType) -> str:
        template_id = self.config.templates.get(template_type)
        if not template_id:
            raise EmailConfigurationError(f'No template ID configured for email type: {template_type}')
        return template_id

    @tracer.capture_method
    def send_notification(self, message: NotificationMessage) -> SendResult:
        """
        Build template data for ``message`` and send it to its participant.

        Team registrations go to the captain, who is the message participant.

        Raises:
            TemplateDataError: If the template data is incomplete
            NetworkError, EmailApiError: If sending fails
        """
        template_type = template_type_for(message)
        template_data = transform_notification_message(message).model_dump()
        template_data = apply_template_data_defaults(template_data, template_type)
        validate_template_data(template_data, template_type)

        recipient = EmailAddress(message.participant.email, message.participant.full_name)
        subject = SUBJECTS[template_type].format(event=message.event.name)

        try:
            reference_id = self.client.send_templated_email(
                sender=self.config.sender,
                to=recipient,
                subject=subject,
                template_id=self.template_id(template_type),
                template_data=template_data,
            )
        except (NetworkError, EmailApiError):
            metrics.add_metric(name='EmailFailed', unit=MetricUnit.Count, value=1)
            raise

        metrics.add_metric(name='EmailSent', unit=MetricUnit.Count, value=1)
        logger.info('Notification email sent', extra={
            'message_id': message.message_id,
            'reservation_id': message.reservation_id,
            'template_type': template_type,
            'reference_id': reference_id,
        })
        return SendResult(reference_id=reference_id, template_type=template_type, recipient=recipient.email)

"""SQS publisher for notification messages."""

from typing import Any, Dict, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from eventhub.handlers.models.env_vars import get_api_env_vars
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.notifications.errors import MessageProcessingError
from eventhub.notifications.messages import NotificationMessage


class NotificationPublisher:
    """Sends notification messages to the email queue."""

    def __init__(self, queue_url: str, region_name: Optional[str] = None, sqs_client: Any = None):
        self.queue_url = queue_url
        self.sqs = sqs_client or boto3.client('sqs', region_name=region_name)

    @tracer.capture_method
    def publish(self, message: NotificationMessage) -> str:
        """
        Publish one message and return its SQS message id.

        Raises:
            ClientError, BotoCoreError: If SQS rejects the request
            MessageProcessingError: If SQS returns no message id
        """
        body = message.to_body()
        logger.debug('Publishing notification', extra={
            'message_type': message.type,
            'reservation_id': message.reservation_id,
            'message_size': len(body),
        })

        response: Dict[str, Any] = self.sqs.send_message(
            QueueUrl=self.queue_url,
            MessageBody=body,
            MessageAttributes={'type': {'DataType': 'String', 'StringValue': message.type}},
        )
        message_id = response.get('MessageId')
        if not message_id:
            raise MessageProcessingError('Failed to get message ID from SQS response')

        metrics.add_metric(name='NotificationPublished', unit=MetricUnit.Count, value=1)
        logger.info('Notification published', extra={
            'sqs_message_id': message_id,
            'message_type': message.type,
            'reservation_id': message.reservation_id,
        })
        return message_id

    def publish_safe(self, message: NotificationMessage) -> bool:
        """Publish without raising; failures are logged and reported as False."""
        try:
            self.publish(message)
            return True
        except (ClientError, BotoCoreError, MessageProcessingError) as e:
            metrics.add_metric(name='NotificationPublishFailed', unit=MetricUnit.Count, value=1)
            logger.warning('Failed to publish notification', extra={
                'error': str(e),
                'message_type': message.type,
                'reservation_id': message.reservation_id,
            })
            return False


_publisher_cache: Dict[tuple, NotificationPublisher] = {}


def get_notification_publisher() -> Optional[NotificationPublisher]:
    """Publisher for the configured email queue, or None when notifications are off."""
    env = get_api_env_vars()
    if not env.notifications_enabled:
        return None

    settings = (env.EMAIL_QUEUE_URL, env.AWS_REGION)
    if settings not in _publisher_cache:
        _publisher_cache.clear()
        _publisher_cache[settings] = NotificationPublisher(queue_url=env.EMAIL_QUEUE_URL, region_name=env.AWS_REGION)
    return _publisher_cache[settings]

"""
Email Processor Handler - SQS consumer sending notification emails.

Each delivery is processed concurrently. Records that fail with a retryable
error fail the invocation so SQS redelivers the batch; records that can never
succeed are logged and left to the queue's redrive policy.
"""

from typing import Any, Dict, Optional

from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from eventhub.handlers.models.env_vars import get_email_env_vars
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.notifications.processor import DEFAULT_MAX_WORKERS, EmailProcessor, summary_to_dict

_processor: Optional[EmailProcessor] = None


def get_processor() -> EmailProcessor:
    """Processor reused across warm invocations."""
    global _processor
    if _processor is None:
        try:
            max_workers = get_email_env_vars().MAX_CONCURRENCY
        except ValueError as e:
            # Records are still processed so the configuration error reaches each of them
            logger.warning('Email settings invalid, using default concurrency', extra={'error': str(e)})
            max_workers = DEFAULT_MAX_WORKERS
        _processor = EmailProcessor(max_workers=max_workers)
    return _processor


def reset_processor() -> None:
    global _processor
    _processor = None


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Process a batch of queued notification messages.

    Args:
        event: SQS event with ``Records``
        context: Lambda context object

    Returns:
        Batch summary counts

    Raises:
        MessageProcessingError: If any record should be retried
    """
    records = event.get('Records') or []
    metrics.add_metric(name='NotificationBatchReceived', unit=MetricUnit.Count, value=1)

    summary = get_processor().handle_batch(records)
    return summary_to_dict(summary)

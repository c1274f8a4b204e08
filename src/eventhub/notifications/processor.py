"""
Email worker for the notification queue.

Records of one SQS delivery are processed concurrently and independently.
Each failure is classified as retry or dead-letter; if any record of the batch
failed with a retryable error the whole batch is reported as failed so SQS
redelivers it. Non-retryable failures are only logged, the queue's redrive
policy moves them to the dead-letter queue.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.notifications.email_service import EmailService
from eventhub.notifications.errors import (
    NETWORK_ERROR_CODES,
    EmailApiError,
    EmailConfigurationError,
    MessageProcessingError,
    MessageValidationError,
    TemplateDataError,
)
from eventhub.notifications.message_validation import require_valid_message

DEFAULT_RETRY_DELAY_SECONDS = 30
NETWORK_RETRY_DELAY_SECONDS = 60
DEFAULT_MAX_WORKERS = 10


@dataclass
class ProcessingDecision:
    action: Literal['retry', 'dlq']
    reason: str
    delay_seconds: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.action == 'retry'


@dataclass
class RecordOutcome:
    message_id: Optional[str]
    success: bool
    reference_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retryable: bool = False
    delay_seconds: Optional[int] = None


@dataclass
class BatchSummary:
    total: int
    succeeded: int
    retryable_failures: int
    non_retryable_failures: int
    outcomes: List[RecordOutcome]


def handle_processing_error(error: Exception) -> ProcessingDecision:
    """Decide whether a failed record should be retried or dead-lettered."""
    if isinstance(error, EmailConfigurationError):
        return ProcessingDecision('dlq', 'Configuration error - not retryable')
    if isinstance(error, (TemplateDataError, MessageValidationError)):
        return ProcessingDecision('dlq', 'Invalid message or template data - not retryable')
    if isinstance(error, EmailApiError):
        if error.retryable:
            return ProcessingDecision('retry', 'Retryable email API error', DEFAULT_RETRY_DELAY_SECONDS)
        return ProcessingDecision('dlq', 'Non-retryable email API error')
    if getattr(error, 'code', None) in NETWORK_ERROR_CODES:
        return ProcessingDecision('retry', 'Network error - retryable', NETWORK_RETRY_DELAY_SECONDS)
    return ProcessingDecision('retry', 'Unknown error - defaulting to retry', DEFAULT_RETRY_DELAY_SECONDS)


class EmailProcessor:
    """Processes queue records into sent emails."""

    def __init__(self, email_service: Optional[EmailService] = None, max_workers: int = DEFAULT_MAX_WORKERS):
        self._email_service = email_service
        self.max_workers = max_workers

    @property
    def email_service(self) -> EmailService:
        """Service built from the environment on first use."""
        if self._email_service is None:
            self._email_service = EmailService.from_env()
            logger.info('Email service initialized', extra={'from_email': self._email_service.config.from_email})
        return self._email_service

    @tracer.capture_method
    def process_record(self, record: Mapping[str, Any]) -> RecordOutcome:
        """Validate and send one record. Never raises."""
        message_id = record.get('messageId')
        start_time = time.time()

        try:
            message = require_valid_message(record)
            result = self.email_service.send_notification(message)
        except Exception as e:
            decision = handle_processing_error(e)
            logger.error('Message processing failed', extra={
                'message_id': message_id,
                'error': str(e),
                'error_type': type(e).__name__,
                'action': decision.action,
                'reason': decision.reason,
                'duration_ms': (time.time() - start_time) * 1000,
            })
            return RecordOutcome(
                message_id=message_id,
                success=False,
                error_code=getattr(e, 'code', None) or 'PROCESSING_ERROR',
                error_message=str(e),
                retryable=decision.retryable,
                delay_seconds=decision.delay_seconds,
            )

        logger.info('Message processed', extra={
            'message_id': message_id,
            'reference_id': result.reference_id,
            'template_type': result.template_type,
            'duration_ms': (time.time() - start_time) * 1000,
        })
        return RecordOutcome(message_id=message_id, success=True, reference_id=result.reference_id)

    def process_batch(self, records: Sequence[Mapping[str, Any]]) -> List[RecordOutcome]:
        """Process records concurrently; outcomes keep the record order."""
        outcomes: List[Optional[RecordOutcome]] = [None] * len(records)
        if not records:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(records))) as executor:
            future_to_index = {executor.submit(self.process_record, record): index for index, record in enumerate(records)}
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    outcomes[index] = future.result()
                except Exception as e:
                    logger.exception('Record processing crashed', extra={'record_index': index})
                    outcomes[index] = RecordOutcome(
                        message_id=records[index].get('messageId'),
                        success=False,
                        error_code='PROCESSING_CRASHED',
                        error_message=str(e),
                        retryable=True,
                        delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
                    )

        return outcomes

    @tracer.capture_method
    def handle_batch(self, records: Sequence[Mapping[str, Any]]) -> BatchSummary:
        """
        Process one SQS delivery.

        Raises:
            MessageProcessingError: If any record failed with a retryable error,
                so the whole batch is redelivered
        """
        logger.info('Processing notification batch', extra={'record_count': len(records)})
        outcomes = self.process_batch(records)

        retryable = [outcome for outcome in outcomes if not outcome.success and outcome.retryable]
        non_retryable = [outcome for outcome in outcomes if not outcome.success and not outcome.retryable]
        summary = BatchSummary(
            total=len(outcomes),
            succeeded=sum(1 for outcome in outcomes if outcome.success),
            retryable_failures=len(retryable),
            non_retryable_failures=len(non_retryable),
            outcomes=outcomes,
        )

        metrics.add_metric(name='NotificationsProcessed', unit=MetricUnit.Count, value=summary.succeeded)
        logger.info('Notification batch completed', extra={
            'total_records': summary.total,
            'success_count': summary.succeeded,
            'retryable_failures': summary.retryable_failures,
            'non_retryable_failures': summary.non_retryable_failures,
        })

        if non_retryable:
            logger.error('Some messages failed with non-retryable errors', extra={
                'failures': [{'message_id': outcome.message_id, 'error': outcome.error_message} for outcome in non_retryable],
            })

        if retryable:
            raise MessageProcessingError(
                f'{len(retryable)} messages failed with retryable errors',
                details={'messageIds': [outcome.message_id for outcome in retryable]},
            )

        return summary


def summary_to_dict(summary: BatchSummary) -> Dict[str, Any]:
    return {
        'total': summary.total,
        'succeeded': summary.succeeded,
        'retryableFailures': summary.retryable_failures,
        'nonRetryableFailures': summary.non_retryable_failures,
    }

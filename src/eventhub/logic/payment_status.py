"""Payment status of reservations."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError as PydanticValidationError

from eventhub.dal.event_repository import EventRepository
from eventhub.dal.registration_repository import ParticipantRepository, RegistrationRepository
from eventhub.handlers.utils.errors import ForbiddenError, NotFoundError, ValidationError
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.models.registration import Registration
from eventhub.notifications.message_builder import build_payment_confirmation_message
from eventhub.notifications.publisher import NotificationPublisher
from eventhub.security.rbac import is_admin
from eventhub.security.session import AuthUser
from eventhub.utils.ulid import is_valid_ulid

_PAYMENT_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})?$')


def validate_reservation_id(reservation_id: Any) -> None:
    if not is_valid_ulid(reservation_id):
        raise ValidationError('Reservation ID must be a valid ULID format', details={
            'field': 'reservationId',
            'value': reservation_id,
            'expected': 'ULID format (26 characters)',
        })


def validate_payment_date(payment_date: Any) -> None:
    """
    Raises:
        ValidationError: If payment_date is not an ISO 8601 timestamp
    """
    if not isinstance(payment_date, str):
        raise ValidationError('Payment date must be a string if provided')
    if not _PAYMENT_DATE_PATTERN.match(payment_date):
        raise ValidationError('Payment date must be in ISO 8601 format (e.g., 2024-01-01T12:00:00.000Z)')
    try:
        datetime.fromisoformat(payment_date.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError('Payment date must be a valid date')


class PaymentStatusService:
    """Reads and flips the payment status of reservations."""

    def __init__(
        self,
        registrations: RegistrationRepository,
        participants: ParticipantRepository,
        events: EventRepository,
        publisher: Optional[NotificationPublisher] = None,
    ):
        self.registrations = registrations
        self.participants = participants
        self.events = events
        self.publisher = publisher

    @tracer.capture_method
    def get_registration_by_reservation_id(self, reservation_id: str) -> Optional[Registration]:
        """
        Raises:
            ValidationError: If reservation_id is not a ULID
        """
        validate_reservation_id(reservation_id)
        return self.registrations.get(reservation_id)

    def get_payment_status(self, reservation_id: str) -> Optional[Dict[str, Any]]:
        registration = self.get_registration_by_reservation_id(reservation_id)
        if registration is None:
            return None
        return {'paymentStatus': registration.payment_status, 'paymentDate': registration.paid_at}

    def check_update_permission(self, registration: Registration, requester: AuthUser) -> None:
        """
        Admins may update any reservation, everyone else only those of events they created.

        Raises:
            NotFoundError: If the reservation's event no longer exists
            ForbiddenError: If the requester did not create the event
        """
        if is_admin(requester):
            logger.debug('Admin access granted for payment update', extra={'reservation_id': registration.reservation_id})
            return

        event = self.events.get(registration.event_id)
        if event is None:
            raise NotFoundError(f'Event with ID {registration.event_id} not found', details={'eventId': registration.event_id})
        if event.creator_id != requester.id:
            logger.warning('Payment update denied', extra={'event_id': event.event_id, 'user_id': requester.id})
            raise ForbiddenError(
                'Access denied. You can only update payment status for registrations in events you created.',
                details={'eventId': event.event_id},
            )

    @tracer.capture_method
    def update_payment_status(
        self,
        reservation_id: str,
        paid: bool,
        payment_date: Optional[str] = None,
        requester: Optional[AuthUser] = None,
    ) -> Dict[str, Any]:
        """
        Set the payment status of a reservation.

        Marking an unpaid reservation as paid queues a payment confirmation
        email for each of its participants.

        Args:
            reservation_id: Reservation ULID
            paid: New payment status
            payment_date: When the payment arrived, now when omitted
            requester: Caller whose access is checked, unchecked when None

        Raises:
            ValidationError: Malformed reservation id or payment date
            NotFoundError: Unknown reservation
            ForbiddenError: Requester may not manage the event
        """
        validate_reservation_id(reservation_id)
        if payment_date is not None:
            validate_payment_date(payment_date)

        registration = self.registrations.get(reservation_id)
        if registration is None:
            raise NotFoundError('Registration not found', details={'reservationId': reservation_id})

        if requester is not None:
            self.check_update_permission(registration, requester)

        if registration.payment_status == paid:
            logger.warning('Payment status unchanged', extra={
                'reservation_id': reservation_id,
                'current_status': registration.payment_status,
                'new_status': paid,
            })

        updated = self.registrations.update_payment_status(registration, paid, paid_at=payment_date)
        metrics.add_metric(name='PaymentStatusUpdated', unit=MetricUnit.Count, value=1)
        logger.info('Payment status updated', extra={
            'reservation_id': reservation_id,
            'payment_status': paid,
            'total_participants': updated.total_participants,
        })

        if paid and not registration.payment_status:
            self._publish_confirmations(updated)

        return {
            'reservationId': reservation_id,
            'paymentStatus': updated.payment_status,
            'paymentDate': updated.paid_at if paid else datetime.now(timezone.utc).isoformat(),
            'totalParticipants': updated.total_participants,
        }

    def mark_as_paid(self, reservation_id: str, payment_date: Optional[str] = None, requester: Optional[AuthUser] = None) -> Dict[str, Any]:
        return self.update_payment_status(reservation_id, True, payment_date, requester)

    def mark_as_unpaid(self, reservation_id: str, requester: Optional[AuthUser] = None) -> Dict[str, Any]:
        return self.update_payment_status(reservation_id, False, requester=requester)

    def _publish_confirmations(self, registration: Registration) -> None:
        if self.publisher is None:
            return

        event = self.events.get(registration.event_id)
        if event is None:
            logger.warning('Event missing, no payment confirmation queued', extra={'event_id': registration.event_id})
            return

        for participant in self.participants.list_by_reservation(registration.reservation_id):
            try:
                message = build_payment_confirmation_message(event, registration, participant)
            except PydanticValidationError as e:
                logger.warning('Payment confirmation could not be built', extra={
                    'reservation_id': registration.reservation_id,
                    'participant_id': participant.participant_id,
                    'error': str(e),
                })
                continue
            self.publisher.publish_safe(message)

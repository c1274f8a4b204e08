"""Registration and participant access patterns over the single table."""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from boto3.dynamodb.conditions import Attr, Key

from eventhub.dal.dynamodb_handler import DynamoDBHandler
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.models.participant import Participant, participant_key
from eventhub.models.registration import Registration, event_payment_status, reservation_key


class RegistrationRepository:
    """Reads and writes reservation items."""

    def __init__(self, db: DynamoDBHandler):
        self.db = db

    @tracer.capture_method
    def get(self, reservation_id: str) -> Optional[Registration]:
        item = self.db.get_item(reservation_key(reservation_id))
        return Registration.from_item(item) if item else None

    @tracer.capture_method
    def create(self, registration: Registration) -> Registration:
        item = self.db.put_item(registration.to_item(), condition_expression=Attr('pk').not_exists())
        return Registration.from_item(item)

    @tracer.capture_method
    def batch_get(self, reservation_ids: Iterable[str]) -> Dict[str, Registration]:
        """Load several reservations, keyed by reservation id. Missing ids are absent."""
        items = self.db.batch_get_items([reservation_key(reservation_id) for reservation_id in set(reservation_ids)])
        registrations = [Registration.from_item(item) for item in items]
        return {registration.reservation_id: registration for registration in registrations}

    @tracer.capture_method
    def list_by_event(self, event_id: str) -> List[Registration]:
        items = self.db.query_all(Key('eventRegistrationId').eq(event_id), index_name='EventRegistrationIndex')
        return [Registration.from_item(item) for item in items]

    def has_registrations(self, event_id: str) -> bool:
        page = self.db.query_items(Key('eventRegistrationId').eq(event_id), index_name='EventRegistrationIndex', limit=1)
        return bool(page['items'])

    @tracer.capture_method
    def list_by_payment_status(self, event_id: str, paid: bool) -> List[Registration]:
        items = self.db.query_all(
            Key('eventPaymentStatus').eq(event_payment_status(event_id, paid)),
            index_name='PaymentStatusIndex',
        )
        return [Registration.from_item(item) for item in items]

    @tracer.capture_method
    def update_payment_status(self, registration: Registration, paid: bool, paid_at: Optional[str] = None) -> Registration:
        """
        Flip the payment status and keep the payment index attributes in sync.

        ``paid_at`` defaults to now when marking as paid.

        Raises:
            ConditionalCheckFailedError: If the reservation no longer exists
        """
        values = {
            ':paid': paid,
            ':eventPaymentStatus': event_payment_status(registration.event_id, paid),
        }
        if paid:
            paid_at = paid_at or datetime.now(timezone.utc).isoformat()
            values[':paidAt'] = paid_at
            values[':paymentDate'] = paid_at
            expression = (
                'SET paymentStatus = :paid, eventPaymentStatus = :eventPaymentStatus, '
                'paymentDate = :paymentDate, paidAt = :paidAt'
            )
        else:
            values[':paymentDate'] = registration.created_at
            expression = (
                'SET paymentStatus = :paid, eventPaymentStatus = :eventPaymentStatus, '
                'paymentDate = :paymentDate REMOVE paidAt'
            )

        updated = self.db.update_item(
            key=reservation_key(registration.reservation_id),
            update_expression=expression,
            expression_attribute_values=values,
            condition_expression=Attr('pk').exists(),
        )
        logger.info('Payment status stored', extra={
            'reservation_id': registration.reservation_id,
            'payment_status': paid,
        })
        return Registration.from_item(updated)

    @tracer.capture_method
    def delete(self, reservation_id: str) -> bool:
        return self.db.delete_item(reservation_key(reservation_id))


class ParticipantRepository:
    """Reads and deletes participant items."""

    def __init__(self, db: DynamoDBHandler):
        self.db = db

    @tracer.capture_method
    def list_by_event(self, event_id: str) -> List[Participant]:
        items = self.db.query_all(Key('eventParticipantId').eq(event_id), index_name='EventParticipantIndex')
        return [Participant.from_item(item) for item in items]

    @tracer.capture_method
    def list_by_reservation(self, reservation_id: str) -> List[Participant]:
        items = self.db.query_all(
            Key('reservationParticipantId').eq(reservation_id),
            index_name='ReservationParticipantIndex',
        )
        return [Participant.from_item(item) for item in items]

    @tracer.capture_method
    def find_by_event_and_email(self, event_id: str, email: str) -> List[Participant]:
        key_condition = Key('eventParticipantId').eq(event_id) & Key('participantEmail').eq(email.strip().lower())
        items = self.db.query_all(key_condition, index_name='EventParticipantIndex')
        return [Participant.from_item(item) for item in items]

    def find_by_event_and_emails(self, event_id: str, emails: Iterable[str]) -> List[Participant]:
        found: List[Participant] = []
        for email in dict.fromkeys(emails):
            found.extend(self.find_by_event_and_email(event_id, email))
        return found

    @tracer.capture_method
    def delete(self, participant_id: str) -> bool:
        return self.db.delete_item(participant_key(participant_id))

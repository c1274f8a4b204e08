"""
Atomic registration writes.

A registration is committed as one DynamoDB transaction containing the
reservation, every participant, one email lock per participant and the
capacity increment on the event. DynamoDB conditions can not do arithmetic,
so the increment is guarded with ``currentParticipants <= max - n`` together
with ``maxParticipants = max`` (the max read when the threshold was computed).

Email lock items (``pk=EVENT#<id>``, ``sk=EMAIL#<email>``) make the per-event
email uniqueness hold under concurrent registrations; they carry no index
attributes and are removed together with their participant.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from eventhub.dal.dynamodb_handler import MAX_TRANSACTION_ITEMS, DynamoDBHandler, TransactionConflictError
from eventhub.handlers.utils.errors import BadRequestError, ConflictError
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.models.event import EVENT_PREFIX, Event, event_key
from eventhub.models.participant import Participant, participant_key
from eventhub.models.registration import Registration, reservation_key

EMAIL_LOCK_PREFIX = 'EMAIL#'
EMAIL_LOCK_ENTITY_TYPE = 'participantEmail'


def email_lock_key(event_id: str, email: str) -> Dict[str, str]:
    return {'pk': f'{EVENT_PREFIX}{event_id}', 'sk': f'{EMAIL_LOCK_PREFIX}{email.strip().lower()}'}


def max_participants_per_transaction() -> int:
    # reservation + event update + (participant + email lock) per person
    return (MAX_TRANSACTION_ITEMS - 2) // 2


class RegistrationUnitOfWork:
    """Commits and removes registrations atomically."""

    def __init__(self, db: DynamoDBHandler):
        self.db = db

    @tracer.capture_method
    def commit_registration(
        self,
        event: Event,
        registration: Registration,
        participants: Sequence[Participant],
    ) -> None:
        """
        Write the reservation, its participants and the capacity increment together.

        Nothing is written when any condition fails.

        Raises:
            ConflictError: If capacity ran out, an email got registered, or the
                event changed while the request was being processed
        """
        count = len(participants)
        if count > max_participants_per_transaction():
            raise BadRequestError(
                f'A single registration can include at most {max_participants_per_transaction()} participants',
                details={'participantCount': count},
            )

        now = datetime.now(timezone.utc).isoformat()
        transact_items: List[Dict[str, Any]] = []

        reservation_item = registration.to_item()
        reservation_item['updatedAt'] = now
        transact_items.append({'Put': {
            'Item': reservation_item,
            'ConditionExpression': 'attribute_not_exists(pk)',
        }})

        for participant in participants:
            participant_item = participant.to_item()
            participant_item['updatedAt'] = now
            transact_items.append({'Put': {
                'Item': participant_item,
                'ConditionExpression': 'attribute_not_exists(pk)',
            }})

        for participant in participants:
            transact_items.append({'Put': {
                'Item': {
                    **email_lock_key(event.event_id, participant.email),
                    'entityType': EMAIL_LOCK_ENTITY_TYPE,
                    'participantId': participant.participant_id,
                    'reservationId': registration.reservation_id,
                    'createdAt': now,
                },
                'ConditionExpression': 'attribute_not_exists(pk)',
            }})

        transact_items.append({'Update': {
            'Key': event_key(event.event_id),
            'UpdateExpression': 'SET currentParticipants = currentParticipants + :count, updatedAt = :now',
            'ConditionExpression': (
                'attribute_exists(pk) AND isEnabled = :enabled '
                'AND currentParticipants <= :threshold AND maxParticipants = :max'
            ),
            'ExpressionAttributeValues': {
                ':count': count,
                ':threshold': event.max_participants - count,
                ':max': event.max_participants,
                ':enabled': True,
                ':now': now,
            },
        }})

        try:
            self.db.transact_write(transact_items)
        except TransactionConflictError as error:
            raise self._registration_conflict(error, event, participants)

        logger.info('Registration committed', extra={
            'reservation_id': registration.reservation_id,
            'event_id': event.event_id,
            'participant_count': count,
        })

    def _registration_conflict(
        self,
        error: TransactionConflictError,
        event: Event,
        participants: Sequence[Participant],
    ) -> ConflictError:
        count = len(participants)
        event_index = 1 + 2 * count
        failed = set(error.failed_conditions)

        locked_emails = sorted({
            participants[index - 1 - count].email.lower()
            for index in failed
            if 1 + count <= index < event_index
        })
        if locked_emails:
            return ConflictError(
                f'The following emails are already registered for this event: {", ".join(locked_emails)}',
                details={'conflictingEmails': locked_emails},
            )

        if event_index in failed or not failed:
            latest = self.db.get_item(event_key(event.event_id), consistent_read=True)
            if latest is not None:
                latest_event = Event.from_item(latest)
                if latest_event.available_spots < count:
                    return ConflictError(
                        f'Event is at maximum capacity. Available spots: {max(latest_event.available_spots, 0)}, '
                        f'requested: {count}',
                        details={
                            'maxParticipants': latest_event.max_participants,
                            'currentParticipants': latest_event.current_participants,
                            'requestedParticipants': count,
                        },
                    )

        logger.warning('Registration transaction cancelled', extra={
            'event_id': event.event_id,
            'cancellation_reasons': [reason.get('Code') for reason in error.reasons],
        })
        return ConflictError(
            'Registration could not be completed because the event changed. Please try again.',
            details={'eventId': event.event_id},
        )

    @tracer.capture_method
    def delete_registration(self, registration: Registration, participants: Sequence[Participant]) -> None:
        """
        Remove a reservation with its participants and give the spots back.

        Raises:
            ConflictError: If the reservation was already removed or the
                event count no longer covers it
        """
        count = len(participants)
        if count > max_participants_per_transaction():
            raise BadRequestError('Registration is too large to delete in one operation')

        transact_items: List[Dict[str, Any]] = [{'Delete': {
            'Key': reservation_key(registration.reservation_id),
            'ConditionExpression': 'attribute_exists(pk)',
        }}]
        for participant in participants:
            transact_items.append({'Delete': {'Key': participant_key(participant.participant_id)}})
            transact_items.append({'Delete': {'Key': email_lock_key(registration.event_id, participant.email)}})

        if count:
            transact_items.append({'Update': {
                'Key': event_key(registration.event_id),
                'UpdateExpression': 'SET currentParticipants = currentParticipants - :count, updatedAt = :now',
                'ConditionExpression': 'attribute_exists(pk) AND currentParticipants >= :count',
                'ExpressionAttributeValues': {
                    ':count': count,
                    ':now': datetime.now(timezone.utc).isoformat(),
                },
            }})

        try:
            self.db.transact_write(transact_items)
        except TransactionConflictError:
            raise ConflictError(
                'Registration could not be deleted because it changed. Please try again.',
                details={'reservationId': registration.reservation_id},
            )

        logger.info('Registration deleted', extra={
            'reservation_id': registration.reservation_id,
            'event_id': registration.event_id,
            'participant_count': count,
        })

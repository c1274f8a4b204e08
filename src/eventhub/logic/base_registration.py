"""
Shared steps of the individual and team registration flows.

A registration runs strictly in order:

    VALIDATE_INPUT -> LOAD_EVENT -> CHECK_REGISTRATION_TYPE -> VALIDATE_EMAILS
        -> VALIDATE_CAPACITY -> CREATE -> DONE

The first failing step raises and nothing is written. CREATE is a single
DynamoDB transaction (reservation, participants, capacity increment), so the
capacity and email checks hold even when two registrations race.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError as PydanticValidationError

from eventhub.dal.event_repository import EventRepository
from eventhub.dal.registration_repository import ParticipantRepository
from eventhub.dal.unit_of_work import RegistrationUnitOfWork
from eventhub.handlers.utils.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.logic.capacity_validation import CapacityValidationService
from eventhub.logic.email_validation import EmailValidationService, normalize_email
from eventhub.models.event import Event
from eventhub.models.participant import Participant
from eventhub.models.registration import Registration, RegistrationType
from eventhub.notifications.message_builder import build_registration_notification_message
from eventhub.notifications.publisher import NotificationPublisher
from eventhub.utils.ulid import generate_participant_id, generate_reservation_id, is_valid_ulid

REQUIRED_PARTICIPANT_FIELDS = ('email', 'firstName', 'lastName', 'waiver', 'newsletter')

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# Request fields never copied onto a stored participant
_SERVER_ASSIGNED_FIELDS = {
    'participantId', 'reservationId', 'eventId', 'createdAt', 'updatedAt',
    'participant_id', 'reservation_id', 'event_id', 'created_at', 'updated_at',
}


class RegistrationStep(str, Enum):
    VALIDATE_INPUT = 'VALIDATE_INPUT'
    LOAD_EVENT = 'LOAD_EVENT'
    CHECK_REGISTRATION_TYPE = 'CHECK_REGISTRATION_TYPE'
    VALIDATE_EMAILS = 'VALIDATE_EMAILS'
    VALIDATE_CAPACITY = 'VALIDATE_CAPACITY'
    CREATE = 'CREATE'
    DONE = 'DONE'


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def _is_blank(value: Any) -> bool:
    return value is None or value == ''


def validate_event_id_format(event_id: Any) -> None:
    """
    Raises:
        BadRequestError: If event_id is not a ULID
    """
    if not is_valid_ulid(event_id):
        raise BadRequestError('Invalid event ID format. Must be a valid ULID.', details={'eventId': event_id})


def missing_required_fields(data: Mapping[str, Any]) -> List[str]:
    return [name for name in REQUIRED_PARTICIPANT_FIELDS if _is_blank(data.get(name))]


def validate_participant_fields(data: Mapping[str, Any], index: Optional[int] = None) -> List[str]:
    """
    Collect every problem with one participant's data.

    Messages are prefixed with ``Participant N: `` (1-based) when ``index`` is given.
    """
    prefix = f'Participant {index + 1}: ' if index is not None else ''
    if not isinstance(data, Mapping):
        return [f'{prefix}Participant data must be an object']

    errors = [f'{prefix}Missing required field: {name}' for name in missing_required_fields(data)]

    email = data.get('email')
    if not _is_blank(email) and not is_valid_email(email):
        errors.append(f'{prefix}Invalid email format')

    waiver = data.get('waiver')
    if waiver is not None and waiver != '' and waiver is not True:
        errors.append(f'{prefix}Waiver must be accepted to complete registration')

    emergency_email = data.get('emergencyEmail')
    if emergency_email and not is_valid_email(emergency_email):
        errors.append(f'{prefix}Invalid emergency contact email format')

    return errors


def registration_result(registration: Registration, participants: Sequence[Participant]) -> Dict[str, Any]:
    """Response body of a created registration."""
    return {
        'reservationId': registration.reservation_id,
        'eventId': registration.event_id,
        'registrationType': registration.registration_type,
        'paymentStatus': registration.payment_status,
        'registrationFee': registration.registration_fee,
        'totalParticipants': registration.total_participants,
        'participants': [
            {
                'participantId': participant.participant_id,
                'email': participant.email,
                'firstName': participant.first_name,
                'lastName': participant.last_name,
                'role': participant.role,
            }
            for participant in participants
        ],
        'createdAt': registration.created_at,
    }


class BaseRegistrationService:
    """Steps shared by the individual and team registration services."""

    registration_type: RegistrationType = 'individual'

    def __init__(
        self,
        events: EventRepository,
        participants: ParticipantRepository,
        unit_of_work: RegistrationUnitOfWork,
        publisher: Optional[NotificationPublisher] = None,
        bank_account: str = 'TBD',
    ):
        self.events = events
        self.unit_of_work = unit_of_work
        self.publisher = publisher
        self.bank_account = bank_account
        self.capacity = CapacityValidationService(events)
        self.emails = EmailValidationService(participants)

    def _step(self, step: RegistrationStep, event_id: str, **extra) -> None:
        logger.debug('Registration step', extra={
            'step': step.value,
            'event_id': event_id,
            'registration_type': self.registration_type,
            **extra,
        })

    @tracer.capture_method
    def validate_event_availability(self, event_id: str, registration_type: Optional[RegistrationType] = None) -> Event:
        """
        Load an event that accepts registrations of ``registration_type``.

        Raises:
            NotFoundError: If the event does not exist
            ConflictError: If the event is disabled, past its deadline, or
                configured for the other registration type
        """
        event = self.events.get(event_id)
        if event is None:
            raise NotFoundError(f'Event with ID {event_id} not found', details={'eventId': event_id})

        if not event.is_enabled:
            raise ConflictError('Event is currently disabled and not accepting registrations', details={'eventId': event_id})

        now = datetime.now(timezone.utc)
        if event.registration_deadline_passed(now):
            raise ConflictError('Registration deadline has passed for this event', details={
                'eventId': event_id,
                'registrationDeadline': event.registration_deadline,
                'currentTime': now.isoformat(),
            })

        self._step(RegistrationStep.CHECK_REGISTRATION_TYPE, event_id)
        if registration_type and event.registration_type != registration_type:
            raise ConflictError(
                f'Registration type mismatch. This event is configured for {event.registration_type} registration only.',
                details={
                    'eventId': event_id,
                    'eventRegistrationType': event.registration_type,
                    'attemptedRegistrationType': registration_type,
                },
            )

        return event

    def build_registration(self, event: Event, participant_count: int) -> Registration:
        return Registration(
            reservation_id=generate_reservation_id(),
            event_id=event.event_id,
            registration_type=self.registration_type,
            payment_status=False,
            total_participants=participant_count,
            registration_fee=event.registration_fee * participant_count,
        )

    def build_participants(self, registration: Registration, participants_data: Sequence[Mapping[str, Any]]) -> List[Participant]:
        """
        Raises:
            ValidationError: If an optional field has the wrong type
        """
        participants = []
        for index, data in enumerate(participants_data):
            fields = {name: value for name, value in data.items() if name not in _SERVER_ASSIGNED_FIELDS}
            fields['email'] = normalize_email(fields['email'])
            try:
                participant = Participant.model_validate({
                    **fields,
                    'participantId': generate_participant_id(),
                    'reservationId': registration.reservation_id,
                    'eventId': registration.event_id,
                    'createdAt': registration.created_at,
                })
            except PydanticValidationError as e:
                field_errors = [
                    {'field': '.'.join(str(part) for part in error['loc']), 'message': error['msg']}
                    for error in e.errors()
                ]
                raise ValidationError(
                    f'Participant {index + 1}: invalid participant data',
                    details={'index': index, 'fieldErrors': field_errors},
                )
            participants.append(participant)
        return participants

    @tracer.capture_method
    def commit(self, event: Event, participants_data: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        """Write the registration atomically, then queue the confirmation email."""
        self._step(RegistrationStep.CREATE, event.event_id, participant_count=len(participants_data))
        registration = self.build_registration(event, len(participants_data))
        participants = self.build_participants(registration, participants_data)

        self.unit_of_work.commit_registration(event, registration, participants)

        metrics.add_metric(name='RegistrationCreated', unit=MetricUnit.Count, value=1)
        metrics.add_metric(name='ParticipantsRegistered', unit=MetricUnit.Count, value=len(participants))
        tracer.put_annotation('reservation_id', registration.reservation_id)
        logger.info('Registration created', extra={
            'reservation_id': registration.reservation_id,
            'event_id': event.event_id,
            'registration_type': self.registration_type,
            'participant_count': len(participants),
            'registration_fee': registration.registration_fee,
        })

        self._publish_registration(event, registration, participants)
        self._step(RegistrationStep.DONE, event.event_id, reservation_id=registration.reservation_id)
        return registration_result(registration, participants)

    def _publish_registration(self, event: Event, registration: Registration, participants: Sequence[Participant]) -> None:
        if self.publisher is None:
            logger.debug('Notifications disabled, no registration email queued')
            return

        try:
            message = build_registration_notification_message(event, registration, participants, self.bank_account)
        except PydanticValidationError as e:
            logger.warning('Registration notification could not be built', extra={
                'reservation_id': registration.reservation_id,
                'error': str(e),
            })
            return

        self.publisher.publish_safe(message)

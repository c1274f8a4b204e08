"""Reservation lookup and removal for event owners and admins."""

from typing import Any, Dict

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.dal.event_repository import EventRepository
from eventhub.dal.registration_repository import ParticipantRepository, RegistrationRepository
from eventhub.dal.unit_of_work import RegistrationUnitOfWork
from eventhub.handlers.utils.errors import BadRequestError, ForbiddenError, NotFoundError
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.models.event import Event
from eventhub.models.registration import Registration
from eventhub.security.rbac import is_admin
from eventhub.security.session import AuthUser
from eventhub.utils.ulid import is_valid_ulid


class RegistrationAdminService:
    """Reads and deletes whole reservations."""

    def __init__(
        self,
        events: EventRepository,
        registrations: RegistrationRepository,
        participants: ParticipantRepository,
        unit_of_work: RegistrationUnitOfWork,
    ):
        self.events = events
        self.registrations = registrations
        self.participants = participants
        self.unit_of_work = unit_of_work

    def _load(self, reservation_id: str, requester: AuthUser):
        if not is_valid_ulid(reservation_id):
            raise BadRequestError(
                'Invalid reservationId format. Must be a valid ULID.',
                details={'reservationId': reservation_id},
            )

        registration = self.registrations.get(reservation_id)
        if registration is None:
            raise NotFoundError('Registration not found', details={'reservationId': reservation_id})

        event = self.events.get(registration.event_id)
        if not is_admin(requester) and (event is None or event.creator_id != requester.id):
            logger.warning('Reservation access denied', extra={'reservation_id': reservation_id, 'user_id': requester.id})
            raise ForbiddenError(
                'Access denied. You can only manage registrations for events you created.',
                details={'reservationId': reservation_id, 'eventId': registration.event_id},
            )
        return registration, event

    @tracer.capture_method
    def get_registration_with_participants(self, reservation_id: str, requester: AuthUser) -> Dict[str, Any]:
        """
        A reservation with its participants and a short event summary.

        Raises:
            BadRequestError: Malformed reservation id
            NotFoundError: Unknown reservation
            ForbiddenError: Requester did not create the event and is not an admin
        """
        registration, event = self._load(reservation_id, requester)
        participants = sorted(
            self.participants.list_by_reservation(reservation_id),
            key=lambda participant: participant.created_at,
        )
        return _registration_view(registration, event, [participant.to_response() for participant in participants])

    @tracer.capture_method
    def delete_registration(self, reservation_id: str, requester: AuthUser) -> Dict[str, Any]:
        """
        Delete a reservation and its participants and release their spots.

        Raises:
            BadRequestError: Malformed reservation id
            NotFoundError: Unknown reservation
            ForbiddenError: Requester did not create the event and is not an admin
            ConflictError: The reservation changed while being deleted
        """
        registration, _ = self._load(reservation_id, requester)
        participants = self.participants.list_by_reservation(reservation_id)

        self.unit_of_work.delete_registration(registration, participants)

        metrics.add_metric(name='RegistrationDeleted', unit=MetricUnit.Count, value=1)
        logger.info('Registration deleted by request', extra={
            'reservation_id': reservation_id,
            'event_id': registration.event_id,
            'deleted_participant_count': len(participants),
            'user_id': requester.id,
        })
        return {
            'reservationId': reservation_id,
            'eventId': registration.event_id,
            'deletedParticipantCount': len(participants),
            'message': f'Registration {reservation_id} and {len(participants)} participant(s) deleted successfully',
        }


def _registration_view(registration: Registration, event: Event, participants) -> Dict[str, Any]:
    view = registration.to_response()
    view['participants'] = participants
    if event is not None:
        view['event'] = {'eventId': event.event_id, 'title': event.title, 'creatorId': event.creator_id}
    return view

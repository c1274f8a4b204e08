"""Participant listings for event organizers."""

from typing import Any, Dict, List, Mapping, Optional

from eventhub.dal.event_repository import EventRepository
from eventhub.dal.registration_repository import ParticipantRepository, RegistrationRepository
from eventhub.handlers.utils.errors import ForbiddenError, NotFoundError
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.logic.base_registration import validate_event_id_format
from eventhub.models.participant import Participant
from eventhub.models.registration import Registration
from eventhub.security.rbac import is_admin
from eventhub.security.session import AuthUser


def _empty_summary() -> Dict[str, int]:
    return {
        'totalRegistrations': 0,
        'paidRegistrations': 0,
        'unpaidRegistrations': 0,
        'individualRegistrations': 0,
        'teamRegistrations': 0,
    }


def combine_participant_with_registration(participant: Participant, registration: Optional[Registration] = None) -> Dict[str, Any]:
    """Participant fields plus the registration fields an organizer needs."""
    combined = participant.to_response()
    if registration is None:
        logger.warning('No registration found for participant', extra={
            'participant_id': participant.participant_id,
            'reservation_id': participant.reservation_id,
        })
        combined.update({
            'registrationType': 'individual',
            'paymentStatus': False,
            'totalParticipants': 1,
            'registrationFee': 0,
            'registrationCreatedAt': participant.created_at,
        })
        return combined

    combined.update({
        'registrationType': registration.registration_type,
        'paymentStatus': registration.payment_status,
        'totalParticipants': registration.total_participants,
        'registrationFee': registration.registration_fee,
        'registrationCreatedAt': registration.created_at,
    })
    return combined


def registration_summary(participants: List[Dict[str, Any]]) -> Dict[str, int]:
    """Counts per reservation; each reservation is counted once."""
    reservations: Dict[str, Dict[str, Any]] = {}
    for participant in participants:
        reservations.setdefault(participant['reservationId'], participant)

    summary = _empty_summary()
    for reservation in reservations.values():
        summary['totalRegistrations'] += 1
        summary['paidRegistrations' if reservation['paymentStatus'] else 'unpaidRegistrations'] += 1
        summary['teamRegistrations' if reservation['registrationType'] == 'team' else 'individualRegistrations'] += 1
    return summary


class ParticipantQueryService:
    """Lists the participants of one event with their registration data."""

    def __init__(self, events: EventRepository, registrations: RegistrationRepository, participants: ParticipantRepository):
        self.events = events
        self.registrations = registrations
        self.participants = participants

    def validate_event_access(self, event_id: str, requester: AuthUser) -> None:
        """
        Raises:
            NotFoundError: If the event does not exist
            ForbiddenError: If the requester neither created the event nor is an admin
        """
        event = self.events.get(event_id)
        if event is None:
            raise NotFoundError(f'Event with ID {event_id} not found', details={'eventId': event_id})
        if event.creator_id != requester.id and not is_admin(requester):
            logger.warning('Participant listing denied', extra={'event_id': event_id, 'user_id': requester.id})
            raise ForbiddenError(
                'Access denied. You can only view participants for events you created.',
                details={'eventId': event_id},
            )

    @tracer.capture_method
    def get_participants_by_event(self, event_id: str, requester: AuthUser) -> Dict[str, Any]:
        """
        Participants of an event, sorted by reservation and then creation time.

        Raises:
            BadRequestError: Malformed event id
            NotFoundError: Unknown event
            ForbiddenError: Requester may not see the participants
        """
        validate_event_id_format(event_id)
        self.validate_event_access(event_id, requester)

        participants = self.participants.list_by_event(event_id)
        if not participants:
            return {'participants': [], 'totalCount': 0, 'registrationSummary': _empty_summary()}

        registrations: Mapping[str, Registration] = self.registrations.batch_get(
            participant.reservation_id for participant in participants
        )
        combined = [
            combine_participant_with_registration(participant, registrations.get(participant.reservation_id))
            for participant in participants
        ]
        combined.sort(key=lambda participant: (participant['reservationId'], participant['createdAt']))

        logger.info('Participants listed', extra={
            'event_id': event_id,
            'participant_count': len(combined),
            'registration_count': len(registrations),
        })
        return {
            'participants': combined,
            'totalCount': len(combined),
            'registrationSummary': registration_summary(combined),
        }

    def get_participants_grouped_by_reservation(self, event_id: str, requester: AuthUser) -> Dict[str, List[Dict[str, Any]]]:
        result = self.get_participants_by_event(event_id, requester)
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for participant in result['participants']:
            grouped.setdefault(participant['reservationId'], []).append(participant)
        return grouped

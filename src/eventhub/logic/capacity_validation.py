"""
Event capacity checks.

Capacity is ``maxParticipants - currentParticipants``. These checks run
before a registration is written; the registration transaction repeats the
capacity condition, so a concurrent registration can still be rejected there.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from eventhub.dal.event_repository import EventRepository
from eventhub.handlers.utils.errors import ConflictError, NotFoundError
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.models.event import Event


@dataclass
class CapacityValidationResult:
    is_valid: bool
    max_participants: int
    current_participants: int
    requested_participants: int
    available_spots: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'maxParticipants': self.max_participants,
            'currentParticipants': self.current_participants,
            'requestedParticipants': self.requested_participants,
            'availableSpots': self.available_spots,
        }


def check_capacity(event: Event, requested_participants: int) -> CapacityValidationResult:
    """
    Compare the free spots of an event with a requested participant count.

    Raises:
        ValueError: If requested_participants is not positive
    """
    if requested_participants <= 0:
        raise ValueError('Requested participants must be greater than 0')

    available_spots = event.max_participants - event.current_participants
    return CapacityValidationResult(
        is_valid=available_spots >= requested_participants,
        max_participants=event.max_participants,
        current_participants=event.current_participants,
        requested_participants=requested_participants,
        available_spots=available_spots,
    )


class CapacityValidationService:
    """Capacity rules for individual and team registrations."""

    def __init__(self, events: EventRepository):
        self.events = events

    def _load_event(self, event_id: str, event: Optional[Event]) -> Event:
        if event is not None:
            return event
        loaded = self.events.get(event_id)
        if loaded is None:
            raise NotFoundError(f'Event with ID {event_id} not found', details={'eventId': event_id})
        return loaded

    @tracer.capture_method
    def validate_capacity(self, event_id: str, requested_participants: int, event: Optional[Event] = None) -> CapacityValidationResult:
        """
        Check whether an event can take ``requested_participants`` more people.

        Args:
            event_id: Event to check
            requested_participants: Number of spots wanted, must be positive
            event: Already loaded event, skips the read when given

        Raises:
            ValueError: If requested_participants is not positive
            NotFoundError: If the event does not exist
        """
        if requested_participants <= 0:
            raise ValueError('Requested participants must be greater than 0')
        return check_capacity(self._load_event(event_id, event), requested_participants)

    @tracer.capture_method
    def validate_individual_registration(self, event_id: str, event: Optional[Event] = None) -> None:
        result = self.validate_capacity(event_id, 1, event)
        if not result.is_valid:
            logger.warning('Event is full', extra={'event_id': event_id, **asdict(result)})
            raise ConflictError(
                f'Event is at maximum capacity. Available spots: {result.available_spots}, '
                f'requested: {result.requested_participants}',
                details={'eventId': event_id, **result.to_dict()},
            )

    @tracer.capture_method
    def validate_team_registration(self, event_id: str, team_size: int, event: Optional[Event] = None) -> None:
        """
        Check the exact team size first, then the free capacity.

        Raises:
            ConflictError: If the team size differs from the event's required
                participants, or the event lacks the spots
        """
        event = self._load_event(event_id, event)

        if event.required_participants and team_size != event.required_participants:
            raise ConflictError(
                f'Team size must be exactly {event.required_participants} participants. Received: {team_size}',
                details={
                    'eventId': event_id,
                    'requiredParticipants': event.required_participants,
                    'providedParticipants': team_size,
                },
            )

        result = self.validate_capacity(event_id, team_size, event)
        if not result.is_valid:
            logger.warning('Event lacks capacity for team', extra={'event_id': event_id, **asdict(result)})
            raise ConflictError(
                f'Event does not have sufficient capacity for team registration. '
                f'Available spots: {result.available_spots}, team size: {result.requested_participants}',
                details={'eventId': event_id, 'teamSize': team_size, **result.to_dict()},
            )

    def is_event_available_for_registration(self, event_id: str, now: Optional[datetime] = None) -> bool:
        """True when the event is enabled and its registration deadline has not passed."""
        event = self._load_event(event_id, None)
        return event.is_enabled and not event.registration_deadline_passed(now)

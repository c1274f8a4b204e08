"""Registration of a whole team in one reservation."""

from typing import Any, Dict, List, Mapping, Sequence

from eventhub.handlers.utils.errors import ValidationError
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.logic.base_registration import (
    BaseRegistrationService,
    RegistrationStep,
    validate_event_id_format,
    validate_participant_fields,
)
from eventhub.models.event import Event


class TeamRegistrationService(BaseRegistrationService):
    """Registers every member of a team for a team event."""

    registration_type = 'team'

    def _validate_input(self, event_id: str, participants: Sequence[Mapping[str, Any]]) -> None:
        self._step(RegistrationStep.VALIDATE_INPUT, event_id)
        validate_event_id_format(event_id)

        if not isinstance(participants, (list, tuple)) or not participants:
            raise ValidationError(
                'Team registration must include at least one participant',
                details={'participantCount': 0},
            )

        participant_errors: List[Dict[str, Any]] = []
        for index, participant in enumerate(participants):
            errors = validate_participant_fields(participant, index)
            if errors:
                participant_errors.append({'index': index, 'errors': errors})

        if participant_errors:
            first = participant_errors[0]
            raise ValidationError(
                f'Participant validation failed: {first["errors"][0]}',
                details={'participantErrors': participant_errors},
            )

    def _run_checks(self, event_id: str, participants: Sequence[Mapping[str, Any]]) -> Event:
        self._validate_input(event_id, participants)
        team_size = len(participants)

        self._step(RegistrationStep.LOAD_EVENT, event_id, team_size=team_size)
        event = self.validate_event_availability(event_id, self.registration_type)

        self._step(RegistrationStep.VALIDATE_EMAILS, event_id, team_size=team_size)
        self.emails.validate_multiple_emails(event_id, [participant['email'] for participant in participants])

        self._step(
            RegistrationStep.VALIDATE_CAPACITY, event_id,
            team_size=team_size,
            current_participants=event.current_participants,
            max_participants=event.max_participants,
        )
        self.capacity.validate_team_registration(event_id, team_size, event)
        return event

    @tracer.capture_method
    def register_team(self, event_id: str, participants: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Register a team; the first participant is the team captain.

        Raises:
            BadRequestError: Malformed event id
            ValidationError: Empty team or invalid participant fields
            NotFoundError: Unknown event
            ConflictError: Event closed, wrong type, wrong team size, duplicate
                or taken emails, or not enough spots
        """
        logger.debug('Starting team registration', extra={'event_id': event_id, 'team_size': len(participants or [])})
        event = self._run_checks(event_id, participants)
        return self.commit(event, participants)

    @tracer.capture_method
    def validate_team_registration(self, event_id: str, participants: Sequence[Mapping[str, Any]]) -> bool:
        """Run every check of ``register_team`` without writing anything."""
        self._run_checks(event_id, participants)
        return True

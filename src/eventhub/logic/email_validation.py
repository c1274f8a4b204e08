"""
Participant email uniqueness per event.

Emails compare case-insensitively. A submission is rejected when it repeats
an email internally or uses one that is already registered for the event.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from eventhub.dal.registration_repository import ParticipantRepository
from eventhub.handlers.utils.errors import ConflictError
from eventhub.handlers.utils.observability import logger, tracer


@dataclass
class EmailValidationResult:
    is_valid: bool
    duplicate_emails: List[str] = field(default_factory=list)
    # Only set when the duplicates come from stored participants
    conflicting_participants: Optional[List[Dict[str, Any]]] = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_internal_duplicates(emails: Sequence[str]) -> List[str]:
    """Every normalized occurrence of an email that appears more than once, in submission order."""
    normalized = [normalize_email(email) for email in emails]
    counts: Dict[str, int] = {}
    for email in normalized:
        counts[email] = counts.get(email, 0) + 1
    return [email for email in normalized if counts[email] > 1]


class EmailValidationService:
    """Checks candidate emails against each other and against stored participants."""

    def __init__(self, participants: ParticipantRepository):
        self.participants = participants

    @tracer.capture_method
    def check_single_email(self, event_id: str, email: str) -> EmailValidationResult:
        normalized = normalize_email(email)
        existing = self.participants.find_by_event_and_email(event_id, normalized)
        if not existing:
            return EmailValidationResult(is_valid=True)

        return EmailValidationResult(
            is_valid=False,
            duplicate_emails=[normalized],
            conflicting_participants=[
                {'email': participant.email, 'participantId': participant.participant_id, 'reservationId': participant.reservation_id}
                for participant in existing
            ],
        )

    @tracer.capture_method
    def check_multiple_emails(self, event_id: str, emails: Sequence[str]) -> EmailValidationResult:
        if not emails:
            return EmailValidationResult(is_valid=True)

        internal_duplicates = find_internal_duplicates(emails)
        if internal_duplicates:
            return EmailValidationResult(is_valid=False, duplicate_emails=internal_duplicates)

        duplicate_emails: List[str] = []
        conflicting: List[Dict[str, Any]] = []
        for email in emails:
            result = self.check_single_email(event_id, email)
            if not result.is_valid:
                duplicate_emails.extend(result.duplicate_emails)
                conflicting.extend(result.conflicting_participants or [])

        if duplicate_emails:
            return EmailValidationResult(is_valid=False, duplicate_emails=duplicate_emails, conflicting_participants=conflicting)
        return EmailValidationResult(is_valid=True)

    def validate_single_email(self, event_id: str, email: str) -> None:
        """
        Raises:
            ConflictError: If the email is already registered for the event
        """
        result = self.check_single_email(event_id, email)
        if not result.is_valid:
            logger.warning('Email already registered for event', extra={'event_id': event_id})
            raise ConflictError(
                f'Email {normalize_email(email)} is already registered for this event',
                details={
                    'email': normalize_email(email),
                    'eventId': event_id,
                    'conflictingParticipants': result.conflicting_participants,
                },
            )

    def validate_multiple_emails(self, event_id: str, emails: Sequence[str]) -> None:
        """
        Raises:
            ConflictError: For repeated emails within the submission, or for
                emails already registered for the event
        """
        result = self.check_multiple_emails(event_id, emails)
        if result.is_valid:
            return

        unique = list(dict.fromkeys(result.duplicate_emails))
        if result.conflicting_participants is None:
            logger.warning('Duplicate emails within submission', extra={'event_id': event_id, 'duplicates': unique})
            raise ConflictError(
                f'Duplicate emails found within team registration: {", ".join(unique)}',
                details={'eventId': event_id, 'duplicateEmails': result.duplicate_emails},
            )

        logger.warning('Emails already registered for event', extra={'event_id': event_id, 'duplicates': unique})
        raise ConflictError(
            f'The following emails are already registered for this event: {", ".join(unique)}',
            details={
                'eventId': event_id,
                'duplicateEmails': result.duplicate_emails,
                'conflictingParticipants': result.conflicting_participants,
            },
        )

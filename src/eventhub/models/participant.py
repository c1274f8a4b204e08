"""Participant domain model."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import Field

from eventhub.models.base import DynamoModel

PARTICIPANT_PREFIX = 'PARTICIPANT#'
ENTITY_TYPE = 'participant'


def participant_key(participant_id: str) -> Dict[str, str]:
    return {'pk': f'{PARTICIPANT_PREFIX}{participant_id}', 'sk': f'{PARTICIPANT_PREFIX}{participant_id}'}


class Participant(DynamoModel):
    """One registered person, tied to exactly one reservation and event."""

    participant_id: str
    reservation_id: str
    event_id: str
    # Stored lower-cased, unique per event
    email: str
    first_name: str
    last_name: str
    waiver: bool = False
    newsletter: bool = False

    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    emergency_name: Optional[str] = None
    emergency_relationship: Optional[str] = None
    emergency_phone: Optional[str] = None
    emergency_email: Optional[str] = None
    shirt_size: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    medical_conditions: Optional[str] = None
    medications: Optional[str] = None
    allergies: Optional[str] = None
    role: Optional[str] = None

    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()

    def index_attributes(self) -> Dict[str, Any]:
        return {
            'eventParticipantId': self.event_id,
            'participantEmail': self.email.lower(),
            'reservationParticipantId': self.reservation_id,
            'participantSequence': self.participant_id,
        }

    def to_item(self) -> Dict[str, Any]:
        item = self._base_item()
        item.update(participant_key(self.participant_id))
        item['entityType'] = ENTITY_TYPE
        item.update(self.index_attributes())
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Participant':
        return cls.model_validate(item)

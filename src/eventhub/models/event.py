"""
Event domain model.

Besides its own attributes an event item carries derived attributes that feed
the secondary indexes: ``slugDate``, ``creatorDate``, ``typeDate`` and
``difficultyDate`` (``value#date``), ``eventOrganizerId``, and the sparse
``featuredStatus`` / ``enabledStatus`` markers that are only present while the
corresponding flag is true.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from eventhub.models.base import DynamoModel, Money

EVENT_PREFIX = 'EVENT#'
ENTITY_TYPE = 'event'
FEATURED_STATUS = 'featured'
ENABLED_STATUS = 'enabled'


def event_key(event_id: str) -> Dict[str, str]:
    return {'pk': f'{EVENT_PREFIX}{event_id}', 'sk': f'{EVENT_PREFIX}{event_id}'}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse an ISO date or datetime, assuming UTC when no offset is given."""
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Event(DynamoModel):
    """An event participants can register for."""

    event_id: Annotated[str, Field(description='ULID of the event')]
    creator_id: Annotated[str, Field(description='External account id of the creator')]
    organizer_id: Annotated[str, Field(description='Organizer publishing the event')]
    title: Annotated[str, Field(min_length=1)]
    type: Annotated[str, Field(description='Event type, e.g. running or triathlon')]
    date: Annotated[str, Field(description='ISO date of the event')]
    is_featured: bool = False
    is_team_event: bool = False
    is_relay: Optional[bool] = None
    required_participants: Annotated[int, Field(ge=1)] = 1
    max_participants: Annotated[int, Field(ge=0)]
    current_participants: Annotated[int, Field(ge=0)] = 0
    location: str
    description: str
    distance: str
    registration_fee: Money = Decimal('0')
    registration_deadline: Annotated[str, Field(description='ISO date after which registration closes')]
    image: str
    difficulty: str
    tags: List[str] = Field(default_factory=list)
    slug: str
    is_enabled: bool = True
    created_at: str = Field(default_factory=_now)
    updated_at: Optional[str] = None

    @property
    def registration_type(self) -> str:
        return 'team' if self.is_team_event else 'individual'

    @property
    def available_spots(self) -> int:
        return self.max_participants - self.current_participants

    def registration_deadline_passed(self, now: Optional[datetime] = None) -> bool:
        """True once the deadline lies in the past. Unparseable deadlines never pass."""
        deadline = parse_iso_datetime(self.registration_deadline)
        if deadline is None:
            return False
        return deadline < (now or datetime.now(timezone.utc))

    def index_attributes(self) -> Dict[str, Any]:
        """Derived attributes for the secondary indexes, sparse markers included only when set."""
        attributes = {
            'slugDate': f'{self.slug}#{self.date}',
            'creatorDate': f'{self.creator_id}#{self.date}',
            'typeDate': f'{self.type}#{self.date}',
            'difficultyDate': f'{self.difficulty}#{self.date}',
            'eventOrganizerId': self.organizer_id,
        }
        if self.is_featured:
            attributes['featuredStatus'] = FEATURED_STATUS
        if self.is_enabled:
            attributes['enabledStatus'] = ENABLED_STATUS
        return attributes

    def to_item(self) -> Dict[str, Any]:
        item = self._base_item()
        item.update(event_key(self.event_id))
        item['entityType'] = ENTITY_TYPE
        item.update(self.index_attributes())
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Event':
        return cls.model_validate(item)

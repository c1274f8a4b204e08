"""Organizer domain model."""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from pydantic import Field

from eventhub.models.base import DynamoModel

ORGANIZER_PREFIX = 'ORGANIZER#'
ENTITY_TYPE = 'organizer'


def organizer_key(organizer_id: str) -> Dict[str, str]:
    return {'pk': f'{ORGANIZER_PREFIX}{organizer_id}', 'sk': f'{ORGANIZER_PREFIX}{organizer_id}'}


class Organizer(DynamoModel):
    """Person or company publishing events, owned by one external account."""

    organizer_id: Annotated[str, Field(description='ULID of the organizer')]
    clerk_id: Annotated[str, Field(min_length=1, description='Owning external account id')]
    name: Annotated[str, Field(min_length=1, max_length=255)]
    contact: Annotated[str, Field(min_length=1, max_length=255)]
    website: Annotated[Optional[str], Field(default=None, max_length=500)] = None
    description: Annotated[Optional[str], Field(default=None, max_length=1000)] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: Optional[str] = None

    def to_item(self) -> Dict[str, Any]:
        item = self._base_item()
        item.update(organizer_key(self.organizer_id))
        item['entityType'] = ENTITY_TYPE
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Organizer':
        return cls.model_validate(item)

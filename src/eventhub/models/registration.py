"""
Registration (reservation) domain model.

A reservation covers one or more participants of one event. Its participant
count and fee are fixed at creation; only the payment status changes later.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional

from pydantic import Field

from eventhub.models.base import DynamoModel, Money

RESERVATION_PREFIX = 'RESERVATION#'
ENTITY_TYPE = 'registration'

RegistrationType = Literal['individual', 'team']


def reservation_key(reservation_id: str) -> Dict[str, str]:
    return {'pk': f'{RESERVATION_PREFIX}{reservation_id}', 'sk': f'{RESERVATION_PREFIX}{reservation_id}'}


def event_payment_status(event_id: str, paid: bool) -> str:
    return f'{event_id}#{str(paid).lower()}'


class Registration(DynamoModel):
    """One reservation for an event."""

    reservation_id: Annotated[str, Field(description='ULID of the reservation')]
    event_id: str
    registration_type: RegistrationType
    payment_status: bool = False
    total_participants: Annotated[int, Field(ge=1)]
    registration_fee: Annotated[Money, Field(description='Event fee times participant count')]
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: Optional[str] = None
    paid_at: Annotated[Optional[str], Field(default=None, description='When the reservation was marked as paid')] = None

    def index_attributes(self) -> Dict[str, Any]:
        return {
            'eventRegistrationId': self.event_id,
            'registrationDate': self.created_at,
            'eventPaymentStatus': event_payment_status(self.event_id, self.payment_status),
            'paymentDate': self.paid_at or self.created_at,
        }

    def to_item(self) -> Dict[str, Any]:
        item = self._base_item()
        item.update(reservation_key(self.reservation_id))
        item['entityType'] = ENTITY_TYPE
        item.update(self.index_attributes())
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Registration':
        return cls.model_validate(item)

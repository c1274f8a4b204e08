"""
Input models for request validation using Pydantic.

Required-field checks with user facing messages happen in the services; these
models only coerce the accepted shape. Unknown fields are ignored.
"""

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic.alias_generators import to_camel

from eventhub.models.base import Money


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class CreateEventRequest(_RequestModel):
    """Request model for creating an event."""

    organizer_id: Optional[str] = None
    title: Annotated[str, Field(min_length=1, max_length=200)]
    type: str
    date: str
    is_team_event: StrictBool
    is_relay: Optional[bool] = None
    required_participants: Annotated[int, Field(gt=0)]
    max_participants: Annotated[int, Field(gt=0)]
    location: str
    description: str
    distance: str
    registration_fee: Money
    registration_deadline: str
    image: str
    difficulty: str
    tags: Optional[List[str]] = None


class UpdateEventRequest(_RequestModel):
    """Request model for a partial event update, all fields optional."""

    title: Annotated[Optional[str], Field(default=None, min_length=1, max_length=200)] = None
    type: Optional[str] = None
    date: Optional[str] = None
    is_featured: Optional[StrictBool] = None
    is_team_event: Optional[StrictBool] = None
    is_relay: Optional[StrictBool] = None
    required_participants: Annotated[Optional[int], Field(default=None, gt=0)] = None
    max_participants: Annotated[Optional[int], Field(default=None, gt=0)] = None
    location: Optional[str] = None
    description: Optional[str] = None
    distance: Optional[str] = None
    registration_fee: Optional[Money] = None
    registration_deadline: Optional[str] = None
    image: Optional[str] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    is_enabled: Optional[StrictBool] = None


class OrganizerRequest(_RequestModel):
    """Create or update payload for an organizer; sanitising happens in the service."""

    name: Optional[str] = None
    contact: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None


class PaymentStatusRequest(_RequestModel):
    """Request model for flipping a reservation's payment status."""

    payment_status: StrictBool
    payment_date: Optional[str] = None

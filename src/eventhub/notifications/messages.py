"""
Queue message schemas for notification emails.

Two message types travel over the email queue: ``registration_success`` (for
individual or team registrations) and ``payment_confirmed``. Field names on
the wire are camelCase, except ``payment_reference`` which keeps its
historical snake_case name.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

REGISTRATION_SUCCESS = 'registration_success'
PAYMENT_CONFIRMED = 'payment_confirmed'

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
EmailAddressStr = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r'^[^\s@]+@[^\s@]+\.[^\s@]+$')]


class _MessageModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    def to_body(self) -> str:
        """JSON body for the queue."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class NotificationParticipant(_MessageModel):
    email: EmailAddressStr
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    participant_id: Optional[NonEmptyStr] = None

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'


class ConfirmedParticipant(NotificationParticipant):
    participant_id: NonEmptyStr


class NotificationEvent(_MessageModel):
    name: NonEmptyStr
    date: NonEmptyStr
    time: NonEmptyStr
    location: NonEmptyStr


class TeamMember(_MessageModel):
    name: NonEmptyStr
    email: EmailAddressStr
    role: Optional[NonEmptyStr] = None
    is_captain: StrictBool


class NotificationTeam(_MessageModel):
    name: NonEmptyStr
    members: Annotated[List[TeamMember], Field(min_length=1)]


class RegistrationPayment(_MessageModel):
    amount: NonEmptyStr
    bank_account: NonEmptyStr
    payment_reference: Annotated[NonEmptyStr, Field(alias='payment_reference')]


class ConfirmationPayment(_MessageModel):
    amount: NonEmptyStr
    confirmation_number: NonEmptyStr
    transfer_reference: NonEmptyStr
    payment_date: NonEmptyStr


class RegistrationNotificationMessage(_MessageModel):
    """Sent after a registration was committed."""

    type: Literal['registration_success'] = REGISTRATION_SUCCESS
    registration_type: Literal['individual', 'team']
    event_id: NonEmptyStr
    reservation_id: NonEmptyStr
    # The individual registrant, or the team captain
    participant: NotificationParticipant
    team: Optional[NotificationTeam] = None
    event: NotificationEvent
    payment: RegistrationPayment
    timestamp: Optional[NonEmptyStr] = None
    message_id: Optional[NonEmptyStr] = None

    @model_validator(mode='after')
    def _team_required_for_team_registrations(self) -> 'RegistrationNotificationMessage':
        if self.registration_type == 'team' and self.team is None:
            raise ValueError('Team data is required for team registrations')
        return self


class PaymentConfirmationMessage(_MessageModel):
    """Sent to each participant once their reservation is marked as paid."""

    type: Literal['payment_confirmed'] = PAYMENT_CONFIRMED
    reservation_id: NonEmptyStr
    participant: ConfirmedParticipant
    event: NotificationEvent
    payment: ConfirmationPayment
    timestamp: Optional[NonEmptyStr] = None
    message_id: Optional[NonEmptyStr] = None


NotificationMessage = Union[RegistrationNotificationMessage, PaymentConfirmationMessage]

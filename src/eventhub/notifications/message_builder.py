"""Builders for the queue messages sent after registrations and payments."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from eventhub.models.event import Event, parse_iso_datetime
from eventhub.models.participant import Participant
from eventhub.models.registration import Registration
from eventhub.notifications.messages import (
    ConfirmationPayment,
    ConfirmedParticipant,
    NotificationEvent,
    NotificationParticipant,
    NotificationTeam,
    PaymentConfirmationMessage,
    RegistrationNotificationMessage,
    RegistrationPayment,
    TeamMember,
)

# Events take place in Quintana Roo; emails show local time
EVENT_TIMEZONE = ZoneInfo('America/Cancun')

_WEEKDAYS = ('lun', 'mar', 'mié', 'jue', 'vie', 'sáb', 'dom')
_MONTHS = ('ene', 'feb', 'mar', 'abr', 'may', 'jun', 'jul', 'ago', 'sept', 'oct', 'nov', 'dic')


def format_registration_fee(fee: Union[Decimal, float]) -> str:
    amount = fee if isinstance(fee, Decimal) else Decimal(str(fee))
    return str(amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def format_event_date_time(value: str) -> Tuple[str, str]:
    """
    Spanish (Mexico) date and 12 hour time of an ISO timestamp in the event timezone.

    Unparseable values come back unchanged with the time ``TBD``.
    """
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return value, 'TBD'

    local = parsed.astimezone(EVENT_TIMEZONE)
    date = f'{_WEEKDAYS[local.weekday()]}, {local.day} {_MONTHS[local.month - 1]} {local.year}'
    hour = local.hour % 12 or 12
    time = f'{hour}:{local.minute:02d} {"a.m." if local.hour < 12 else "p.m."}'
    return date, time


def default_payment_reference(reservation_id: str) -> str:
    return f'PAY-{reservation_id[-10:].upper()}'


def default_confirmation_number(reservation_id: str) -> str:
    return f'CONF-{reservation_id[-10:].upper()}'


def build_event_details(event: Event) -> NotificationEvent:
    date, time = format_event_date_time(event.date)
    return NotificationEvent(name=event.title, date=date, time=time, location=event.location)


def default_team_name(captain: Participant) -> str:
    return f'Team {captain.last_name}'


def build_registration_notification_message(
    event: Event,
    registration: Registration,
    participants: Sequence[Participant],
    bank_account: str,
    team_name: Optional[str] = None,
    payment_reference: Optional[str] = None,
) -> RegistrationNotificationMessage:
    """
    Message announcing a committed registration.

    For team registrations the first participant is the captain and receives
    the email; every participant is listed as a team member.
    """
    captain = participants[0]
    is_team = registration.registration_type == 'team'

    team = None
    if is_team:
        team = NotificationTeam(
            name=team_name or default_team_name(captain),
            members=[
                TeamMember(name=member.full_name, email=member.email, role=member.role, is_captain=index == 0)
                for index, member in enumerate(participants)
            ],
        )

    return RegistrationNotificationMessage(
        registration_type=registration.registration_type,
        event_id=event.event_id,
        reservation_id=registration.reservation_id,
        participant=NotificationParticipant(
            email=captain.email,
            first_name=captain.first_name,
            last_name=captain.last_name,
            participant_id=None if is_team else captain.participant_id,
        ),
        team=team,
        event=build_event_details(event),
        payment=RegistrationPayment(
            amount=format_registration_fee(registration.registration_fee),
            bank_account=bank_account,
            payment_reference=payment_reference or default_payment_reference(registration.reservation_id),
        ),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def build_payment_confirmation_message(
    event: Event,
    registration: Registration,
    participant: Participant,
    payment_date: Optional[str] = None,
    confirmation_number: Optional[str] = None,
    transfer_reference: Optional[str] = None,
) -> PaymentConfirmationMessage:
    """Message confirming a reservation's payment to one of its participants."""
    return PaymentConfirmationMessage(
        reservation_id=registration.reservation_id,
        participant=ConfirmedParticipant(
            email=participant.email,
            first_name=participant.first_name,
            last_name=participant.last_name,
            participant_id=participant.participant_id,
        ),
        event=build_event_details(event),
        payment=ConfirmationPayment(
            amount=format_registration_fee(registration.registration_fee),
            confirmation_number=confirmation_number or default_confirmation_number(registration.reservation_id),
            transfer_reference=transfer_reference or default_payment_reference(registration.reservation_id),
            payment_date=payment_date or registration.paid_at or datetime.now(timezone.utc).isoformat(),
        ),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )

"""
Template data for the three notification emails.

Each validated queue message maps to one flat template shape: individual
registration, team registration or payment confirmation. Display fields may
fall back to placeholder text; identifiers used to reconcile a payment never do.
"""

import re
from typing import Any, Dict, List, Literal

from pydantic import BaseModel

from eventhub.handlers.utils.observability import logger
from eventhub.notifications.errors import TemplateDataError
from eventhub.notifications.messages import (
    PAYMENT_CONFIRMED,
    NotificationMessage,
    NotificationParticipant,
    PaymentConfirmationMessage,
    RegistrationNotificationMessage,
)

TemplateType = Literal['individual', 'team', 'confirmation']

DEFAULT_MEMBER_DISCIPLINE = 'Not specified'

REQUIRED_FIELDS: Dict[str, List[str]] = {
    'individual': [
        'event_name', 'event_date', 'event_time', 'event_location',
        'participant_id', 'participant_name', 'payment_amount',
        'bank_account', 'payment_reference', 'reservation_id',
    ],
    'team': [
        'event_name', 'event_date', 'event_time', 'event_location',
        'team_name', 'team_id', 'team_members_count', 'team_members',
        'payment_amount', 'bank_account', 'payment_reference', 'reservation_id',
    ],
    'confirmation': [
        'event_name', 'event_date', 'event_time', 'event_location',
        'participant_id', 'confirmation_number', 'payment_amount',
        'transfer_reference', 'payment_date',
    ],
}
_MEMBER_REQUIRED_FIELDS = ('member_name', 'member_discipline', 'is_captain')


class IndividualTemplateData(BaseModel):
    event_name: str
    event_date: str
    event_time: str
    event_location: str
    participant_id: str
    participant_name: str
    payment_amount: str
    bank_account: str
    payment_reference: str
    reservation_id: str


class TeamMemberTemplateData(BaseModel):
    member_name: str
    member_discipline: str = DEFAULT_MEMBER_DISCIPLINE
    is_captain: bool = False


class TeamTemplateData(BaseModel):
    event_name: str
    event_date: str
    event_time: str
    event_location: str
    team_name: str
    team_id: str
    team_members_count: int
    team_members: List[TeamMemberTemplateData]
    payment_amount: str
    bank_account: str
    payment_reference: str
    reservation_id: str


class ConfirmationTemplateData(BaseModel):
    event_name: str
    event_date: str
    event_time: str
    event_location: str
    participant_id: str
    confirmation_number: str
    payment_amount: str
    transfer_reference: str
    payment_date: str


def template_type_for(message: NotificationMessage) -> TemplateType:
    if message.type == PAYMENT_CONFIRMED:
        return 'confirmation'
    return message.registration_type


def generate_team_id(team_name: str, reservation_id: str) -> str:
    """``TEAM`` + first four alphanumerics of the team name + last four of the reservation."""
    prefix = re.sub(r'[^a-zA-Z0-9]', '', team_name)[:4].upper()
    return f'TEAM{prefix}{reservation_id[-4:]}'


def _fallback_participant_id(participant: NotificationParticipant, reservation_id: str) -> str:
    initials = f'{participant.first_name[:1]}{participant.last_name[:1]}'.upper()
    local_part = participant.email.split('@')[0][-4:]
    return f'{initials}{local_part}{reservation_id[-4:]}'


def transform_to_individual_template_data(message: RegistrationNotificationMessage) -> IndividualTemplateData:
    """
    Raises:
        TemplateDataError: If the message is not an individual registration
    """
    if message.registration_type != 'individual':
        raise TemplateDataError(f'Invalid registration type for individual template: {message.registration_type}')

    participant = message.participant
    template_data = IndividualTemplateData(
        event_name=message.event.name,
        event_date=message.event.date,
        event_time=message.event.time,
        event_location=message.event.location,
        participant_id=participant.participant_id or _fallback_participant_id(participant, message.reservation_id),
        participant_name=participant.full_name,
        payment_amount=message.payment.amount,
        bank_account=message.payment.bank_account,
        payment_reference=message.payment.payment_reference,
        reservation_id=message.reservation_id,
    )
    logger.debug('Individual template data built', extra={'reservation_id': message.reservation_id})
    return template_data


def transform_to_team_template_data(message: RegistrationNotificationMessage) -> TeamTemplateData:
    """
    Raises:
        TemplateDataError: If the message is not a team registration or has no members
    """
    if message.registration_type != 'team':
        raise TemplateDataError(f'Invalid registration type for team template: {message.registration_type}')
    if message.team is None or not message.team.members:
        raise TemplateDataError('Team name and members array are required')

    team = message.team
    template_data = TeamTemplateData(
        event_name=message.event.name,
        event_date=message.event.date,
        event_time=message.event.time,
        event_location=message.event.location,
        team_name=team.name,
        team_id=generate_team_id(team.name, message.reservation_id),
        team_members_count=len(team.members),
        team_members=[
            TeamMemberTemplateData(
                member_name=member.name,
                member_discipline=member.role or DEFAULT_MEMBER_DISCIPLINE,
                is_captain=member.is_captain,
            )
            for member in team.members
        ],
        payment_amount=message.payment.amount,
        bank_account=message.payment.bank_account,
        payment_reference=message.payment.payment_reference,
        reservation_id=message.reservation_id,
    )
    logger.debug('Team template data built', extra={
        'reservation_id': message.reservation_id,
        'team_members_count': template_data.team_members_count,
    })
    return template_data


def transform_to_confirmation_template_data(message: PaymentConfirmationMessage) -> ConfirmationTemplateData:
    return ConfirmationTemplateData(
        event_name=message.event.name,
        event_date=message.event.date,
        event_time=message.event.time,
        event_location=message.event.location,
        participant_id=message.participant.participant_id,
        confirmation_number=message.payment.confirmation_number,
        payment_amount=message.payment.amount,
        transfer_reference=message.payment.transfer_reference,
        payment_date=message.payment.payment_date,
    )


def transform_notification_message(message: NotificationMessage) -> BaseModel:
    """Template data for any validated notification message."""
    if isinstance(message, PaymentConfirmationMessage):
        return transform_to_confirmation_template_data(message)
    if isinstance(message, RegistrationNotificationMessage):
        if message.registration_type == 'team':
            return transform_to_team_template_data(message)
        return transform_to_individual_template_data(message)
    raise TemplateDataError(f'Unsupported message type: {getattr(message, "type", None)}')


def apply_template_data_defaults(template_data: Dict[str, Any], template_type: TemplateType) -> Dict[str, Any]:
    """
    Fill empty display fields with placeholder text. Provided values win.

    Identifiers (participant, reservation and team ids, payment and
    confirmation references) get no placeholder, so a message missing them
    still fails ``validate_template_data``.
    """
    if not isinstance(template_data, dict):
        raise TemplateDataError('Template data must be a valid object')

    defaults: Dict[str, Any] = {
        'event_name': 'Event',
        'event_date': 'TBD',
        'event_time': 'TBD',
        'event_location': 'TBD',
        'payment_amount': '0',
    }
    if template_type == 'individual':
        defaults.update({'participant_name': 'Participant', 'bank_account': 'TBD'})
    elif template_type == 'team':
        defaults.update({'team_name': 'Team', 'team_members_count': 0, 'team_members': [], 'bank_account': 'TBD'})
    elif template_type == 'confirmation':
        defaults.update({'payment_date': 'N/A'})

    result = dict(template_data)
    for field, default in defaults.items():
        if result.get(field) in (None, ''):
            result[field] = default

    if template_type == 'team' and isinstance(result.get('team_members'), list):
        result['team_members'] = [
            {
                'member_name': (member or {}).get('member_name') or 'Team Member',
                'member_discipline': (member or {}).get('member_discipline') or DEFAULT_MEMBER_DISCIPLINE,
                'is_captain': bool((member or {}).get('is_captain', False)),
            }
            for member in result['team_members']
        ]
    return result


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_template_data(template_data: Dict[str, Any], template_type: TemplateType) -> None:
    """
    Check the required fields of a template and, for teams, member consistency.

    Raises:
        TemplateDataError: On the first problem found
    """
    if not isinstance(template_data, dict):
        raise TemplateDataError('Template data must be a valid object')

    missing = [field for field in REQUIRED_FIELDS[template_type] if _is_missing(template_data.get(field))]
    if missing:
        raise TemplateDataError(
            f'Missing or empty required template data fields for {template_type} template: {", ".join(missing)}',
            details={'templateType': template_type, 'missingFields': missing},
        )

    if template_type != 'team':
        return

    members = template_data['team_members']
    if not isinstance(members, list):
        raise TemplateDataError('team_members must be an array for team template')
    if not members:
        raise TemplateDataError('team_members array cannot be empty for team template')
    if template_data['team_members_count'] != len(members):
        raise TemplateDataError(
            f'team_members_count ({template_data["team_members_count"]}) does not match '
            f'team_members array length ({len(members)})'
        )

    for index, member in enumerate(members):
        if not isinstance(member, dict):
            raise TemplateDataError(f'Team member at index {index} must be a valid object')
        member_missing = [field for field in _MEMBER_REQUIRED_FIELDS if _is_missing(member.get(field))]
        if member_missing:
            raise TemplateDataError(f'Team member at index {index} missing required fields: {", ".join(member_missing)}')
        if not isinstance(member['is_captain'], bool):
            raise TemplateDataError(f'Team member at index {index} is_captain must be a boolean')

"""Unit tests for notification messages, their validation and template data."""

import json

import pytest

from eventhub.models.participant import Participant
from eventhub.models.registration import Registration
from eventhub.notifications.errors import MessageValidationError, TemplateDataError
from eventhub.notifications.message_builder import (
    build_payment_confirmation_message,
    build_registration_notification_message,
    default_confirmation_number,
    default_payment_reference,
    format_event_date_time,
)
from eventhub.notifications.message_validation import (
    parse_and_validate_message,
    require_valid_message,
    validate_payment_confirmation_message,
    validate_registration_notification_message,
)
from eventhub.notifications.messages import PaymentConfirmationMessage, RegistrationNotificationMessage
from eventhub.notifications.template_data import (
    apply_template_data_defaults,
    generate_team_id,
    transform_notification_message,
    transform_to_individual_template_data,
    transform_to_team_template_data,
    validate_template_data,
)

from notification_samples import RESERVATION_ID, payment_message, registration_message, team_message


def _record(body, message_id='msg-1'):
    return {'messageId': message_id, 'body': body if isinstance(body, str) else json.dumps(body)}


class TestMessageValidation:
    """Test cases for queue message validation."""

    def test_valid_individual_message(self):
        result = validate_registration_notification_message(registration_message())

        assert result.success
        assert isinstance(result.data, RegistrationNotificationMessage)
        assert result.data.payment.payment_reference == 'PAY-RVATION0ABCD'

    def test_valid_team_message(self):
        result = validate_registration_notification_message(team_message())

        assert result.success
        assert [member.is_captain for member in result.data.team.members] == [True, False]

    def test_team_message_without_team(self):
        result = validate_registration_notification_message(registration_message(registrationType='team'))

        assert not result.success
        assert result.field == 'team'

    def test_team_member_captain_must_be_boolean(self):
        message = team_message()
        message['team']['members'][1]['isCaptain'] = 'no'

        result = validate_registration_notification_message(message)

        assert not result.success
        assert result.field == 'team.members[1].isCaptain'

    def test_invalid_participant_email(self):
        message = registration_message()
        message['participant']['email'] = 'not-an-email'

        result = validate_registration_notification_message(message)

        assert not result.success
        assert result.field == 'participant.email'

    def test_wrong_type(self):
        assert validate_registration_notification_message(payment_message()).field == 'type'
        assert validate_payment_confirmation_message(registration_message()).field == 'type'

    def test_payment_requires_participant_id(self):
        message = payment_message()
        del message['participant']['participantId']

        result = validate_payment_confirmation_message(message)

        assert not result.success
        assert result.field == 'participant.participantId'


class TestParseAndValidate:
    """Test cases for reading SQS records."""

    def test_fills_message_id_and_timestamp(self):
        result = parse_and_validate_message(_record(registration_message(), 'sqs-42'))

        assert result.success
        assert result.data.message_id == 'sqs-42'
        assert result.data.timestamp

    def test_dispatches_by_type(self):
        result = parse_and_validate_message(_record(payment_message()))

        assert isinstance(result.data, PaymentConfirmationMessage)

    @pytest.mark.parametrize('body, error', [
        ('{not json', 'Invalid JSON in message body'),
        ('[1, 2]', 'Message body must be a JSON object'),
        ('{"type": "newsletter"}', 'Unknown message type: newsletter'),
    ])
    def test_rejects_bad_bodies(self, body, error):
        result = parse_and_validate_message(_record(body))

        assert not result.success
        assert result.error == error

    def test_require_valid_message_raises(self):
        with pytest.raises(MessageValidationError) as exc_info:
            require_valid_message(_record('{not json'))

        assert exc_info.value.retryable is False
        assert exc_info.value.details == {'messageId': 'msg-1'}


class TestTemplateData:
    """Test cases for the email template shapes."""

    def test_individual(self):
        message = RegistrationNotificationMessage.model_validate(registration_message())

        data = transform_to_individual_template_data(message)

        assert data.participant_name == 'Ana Lopez'
        assert data.participant_id == '01HZX3K9Q4PARTICIPANT00001'
        assert data.payment_reference == 'PAY-RVATION0ABCD'
        assert data.reservation_id == RESERVATION_ID

    def test_individual_without_participant_id(self):
        message_data = registration_message()
        del message_data['participant']['participantId']
        message = RegistrationNotificationMessage.model_validate(message_data)

        assert transform_to_individual_template_data(message).participant_id == 'ALana' + RESERVATION_ID[-4:]

    def test_team(self):
        message = RegistrationNotificationMessage.model_validate(team_message())

        data = transform_to_team_template_data(message)

        assert data.team_id == 'TEAMSEAT' + RESERVATION_ID[-4:]
        assert data.team_members_count == 2
        assert [member.member_discipline for member in data.team_members] == ['swimmer', 'Not specified']
        assert data.team_members[0].is_captain is True

    def test_wrong_template_for_type(self):
        message = RegistrationNotificationMessage.model_validate(registration_message())

        with pytest.raises(TemplateDataError):
            transform_to_team_template_data(message)

    def test_confirmation(self):
        message = PaymentConfirmationMessage.model_validate(payment_message())

        data = transform_notification_message(message).model_dump()

        validate_template_data(data, 'confirmation')
        assert data['confirmation_number'] == 'CONF-RVATION0ABCD'

    def test_generate_team_id(self):
        assert generate_team_id('Los Ñandúes!', 'ABCDEFGH1234') == 'TEAMLOSA1234'

    def test_defaults_fill_display_fields_only(self):
        data = apply_template_data_defaults({'event_name': '', 'participant_id': ''}, 'individual')

        assert data['event_name'] == 'Event'
        assert data['participant_name'] == 'Participant'
        assert data['participant_id'] == ''
        with pytest.raises(TemplateDataError) as exc_info:
            validate_template_data(data, 'individual')
        assert 'participant_id' in exc_info.value.details['missingFields']

    def test_provided_values_win(self):
        assert apply_template_data_defaults({'event_name': 'Night Run'}, 'confirmation')['event_name'] == 'Night Run'

    def test_team_count_must_match_members(self):
        data = transform_to_team_template_data(RegistrationNotificationMessage.model_validate(team_message())).model_dump()
        data['team_members_count'] = 3

        with pytest.raises(TemplateDataError) as exc_info:
            validate_template_data(data, 'team')

        assert 'does not match' in exc_info.value.message

    def test_team_needs_members(self):
        data = apply_template_data_defaults({
            'team_id': 'TEAMX1234',
            'payment_reference': 'PAY-1',
            'reservation_id': RESERVATION_ID,
        }, 'team')

        with pytest.raises(TemplateDataError) as exc_info:
            validate_template_data(data, 'team')

        assert exc_info.value.message == 'team_members array cannot be empty for team template'


class TestMessageBuilder:
    """Test cases for building queue messages from stored records."""

    def test_format_event_date_time(self):
        assert format_event_date_time('2030-03-01T14:30:00Z') == ('vie, 1 mar 2030', '9:30 a.m.')
        assert format_event_date_time('2030-03-01T23:05:00-05:00') == ('vie, 1 mar 2030', '11:05 p.m.')

    def test_unparseable_date(self):
        assert format_event_date_time('sometime soon') == ('sometime soon', 'TBD')

    def test_default_references(self):
        assert default_payment_reference('01hzx3k9q4reservation0abcd') == 'PAY-ATION0ABCD'
        assert default_confirmation_number(RESERVATION_ID) == 'CONF-ATION0ABCD'

    def test_team_message(self, build_event):
        event = build_event(is_team_event=True, required_participants=2, registration_fee=25.0)
        registration = Registration(
            reservation_id=RESERVATION_ID, event_id=event.event_id, registration_type='team',
            total_participants=2, registration_fee=50.0,
        )
        participants = [
            Participant(participant_id=f'P{index}', reservation_id=RESERVATION_ID, event_id=event.event_id,
                        email=f'member{index}@example.com', first_name='Member', last_name=f'N{index}')
            for index in range(2)
        ]

        message = build_registration_notification_message(event, registration, participants, '0123456789')

        assert message.participant.email == 'member0@example.com'
        assert message.participant.participant_id is None
        assert message.team.name == 'Team N0'
        assert message.payment.amount == '50.00'
        assert message.payment.payment_reference == default_payment_reference(RESERVATION_ID)
        body = json.loads(message.to_body())
        assert body['payment']['payment_reference'] == message.payment.payment_reference
        assert body['registrationType'] == 'team'

    def test_payment_confirmation(self, build_event):
        event = build_event()
        registration = Registration(
            reservation_id=RESERVATION_ID, event_id=event.event_id, registration_type='individual',
            total_participants=1, registration_fee=50.0, payment_status=True, paid_at='2030-02-01T10:00:00+00:00',
        )
        participant = Participant(participant_id='P0', reservation_id=RESERVATION_ID, event_id=event.event_id,
                                  email='ana@example.com', first_name='Ana', last_name='Lopez')

        message = build_payment_confirmation_message(event, registration, participant)

        assert message.type == 'payment_confirmed'
        assert message.payment.payment_date == '2030-02-01T10:00:00+00:00'
        assert message.payment.confirmation_number == default_confirmation_number(RESERVATION_ID)
        assert validate_payment_confirmation_message(json.loads(message.to_body())).success

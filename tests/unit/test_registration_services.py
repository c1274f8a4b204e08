"""
Unit tests for the individual and team registration flows.

Each flow stops at the first failing step; the unit of work is only called
once every check has passed.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from eventhub.handlers.utils.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from eventhub.logic.base_registration import validate_participant_fields
from eventhub.logic.individual_registration import IndividualRegistrationService
from eventhub.logic.team_registration import TeamRegistrationService
from eventhub.notifications.messages import RegistrationNotificationMessage


@pytest.fixture
def repositories():
    events = Mock()
    participants = Mock()
    participants.find_by_event_and_email.return_value = []
    unit_of_work = Mock()
    publisher = Mock()
    return events, participants, unit_of_work, publisher


def _individual(repositories):
    events, participants, unit_of_work, publisher = repositories
    return IndividualRegistrationService(events, participants, unit_of_work, publisher, bank_account='0123456789')


def _team(repositories):
    events, participants, unit_of_work, publisher = repositories
    return TeamRegistrationService(events, participants, unit_of_work, publisher, bank_account='0123456789')


def _team_members(participant_data, count):
    members = [participant_data(f'member{index}@example.com', firstName=f'Member{index}') for index in range(count)]
    members[0]['role'] = 'swimmer'
    return members


class TestIndividualRegistration:
    """Test cases for registering one participant."""

    def test_success(self, repositories, build_event, participant_data):
        events, _, unit_of_work, publisher = repositories
        event = build_event(registration_fee=50.0)
        events.get.return_value = event

        result = _individual(repositories).register_individual(event.event_id, participant_data('Runner@Example.com'))

        assert result['eventId'] == event.event_id
        assert result['registrationType'] == 'individual'
        assert result['paymentStatus'] is False
        assert result['registrationFee'] == 50.0
        assert result['participants'][0]['email'] == 'runner@example.com'

        committed_event, registration, participants = unit_of_work.commit_registration.call_args.args
        assert committed_event is event
        assert registration.total_participants == 1
        assert participants[0].reservation_id == registration.reservation_id

        message = publisher.publish_safe.call_args.args[0]
        assert isinstance(message, RegistrationNotificationMessage)
        assert message.payment.bank_account == '0123456789'
        assert message.payment.amount == '50.00'

    def test_invalid_event_id(self, repositories, participant_data):
        with pytest.raises(BadRequestError):
            _individual(repositories).register_individual('not-a-ulid', participant_data())

    @pytest.mark.parametrize('overrides, message', [
        ({'firstName': ''}, 'Missing required fields: firstName'),
        ({'email': 'not-an-email'}, 'Invalid email format'),
        ({'waiver': False}, 'Waiver must be accepted to complete registration'),
        ({'emergencyEmail': 'broken'}, 'Invalid emergency contact email format'),
    ])
    def test_invalid_input(self, repositories, build_event, participant_data, overrides, message):
        events, _, unit_of_work, _ = repositories
        event = build_event()
        events.get.return_value = event

        with pytest.raises(ValidationError) as exc_info:
            _individual(repositories).register_individual(event.event_id, participant_data(**overrides))

        assert exc_info.value.message == message
        events.get.assert_not_called()
        unit_of_work.commit_registration.assert_not_called()

    def test_missing_newsletter_is_required(self, repositories, build_event, participant_data):
        data = participant_data()
        del data['newsletter']

        with pytest.raises(ValidationError) as exc_info:
            _individual(repositories).register_individual(build_event().event_id, data)

        assert exc_info.value.details == {'missingFields': ['newsletter']}

    def test_unknown_event(self, repositories, build_event, participant_data):
        events = repositories[0]
        events.get.return_value = None

        with pytest.raises(NotFoundError):
            _individual(repositories).register_individual(build_event().event_id, participant_data())

    @pytest.mark.parametrize('overrides, message', [
        ({'is_enabled': False}, 'Event is currently disabled and not accepting registrations'),
        ({'registration_deadline': '2001-01-01T00:00:00Z'}, 'Registration deadline has passed for this event'),
        ({'is_team_event': True, 'required_participants': 2},
         'Registration type mismatch. This event is configured for team registration only.'),
        ({'max_participants': 3, 'current_participants': 3}, 'Event is at maximum capacity. Available spots: 0, requested: 1'),
    ])
    def test_event_rejects_registration(self, repositories, build_event, participant_data, overrides, message):
        events, _, unit_of_work, publisher = repositories
        event = build_event(**overrides)
        events.get.return_value = event

        with pytest.raises(ConflictError) as exc_info:
            _individual(repositories).register_individual(event.event_id, participant_data())

        assert exc_info.value.message == message
        unit_of_work.commit_registration.assert_not_called()
        publisher.publish_safe.assert_not_called()

    def test_email_taken(self, repositories, build_event, participant_data):
        events, participants, unit_of_work, _ = repositories
        event = build_event()
        events.get.return_value = event
        participants.find_by_event_and_email.return_value = [Mock(email='runner@example.com', participant_id='p', reservation_id='r')]

        with pytest.raises(ConflictError):
            _individual(repositories).register_individual(event.event_id, participant_data())

        unit_of_work.commit_registration.assert_not_called()

    def test_server_assigned_fields_are_ignored(self, repositories, build_event, participant_data):
        events, _, unit_of_work, _ = repositories
        event = build_event()
        events.get.return_value = event

        _individual(repositories).register_individual(
            event.event_id, participant_data(participantId='forged', eventId='other', phone='555-0100'),
        )

        participant = unit_of_work.commit_registration.call_args.args[2][0]
        assert participant.participant_id != 'forged'
        assert participant.event_id == event.event_id
        assert participant.phone == '555-0100'

    def test_without_publisher(self, repositories, build_event, participant_data):
        events, participants, unit_of_work, _ = repositories
        event = build_event()
        events.get.return_value = event
        service = IndividualRegistrationService(events, participants, unit_of_work)

        result = service.register_individual(event.event_id, participant_data())

        assert result['totalParticipants'] == 1

    def test_validate_only_writes_nothing(self, repositories, build_event, participant_data):
        events, _, unit_of_work, _ = repositories
        event = build_event()
        events.get.return_value = event

        assert _individual(repositories).validate_individual_registration(event.event_id, participant_data()) is True
        unit_of_work.commit_registration.assert_not_called()


class TestTeamRegistration:
    """Test cases for registering a team."""

    def test_success(self, repositories, build_event, participant_data):
        events, _, unit_of_work, publisher = repositories
        event = build_event(is_team_event=True, required_participants=3, max_participants=9, registration_fee=20.0)
        events.get.return_value = event

        result = _team(repositories).register_team(event.event_id, _team_members(participant_data, 3))

        assert result['registrationType'] == 'team'
        assert result['totalParticipants'] == 3
        assert result['registrationFee'] == 60.0
        assert [participant['role'] for participant in result['participants']] == ['swimmer', None, None]

        message = publisher.publish_safe.call_args.args[0]
        assert message.registration_type == 'team'
        assert message.participant.email == 'member0@example.com'
        assert [member.is_captain for member in message.team.members] == [True, False, False]
        assert unit_of_work.commit_registration.call_count == 1

    def test_fee_is_exact_decimal(self, repositories, build_event, participant_data):
        events, _, unit_of_work, publisher = repositories
        event = build_event(is_team_event=True, required_participants=3, max_participants=9, registration_fee=0.1)
        events.get.return_value = event

        result = _team(repositories).register_team(event.event_id, _team_members(participant_data, 3))

        assert result['registrationFee'] == Decimal('0.3')
        registration = unit_of_work.commit_registration.call_args.args[1]
        assert registration.to_item()['registrationFee'] == Decimal('0.3')
        assert registration.to_response()['registrationFee'] == 0.3
        assert publisher.publish_safe.call_args.args[0].payment.amount == '0.30'

    def test_empty_team(self, repositories, build_event):
        with pytest.raises(ValidationError) as exc_info:
            _team(repositories).register_team(build_event().event_id, [])

        assert exc_info.value.message == 'Team registration must include at least one participant'

    def test_participant_errors_are_indexed(self, repositories, build_event, participant_data):
        members = _team_members(participant_data, 3)
        members[1]['email'] = 'broken'
        members[2]['waiver'] = False

        with pytest.raises(ValidationError) as exc_info:
            _team(repositories).register_team(build_event().event_id, members)

        error = exc_info.value
        assert error.message == 'Participant validation failed: Participant 2: Invalid email format'
        assert [entry['index'] for entry in error.details['participantErrors']] == [1, 2]

    def test_duplicate_emails_in_team(self, repositories, build_event, participant_data):
        events = repositories[0]
        event = build_event(is_team_event=True, required_participants=2, max_participants=10)
        events.get.return_value = event
        members = [participant_data('same@example.com'), participant_data('SAME@example.com')]

        with pytest.raises(ConflictError) as exc_info:
            _team(repositories).register_team(event.event_id, members)

        assert 'Duplicate emails found within team registration' in exc_info.value.message

    def test_team_for_individual_event(self, repositories, build_event, participant_data):
        events = repositories[0]
        event = build_event()
        events.get.return_value = event

        with pytest.raises(ConflictError) as exc_info:
            _team(repositories).register_team(event.event_id, _team_members(participant_data, 2))

        assert exc_info.value.details['eventRegistrationType'] == 'individual'

    def test_wrong_team_size(self, repositories, build_event, participant_data):
        events, _, unit_of_work, _ = repositories
        event = build_event(is_team_event=True, required_participants=4, max_participants=20)
        events.get.return_value = event

        with pytest.raises(ConflictError) as exc_info:
            _team(repositories).register_team(event.event_id, _team_members(participant_data, 3))

        assert exc_info.value.message == 'Team size must be exactly 4 participants. Received: 3'
        unit_of_work.commit_registration.assert_not_called()

    def test_team_exceeding_capacity(self, repositories, build_event, participant_data):
        """Event with 10 spots and 8 taken rejects a team of 5."""
        events, _, unit_of_work, _ = repositories
        event = build_event(is_team_event=True, required_participants=5, max_participants=10, current_participants=8)
        events.get.return_value = event

        with pytest.raises(ConflictError) as exc_info:
            _team(repositories).register_team(event.event_id, _team_members(participant_data, 5))

        assert exc_info.value.details['availableSpots'] == 2
        unit_of_work.commit_registration.assert_not_called()


class TestValidateParticipantFields:
    """Test cases for per-participant messages."""

    def test_collects_every_problem(self):
        errors = validate_participant_fields({'email': 'bad', 'waiver': False}, index=0)

        assert errors == [
            'Participant 1: Missing required field: firstName',
            'Participant 1: Missing required field: lastName',
            'Participant 1: Missing required field: newsletter',
            'Participant 1: Invalid email format',
            'Participant 1: Waiver must be accepted to complete registration',
        ]

    def test_non_object(self):
        assert validate_participant_fields('nope') == ['Participant data must be an object']

"""
Unit tests for the table entities and request models.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from eventhub.models.base import from_dynamo_value, to_dynamo_value
from eventhub.models.event import Event, parse_iso_datetime
from eventhub.models.input import CreateEventRequest, PaymentStatusRequest
from eventhub.models.organizer import Organizer
from eventhub.models.participant import Participant
from eventhub.models.registration import Registration


class TestDynamoValues:
    """Test cases for the Decimal conversions."""

    def test_to_dynamo_value(self):
        assert to_dynamo_value({'fee': 12.5, 'flag': True, 'tags': [1.5]}) == {
            'fee': Decimal('12.5'),
            'flag': True,
            'tags': [Decimal('1.5')],
        }

    def test_from_dynamo_value(self):
        assert from_dynamo_value({'count': Decimal('3'), 'fee': Decimal('12.5')}) == {'count': 3, 'fee': 12.5}


class TestEvent:
    """Test cases for the Event entity."""

    def test_item_carries_index_attributes(self, build_event):
        event = build_event(slug='night-run', date='2030-03-01', is_featured=True, registration_fee=12.5)

        item = event.to_item()

        assert item['pk'] == item['sk'] == f'EVENT#{event.event_id}'
        assert item['entityType'] == 'event'
        assert item['slugDate'] == 'night-run#2030-03-01'
        assert item['typeDate'] == 'running#2030-03-01'
        assert item['featuredStatus'] == 'featured'
        assert item['enabledStatus'] == 'enabled'
        assert item['registrationFee'] == Decimal('12.5')

    def test_sparse_markers_are_omitted(self, build_event):
        item = build_event(is_featured=False, is_enabled=False).to_item()

        assert 'featuredStatus' not in item
        assert 'enabledStatus' not in item

    def test_round_trip_through_item(self, build_event):
        event = build_event(registration_fee=12.5)

        restored = Event.from_item(event.to_item())

        assert restored == event

    def test_response_is_camel_case(self, build_event):
        response = build_event().to_response()

        assert 'maxParticipants' in response
        assert 'max_participants' not in response
        assert 'updatedAt' not in response

    def test_registration_deadline(self, build_event):
        now = datetime(2030, 3, 1, tzinfo=timezone.utc)

        assert build_event(registration_deadline='2030-02-28').registration_deadline_passed(now)
        assert not build_event(registration_deadline='2030-03-02T00:00:00Z').registration_deadline_passed(now)
        assert not build_event(registration_deadline='soon').registration_deadline_passed(now)

    def test_available_spots_and_type(self, build_event):
        event = build_event(max_participants=10, current_participants=4, is_team_event=True)

        assert event.available_spots == 6
        assert event.registration_type == 'team'

    def test_parse_iso_datetime_assumes_utc(self):
        assert parse_iso_datetime('2030-03-01').tzinfo == timezone.utc
        assert parse_iso_datetime('not a date') is None


class TestRegistrationAndParticipant:
    """Test cases for reservation and participant items."""

    def test_registration_payment_index(self):
        registration = Registration(
            reservation_id='R1', event_id='E1', registration_type='team', total_participants=2,
            registration_fee=60.0, created_at='2030-01-01T00:00:00+00:00',
        )

        item = registration.to_item()

        assert item['pk'] == 'RESERVATION#R1'
        assert item['eventPaymentStatus'] == 'E1#false'
        assert item['paymentDate'] == '2030-01-01T00:00:00+00:00'
        assert item['eventRegistrationId'] == 'E1'

    def test_registration_type_is_checked(self):
        with pytest.raises(ValidationError):
            Registration(reservation_id='R1', event_id='E1', registration_type='relay', total_participants=1,
                         registration_fee=0)

    def test_participant_email_index_is_lower_case(self):
        participant = Participant(participant_id='P1', reservation_id='R1', event_id='E1',
                                  email='Ana@Example.com', first_name='Ana', last_name='Lopez')

        item = participant.to_item()

        assert item['participantEmail'] == 'ana@example.com'
        assert item['reservationParticipantId'] == 'R1'
        assert participant.full_name == 'Ana Lopez'

    def test_organizer_item(self):
        organizer = Organizer(organizer_id='O1', clerk_id='user_1', name='Club', contact='club@example.com')

        item = organizer.to_item()

        assert item['pk'] == 'ORGANIZER#O1'
        assert item['clerkId'] == 'user_1'
        assert 'website' not in item
        assert Organizer.from_item(item) == organizer


class TestRequestModels:
    """Test cases for request body models."""

    def test_create_event_accepts_camel_case(self):
        request = CreateEventRequest.model_validate({
            'title': 'Night Run', 'type': 'running', 'date': '2030-03-01', 'isTeamEvent': False,
            'requiredParticipants': 1, 'maxParticipants': 50, 'location': 'Cancun', 'description': '10k',
            'distance': '10k', 'registrationFee': 20, 'registrationDeadline': '2030-02-20',
            'image': 'https://example.com/a.jpg', 'difficulty': 'beginner', 'unknown': 'ignored',
        })

        assert request.max_participants == 50
        assert request.organizer_id is None

    def test_team_flag_must_be_boolean(self):
        with pytest.raises(ValidationError):
            CreateEventRequest.model_validate({'title': 'x', 'isTeamEvent': 'yes'})

    def test_payment_status_must_be_boolean(self):
        assert PaymentStatusRequest.model_validate({'paymentStatus': True}).payment_status is True
        with pytest.raises(ValidationError):
            PaymentStatusRequest.model_validate({'paymentStatus': 'true'})

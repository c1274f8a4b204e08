"""
Integration tests for the events Lambda handler.

Requests go through the resolver, the auth decorators and the services down
to a moto DynamoDB table.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from eventhub.dal.event_repository import EventRepository
from eventhub.handlers.events_handler import lambda_handler


def _body(response):
    return json.loads(response['body'])


def _future(days):
    return (datetime.now(timezone.utc) + timedelta(days=days)).date().isoformat()


def _create_body(**overrides):
    body = {
        'title': 'Coastal Half Marathon',
        'type': 'running',
        'date': _future(60),
        'isTeamEvent': False,
        'requiredParticipants': 1,
        'maxParticipants': 100,
        'location': 'Cancun',
        'description': '21k along the coast',
        'distance': '21k',
        'registrationFee': 50,
        'registrationDeadline': _future(30),
        'image': 'https://example.com/event.jpg',
        'difficulty': 'intermediate',
        'tags': ['running', 'coast'],
    }
    body.update(overrides)
    return body


@pytest.mark.usefixtures('dynamodb_table')
class TestPublicRoutes:
    """Test cases for routes that need no token."""

    def test_list_enabled_events(self, make_event, http_event, lambda_context):
        shown = make_event(title='Open Race')
        make_event(title='Hidden Race', is_enabled=False)

        response = lambda_handler(http_event('GET', '/events'), lambda_context)

        assert response['statusCode'] == 200
        body = _body(response)
        assert body['success'] is True
        assert [event['eventId'] for event in body['data']['events']] == [shown.event_id]
        assert body['data']['pagination']['hasNextPage'] is False

    def test_type_filter_wins_over_difficulty(self, make_event, http_event, lambda_context):
        running = make_event(type='running', difficulty='advanced')
        make_event(type='cycling', difficulty='beginner')

        response = lambda_handler(
            http_event('GET', '/events', query={'type': 'running', 'difficulty': 'beginner'}),
            lambda_context,
        )

        assert [event['eventId'] for event in _body(response)['data']['events']] == [running.event_id]

    def test_pagination_tokens(self, make_event, http_event, lambda_context):
        for _ in range(3):
            make_event()

        first = _body(lambda_handler(http_event('GET', '/events', query={'limit': '2'}), lambda_context))
        token = first['data']['pagination']['nextToken']
        second = _body(lambda_handler(
            http_event('GET', '/events', query={'limit': '2', 'nextToken': token}), lambda_context,
        ))

        assert first['data']['pagination']['hasNextPage'] is True
        assert len(first['data']['events']) == 2
        assert len(second['data']['events']) == 1

    def test_invalid_limit(self, http_event, lambda_context):
        response = lambda_handler(http_event('GET', '/events', query={'limit': 'many'}), lambda_context)

        assert response['statusCode'] == 400
        assert _body(response)['error']['code'] == 'BAD_REQUEST'

    def test_featured(self, make_event, http_event, lambda_context):
        featured = make_event(is_featured=True)
        make_event()

        response = lambda_handler(http_event('GET', '/events/featured'), lambda_context)

        assert [event['eventId'] for event in _body(response)['data']['events']] == [featured.event_id]

    def test_get_by_slug_and_id(self, make_event, http_event, lambda_context):
        event = make_event(slug='night-run')

        by_slug = lambda_handler(http_event('GET', '/events/slug/night-run'), lambda_context)
        by_id = lambda_handler(http_event('GET', f'/events/{event.event_id}'), lambda_context)

        assert _body(by_slug)['data']['event']['eventId'] == event.event_id
        assert _body(by_id)['data']['event']['slug'] == 'night-run'

    def test_unknown_event(self, http_event, lambda_context):
        response = lambda_handler(http_event('GET', '/events/01HZX3K9Q4MISSING000000000'), lambda_context)

        assert response['statusCode'] == 404
        body = _body(response)
        assert body == {
            'success': False,
            'error': {'message': 'Event not found', 'code': 'NOT_FOUND', 'details': {'eventId': '01HZX3K9Q4MISSING000000000'}},
            'data': None,
        }


@pytest.mark.usefixtures('dynamodb_table')
class TestCreatorRoute:
    """Test cases for listing a creator's events."""

    def test_requires_token(self, http_event, lambda_context):
        response = lambda_handler(http_event('GET', '/events/creator/user_creator'), lambda_context)

        assert response['statusCode'] == 401

    def test_plain_user_is_rejected(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(
            http_event('GET', '/events/creator/user_creator', headers=auth_headers('user_plain', 'user')),
            lambda_context,
        )

        assert response['statusCode'] == 403

    def test_lists_creator_events(self, make_event, http_event, auth_headers, lambda_context):
        mine = make_event(creator_id='user_creator')
        make_event(creator_id='user_other')

        response = lambda_handler(
            http_event('GET', '/events/creator/user_creator', headers=auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 200
        assert [event['eventId'] for event in _body(response)['data']['events']] == [mine.event_id]


@pytest.mark.usefixtures('dynamodb_table')
class TestCreateEvent:
    """Test cases for POST /events."""

    def test_create(self, db, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer()

        response = lambda_handler(http_event('POST', '/events', _create_body(), auth_headers()), lambda_context)

        assert response['statusCode'] == 201
        event = _body(response)['data']['event']
        assert response['headers']['Location'] == f'/events/{event["eventId"]}'
        assert event['organizerId'] == organizer.organizer_id
        assert event['slug'] == 'coastal-half-marathon'
        assert EventRepository(db).get(event['eventId']).title == 'Coastal Half Marathon'

    def test_second_event_gets_suffixed_slug(self, make_organizer, http_event, auth_headers, lambda_context):
        make_organizer()
        lambda_handler(http_event('POST', '/events', _create_body(), auth_headers()), lambda_context)

        response = lambda_handler(http_event('POST', '/events', _create_body(), auth_headers()), lambda_context)

        assert _body(response)['data']['event']['slug'] == 'coastal-half-marathon-1'

    def test_without_organizer_profile(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(http_event('POST', '/events', _create_body(), auth_headers()), lambda_context)

        assert response['statusCode'] == 400

    def test_missing_fields(self, make_organizer, http_event, auth_headers, lambda_context):
        make_organizer()
        body = _create_body()
        del body['maxParticipants']

        response = lambda_handler(http_event('POST', '/events', body, auth_headers()), lambda_context)

        assert response['statusCode'] == 422
        assert _body(response)['error']['code'] == 'VALIDATION_ERROR'

    def test_invalid_json(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(http_event('POST', '/events', '{"title": ', auth_headers()), lambda_context)

        assert response['statusCode'] == 400

    def test_team_capacity_must_fit_whole_teams(self, make_organizer, http_event, auth_headers, lambda_context):
        make_organizer()
        body = _create_body(isTeamEvent=True, requiredParticipants=4, maxParticipants=13)

        response = lambda_handler(http_event('POST', '/events', body, auth_headers()), lambda_context)

        assert response['statusCode'] == 400
        assert _body(response)['error']['details']['suggestedValues'] == [12, 16]

    def test_expired_token(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(
            http_event('POST', '/events', _create_body(), auth_headers(expires_in=-60)), lambda_context,
        )

        assert response['statusCode'] == 401


@pytest.mark.usefixtures('dynamodb_table')
class TestUpdateAndDeleteEvent:
    """Test cases for PATCH and DELETE /events/{eventId}."""

    def test_update(self, db, make_event, http_event, auth_headers, lambda_context):
        event = make_event()

        response = lambda_handler(
            http_event('PATCH', f'/events/{event.event_id}', {'title': 'Night Run', 'maxParticipants': 50}, auth_headers()),
            lambda_context,
        )

        assert response['statusCode'] == 200
        assert _body(response)['data']['event']['title'] == 'Night Run'
        stored = EventRepository(db).get(event.event_id)
        assert stored.max_participants == 50
        assert stored.slug == event.slug

    def test_update_by_other_user(self, make_event, http_event, auth_headers, lambda_context):
        event = make_event()

        response = lambda_handler(
            http_event('PATCH', f'/events/{event.event_id}', {'title': 'Mine'}, auth_headers('user_other')),
            lambda_context,
        )

        assert response['statusCode'] == 403

    def test_capacity_below_registrations(self, make_event, http_event, auth_headers, lambda_context):
        event = make_event(current_participants=10)

        response = lambda_handler(
            http_event('PATCH', f'/events/{event.event_id}', {'maxParticipants': 5}, auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 400
        assert _body(response)['error']['details']['minimumAllowed'] == 10

    def test_delete(self, db, make_event, http_event, auth_headers, lambda_context):
        event = make_event()

        response = lambda_handler(http_event('DELETE', f'/events/{event.event_id}', headers=auth_headers()), lambda_context)

        assert response['statusCode'] == 204
        assert EventRepository(db).get(event.event_id) is None

    def test_delete_with_participants(self, db, make_event, http_event, auth_headers, lambda_context):
        event = make_event(current_participants=3)

        response = lambda_handler(
            http_event('DELETE', f'/events/{event.event_id}', headers=auth_headers('user_admin', 'admin')),
            lambda_context,
        )

        assert response['statusCode'] == 409
        assert EventRepository(db).get(event.event_id) is not None

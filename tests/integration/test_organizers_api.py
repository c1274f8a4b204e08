"""Integration tests for the organizers Lambda handler."""

import json

import pytest

from eventhub.dal.organizer_repository import OrganizerRepository
from eventhub.handlers.organizers_handler import lambda_handler
from eventhub.utils.ulid import generate_organizer_id


def _body(response):
    return json.loads(response['body'])


@pytest.mark.usefixtures('dynamodb_table')
class TestCreateOrganizer:
    """Test cases for POST /organizers."""

    def test_create(self, db, http_event, auth_headers, lambda_context):
        body = {'name': '  Riviera  Running Club ', 'contact': 'club@example.com', 'website': 'club.example.com'}

        response = lambda_handler(http_event('POST', '/organizers', body, auth_headers()), lambda_context)

        assert response['statusCode'] == 201
        organizer = _body(response)['data']['organizer']
        assert organizer['name'] == 'Riviera Running Club'
        assert organizer['website'] == 'https://club.example.com'
        assert organizer['clerkId'] == 'user_creator'
        assert OrganizerRepository(db).get(organizer['organizerId']) is not None

    def test_existing_organizer_is_returned(self, make_organizer, http_event, auth_headers, lambda_context):
        existing = make_organizer()

        response = lambda_handler(
            http_event('POST', '/organizers', {'name': 'Another Club', 'contact': 'x@example.com'}, auth_headers()),
            lambda_context,
        )

        organizer = _body(response)['data']['organizer']
        assert organizer['organizerId'] == existing.organizer_id
        assert organizer['name'] == existing.name

    def test_missing_contact(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(http_event('POST', '/organizers', {'name': 'Club'}, auth_headers()), lambda_context)

        assert response['statusCode'] == 422

    def test_plain_user_is_rejected(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(
            http_event('POST', '/organizers', {'name': 'Club', 'contact': 'c'}, auth_headers('user_plain', 'user')),
            lambda_context,
        )

        assert response['statusCode'] == 403
        assert _body(response)['error']['code'] == 'INSUFFICIENT_PERMISSIONS'

    def test_requires_token(self, http_event, lambda_context):
        response = lambda_handler(http_event('POST', '/organizers', {'name': 'Club', 'contact': 'c'}), lambda_context)

        assert response['statusCode'] == 401


@pytest.mark.usefixtures('dynamodb_table')
class TestReadOrganizer:
    """Test cases for reading organizers."""

    def test_me(self, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer()

        response = lambda_handler(http_event('GET', '/organizers/me', headers=auth_headers()), lambda_context)

        assert response['statusCode'] == 200
        assert _body(response)['data']['organizer']['organizerId'] == organizer.organizer_id

    def test_me_without_profile(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(http_event('GET', '/organizers/me', headers=auth_headers()), lambda_context)

        assert response['statusCode'] == 404

    def test_get_own(self, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer()

        response = lambda_handler(
            http_event('GET', f'/organizers/{organizer.organizer_id}', headers=auth_headers()), lambda_context,
        )

        assert _body(response)['data']['organizer']['name'] == organizer.name

    def test_other_users_organizer_is_hidden(self, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer(clerk_id='user_other')

        response = lambda_handler(
            http_event('GET', f'/organizers/{organizer.organizer_id}', headers=auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 404

    def test_admin_reads_any(self, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer(clerk_id='user_other')

        response = lambda_handler(
            http_event('GET', f'/organizers/{organizer.organizer_id}', headers=auth_headers('user_admin', 'admin')),
            lambda_context,
        )

        assert response['statusCode'] == 200

    def test_malformed_id(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(http_event('GET', '/organizers/not-a-ulid', headers=auth_headers()), lambda_context)

        assert response['statusCode'] == 400


@pytest.mark.usefixtures('dynamodb_table')
class TestChangeOrganizer:
    """Test cases for PATCH and DELETE /organizers/{organizerId}."""

    def test_update_and_clear_website(self, db, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer()

        response = lambda_handler(
            http_event('PATCH', f'/organizers/{organizer.organizer_id}', {'name': 'New Name', 'website': ''}, auth_headers()),
            lambda_context,
        )

        assert response['statusCode'] == 200
        assert 'website' not in _body(response)['data']['organizer']
        stored = OrganizerRepository(db).get(organizer.organizer_id)
        assert stored.name == 'New Name'
        assert stored.website is None

    def test_update_by_other_user(self, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer(clerk_id='user_other')

        response = lambda_handler(
            http_event('PATCH', f'/organizers/{organizer.organizer_id}', {'name': 'Mine'}, auth_headers()),
            lambda_context,
        )

        assert response['statusCode'] == 403

    def test_update_unknown(self, http_event, auth_headers, lambda_context):
        response = lambda_handler(
            http_event('PATCH', f'/organizers/{generate_organizer_id()}', {'name': 'x'}, auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 404

    def test_delete(self, db, make_organizer, http_event, auth_headers, lambda_context):
        organizer = make_organizer()

        response = lambda_handler(
            http_event('DELETE', f'/organizers/{organizer.organizer_id}', headers=auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 204
        assert OrganizerRepository(db).get(organizer.organizer_id) is None

    def test_delete_with_events(self, db, make_organizer, make_event, http_event, auth_headers, lambda_context):
        organizer = make_organizer()
        make_event(organizer_id=organizer.organizer_id, title='Night Run')

        response = lambda_handler(
            http_event('DELETE', f'/organizers/{organizer.organizer_id}', headers=auth_headers()), lambda_context,
        )

        assert response['statusCode'] == 409
        error = _body(response)['error']
        assert error['details']['eventCount'] == 1
        assert 'Night Run' in error['message']
        assert OrganizerRepository(db).get(organizer.organizer_id) is not None

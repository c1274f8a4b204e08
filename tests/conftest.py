"""
Pytest configuration and shared fixtures for the EventHub API.

Unit tests run against plain objects and mocks; integration tests run the
repositories and the Lambda handlers against a moto DynamoDB table that has
every secondary index of the production table.
"""

import json
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from unittest.mock import Mock
from urllib.parse import urlencode

import boto3
import jwt
import pytest
from moto import mock_aws

# Tracing stays off for the whole run, before any module builds its Tracer
os.environ.setdefault('POWERTOOLS_TRACE_DISABLED', 'true')
os.environ.setdefault('POWERTOOLS_METRICS_NAMESPACE', 'EventHubTest')

TABLE_NAME = 'test-eventhub-table'
REGION = 'us-east-1'
JWT_SECRET = 'test-session-secret-with-at-least-32-bytes'

_INDEXES = {
    'CreatorIndex': ('creatorId', 'date'),
    'OrganizerIndex': ('eventOrganizerId', 'date'),
    'SlugIndex': ('slug', 'slugDate'),
    'TypeIndex': ('type', 'typeDate'),
    'DifficultyIndex': ('difficulty', 'difficultyDate'),
    'FeaturedIndex': ('featuredStatus', 'date'),
    'EnabledIndex': ('enabledStatus', 'date'),
    'ClerkIndex': ('clerkId', 'createdAt'),
    'EventRegistrationIndex': ('eventRegistrationId', 'registrationDate'),
    'PaymentStatusIndex': ('eventPaymentStatus', 'paymentDate'),
    'EventParticipantIndex': ('eventParticipantId', 'participantEmail'),
    'ReservationParticipantIndex': ('reservationParticipantId', 'participantSequence'),
}


@pytest.fixture(autouse=True)
def test_environment(monkeypatch):
    """Set up environment variables and drop every cache built from them."""
    # The modeler re-reads the environment on every call
    monkeypatch.setenv('LAMBDA_ENV_MODELER_DISABLE_CACHE', 'true')
    monkeypatch.setenv('AWS_DEFAULT_REGION', REGION)
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_REGION', REGION)
    monkeypatch.setenv('TABLE_NAME', TABLE_NAME)
    monkeypatch.setenv('ENVIRONMENT', 'test')
    monkeypatch.setenv('POWERTOOLS_SERVICE_NAME', 'eventhub-test')
    monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
    monkeypatch.setenv('AUTH_JWT_SECRET', JWT_SECRET)
    monkeypatch.setenv('BANK_ACCOUNT', '0123456789')
    monkeypatch.delenv('EMAIL_QUEUE_URL', raising=False)
    monkeypatch.delenv('DYNAMODB_ENDPOINT', raising=False)

    _reset_caches()
    yield
    _reset_caches()


def _reset_caches():
    from eventhub.handlers.email_processor import reset_processor
    from eventhub.handlers.utils import auth_middleware
    from eventhub.handlers.utils.observability import metrics
    from eventhub.handlers.utils.services import reset_services
    from eventhub.notifications import publisher
    from eventhub.security.rate_limiter import default_rate_limiter

    reset_services()
    reset_processor()
    auth_middleware._validator_cache.clear()
    publisher._publisher_cache.clear()
    default_rate_limiter.reset()
    metrics.clear_metrics()


@pytest.fixture
def email_env(monkeypatch):
    """Settings of the email processor."""
    monkeypatch.setenv('EMAIL_API_KEY', 'test-api-key')
    monkeypatch.setenv('EMAIL_API_URL', 'https://email.example.com/api/v2/emails/template')
    monkeypatch.setenv('FROM_EMAIL', 'events@example.com')
    monkeypatch.setenv('FROM_NAME', 'Event Registrations')
    monkeypatch.setenv('INDIVIDUAL_TEMPLATE_ID', '1001')
    monkeypatch.setenv('TEAM_TEMPLATE_ID', '1002')
    monkeypatch.setenv('CONFIRMATION_TEMPLATE_ID', '1003')


# AWS fixtures
@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def dynamodb_table(aws):
    """Create the mock single table with all secondary indexes."""
    dynamodb = boto3.resource('dynamodb', region_name=REGION)

    attributes = {'pk', 'sk'}
    for hash_key, range_key in _INDEXES.values():
        attributes.update((hash_key, range_key))

    table = dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {'AttributeName': 'pk', 'KeyType': 'HASH'},
            {'AttributeName': 'sk', 'KeyType': 'RANGE'},
        ],
        AttributeDefinitions=[{'AttributeName': name, 'AttributeType': 'S'} for name in sorted(attributes)],
        GlobalSecondaryIndexes=[
            {
                'IndexName': index_name,
                'KeySchema': [
                    {'AttributeName': hash_key, 'KeyType': 'HASH'},
                    {'AttributeName': range_key, 'KeyType': 'RANGE'},
                ],
                'Projection': {'ProjectionType': 'ALL'},
            }
            for index_name, (hash_key, range_key) in _INDEXES.items()
        ],
        BillingMode='PAY_PER_REQUEST',
    )
    table.wait_until_exists()
    yield table


@pytest.fixture
def email_queue(aws, monkeypatch):
    """Mock SQS queue; setting its URL turns notifications on."""
    sqs = boto3.client('sqs', region_name=REGION)
    queue_url = sqs.create_queue(QueueName='test-email-queue')['QueueUrl']
    monkeypatch.setenv('EMAIL_QUEUE_URL', queue_url)
    yield sqs, queue_url


@pytest.fixture
def db(dynamodb_table):
    from eventhub.dal import get_dal_handler

    return get_dal_handler(TABLE_NAME, region_name=REGION)


# Data fixtures
@pytest.fixture
def build_event() -> Callable[..., Any]:
    """Build an unsaved event; keyword arguments override the defaults."""
    from eventhub.models.event import Event
    from eventhub.utils.ulid import generate_event_id

    def factory(**overrides):
        event_id = overrides.pop('event_id', None) or generate_event_id()
        data = dict(
            event_id=event_id,
            creator_id='user_creator',
            organizer_id='01HZX3K9Q4ORGANIZER0000000',
            title='Coastal Half Marathon',
            type='running',
            date=(datetime.now(timezone.utc) + timedelta(days=60)).date().isoformat(),
            is_team_event=False,
            required_participants=1,
            max_participants=100,
            current_participants=0,
            location='Cancun',
            description='21k along the coast',
            distance='21k',
            registration_fee=50.0,
            registration_deadline=(datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
            image='https://example.com/event.jpg',
            difficulty='intermediate',
            tags=['running'],
            slug=f'event-{event_id.lower()}',
            is_enabled=True,
        )
        data.update(overrides)
        return Event(**data)

    return factory


@pytest.fixture
def make_event(db, build_event) -> Callable[..., Any]:
    """Store an event built by ``build_event``."""
    from eventhub.dal.event_repository import EventRepository

    repository = EventRepository(db)

    def factory(**overrides):
        return repository.create(build_event(**overrides))

    return factory


@pytest.fixture
def make_organizer(db) -> Callable[..., Any]:
    """Store an organizer owned by ``clerk_id``."""
    from eventhub.dal.organizer_repository import OrganizerRepository
    from eventhub.models.organizer import Organizer
    from eventhub.utils.ulid import generate_organizer_id

    repository = OrganizerRepository(db)

    def factory(clerk_id: str = 'user_creator', **overrides):
        data = dict(
            organizer_id=generate_organizer_id(),
            clerk_id=clerk_id,
            name='Riviera Running Club',
            contact='club@example.com',
            website='https://club.example.com',
        )
        data.update(overrides)
        return repository.create(Organizer(**data))

    return factory


@pytest.fixture
def participant_data() -> Callable[..., Dict[str, Any]]:
    def factory(email: str = 'runner@example.com', **overrides) -> Dict[str, Any]:
        data = {
            'email': email,
            'firstName': 'Ana',
            'lastName': 'Lopez',
            'waiver': True,
            'newsletter': False,
        }
        data.update(overrides)
        return data

    return factory


# Auth fixtures
def make_token(user_id: str, role: str = 'organizer', email: Optional[str] = None, expires_in: int = 3600) -> str:
    now = int(time.time())
    claims = {
        'sub': user_id,
        'role': role,
        'email': email or f'{user_id}@example.com',
        'iat': now,
        'exp': now + expires_in,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm='HS256')


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    def factory(user_id: str = 'user_creator', role: str = 'organizer', expires_in: int = 3600) -> Dict[str, str]:
        return {'Authorization': f'Bearer {make_token(user_id, role, expires_in=expires_in)}'}

    return factory


# API Gateway fixtures
def make_http_event(
    method: str,
    path: str,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
    source_ip: str = '203.0.113.10',
) -> Dict[str, Any]:
    """API Gateway HTTP API (payload v2) event."""
    request_headers = {'content-type': 'application/json', 'user-agent': 'pytest'}
    request_headers.update({name.lower(): value for name, value in (headers or {}).items()})

    if body is not None and not isinstance(body, str):
        body = json.dumps(body)

    return {
        'version': '2.0',
        'routeKey': '$default',
        'rawPath': path,
        'rawQueryString': urlencode(query or {}),
        'headers': request_headers,
        'queryStringParameters': query or None,
        'requestContext': {
            'accountId': '123456789012',
            'apiId': 'api-id',
            'domainName': 'api.example.com',
            'domainPrefix': 'api',
            'http': {
                'method': method,
                'path': path,
                'protocol': 'HTTP/1.1',
                'sourceIp': source_ip,
                'userAgent': 'pytest',
            },
            'requestId': 'test-request-id-123',
            'routeKey': '$default',
            'stage': '$default',
            'time': '01/Jan/2025:12:00:00 +0000',
            'timeEpoch': 1735732800000,
        },
        'body': body,
        'isBase64Encoded': False,
    }


@pytest.fixture
def http_event() -> Callable[..., Dict[str, Any]]:
    return make_http_event


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context for testing."""
    context = Mock()
    context.function_name = 'test-lambda-function'
    context.function_version = '1'
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-lambda-function'
    context.memory_limit_in_mb = 512
    context.get_remaining_time_in_millis = lambda: 30000
    context.aws_request_id = 'test-request-id-123'
    context.log_group_name = '/aws/lambda/test-lambda-function'
    context.log_stream_name = '2025/01/01/[$LATEST]test123'
    return context


def response_body(response: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(response['body'])


@pytest.fixture
def mock_dynamodb_error():
    """Build botocore ClientErrors for error handling tests."""
    from botocore.exceptions import ClientError

    def create_error(error_code: str, message: str = 'Test error', **extra):
        error_response = {'Error': {'Code': error_code, 'Message': message}}
        error_response.update(extra)
        return ClientError(error_response=error_response, operation_name='TestOperation')

    return create_error


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line('markers', 'unit: Unit tests')
    config.addinivalue_line('markers', 'integration: Integration tests against moto')


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if 'unit' in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif 'integration' in str(item.fspath):
            item.add_marker(pytest.mark.integration)

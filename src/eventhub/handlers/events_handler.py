"""
Events Handler - Lambda function for the event catalogue API.

Public routes list and read enabled events; creating, updating and deleting
events requires an authenticated user, and listing a creator's events requires
the organizer or admin role.
"""

from typing import Any, Dict

from aws_lambda_powertools.event_handler import APIGatewayHttpResolver, CORSConfig
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from eventhub.handlers.utils.auth_middleware import AuthOptions, get_authenticated_user, with_auth
from eventhub.handlers.utils.middleware import HandlerResponse, parse_json_body, parse_request_model, with_middleware
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.handlers.utils.services import get_services
from eventhub.models.input import CreateEventRequest
from eventhub.utils.pagination import FEATURED_DEFAULT_LIMIT, PaginationParams

cors_config = CORSConfig(
    allow_origin='*',
    max_age=600,
    allow_headers=['Content-Type', 'Authorization'],
)

app = APIGatewayHttpResolver(cors=cors_config)


def _events_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'events': [event.to_response() for event in page['data']],
        'pagination': page['pagination'],
    }


@app.get('/events')
@with_middleware
def list_events():
    query = app.current_event.query_string_parameters or {}
    params = PaginationParams.from_query(query)
    logger.debug('Listing events', extra={'query': query})

    page = get_services().events.list_events(
        event_type=query.get('type'),
        difficulty=query.get('difficulty'),
        limit=params.limit,
        next_token=params.next_token,
    )
    return _events_page(page)


@app.get('/events/featured')
@with_middleware
def list_featured_events():
    params = PaginationParams.from_query(app.current_event.query_string_parameters, default_limit=FEATURED_DEFAULT_LIMIT)
    page = get_services().events.list_featured_events(limit=params.limit, next_token=params.next_token)
    return _events_page(page)


@app.get('/events/slug/<slug>')
@with_middleware
def get_event_by_slug(slug: str):
    event = get_services().events.get_event_by_slug(slug)
    return {'event': event.to_response()}


@app.get('/events/creator/<creator_id>')
@with_middleware
@with_auth(app, AuthOptions(required_roles=['organizer', 'admin']))
def list_events_by_creator(creator_id: str):
    params = PaginationParams.from_query(app.current_event.query_string_parameters)
    page = get_services().events.list_events_by_creator(creator_id, limit=params.limit, next_token=params.next_token)
    return _events_page(page)


@app.get('/events/<event_id>')
@with_middleware
def get_event(event_id: str):
    event = get_services().events.get_event(event_id)
    return {'event': event.to_response()}


@app.post('/events')
@with_middleware
@with_auth(app)
def create_event():
    """
    Create an event for the caller's organizer, or for ``organizerId`` when given.

    Returns:
        201 with the created event
    """
    user = get_authenticated_user(app)
    request = parse_request_model(CreateEventRequest, parse_json_body(app.current_event.body))

    tracer.put_annotation('event_type', request.type)
    event = get_services().events.create_event(request, user)

    logger.info('Event created successfully', extra={'event_id': event.event_id, 'creator_id': user.id})
    return HandlerResponse(
        data={'event': event.to_response()},
        status_code=201,
        headers={'Location': f'/events/{event.event_id}'},
    )


@app.patch('/events/<event_id>')
@with_middleware
@with_auth(app)
def update_event(event_id: str):
    user = get_authenticated_user(app)
    body = parse_json_body(app.current_event.body)

    event = get_services().events.update_event(event_id, body, user)

    logger.info('Event updated successfully', extra={'event_id': event_id, 'updated_fields': sorted(body)})
    return {'event': event.to_response()}


@app.delete('/events/<event_id>')
@with_middleware
@with_auth(app)
def delete_event(event_id: str):
    user = get_authenticated_user(app)
    get_services().events.delete_event(event_id, user)
    return HandlerResponse(data=None, status_code=204)


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_HTTP)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    Args:
        event: API Gateway HTTP API (payload v2) event
        context: Lambda context object

    Returns:
        API Gateway response
    """
    return app.resolve(event, context)

"""
Organizers Handler - Lambda function for organizer profiles.

Every route requires the organizer or admin role. Users only see and change
their own organizer; admins see and change all of them.
"""

from typing import Any, Dict

from aws_lambda_powertools.event_handler import APIGatewayHttpResolver, CORSConfig
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from eventhub.handlers.utils.auth_middleware import get_authenticated_user, with_role
from eventhub.handlers.utils.middleware import HandlerResponse, parse_json_body, parse_request_model, with_middleware
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.handlers.utils.services import get_services
from eventhub.logic.organizer_service import validate_organizer_id_format
from eventhub.models.input import OrganizerRequest

ORGANIZER_ROLES = ['organizer', 'admin']

cors_config = CORSConfig(
    allow_origin='*',
    max_age=600,
    allow_headers=['Content-Type', 'Authorization'],
)

app = APIGatewayHttpResolver(cors=cors_config)


@app.post('/organizers')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def create_organizer():
    """Create the caller's organizer; an existing one is returned unchanged."""
    user = get_authenticated_user(app)
    request = parse_request_model(OrganizerRequest, parse_json_body(app.current_event.body))

    organizer = get_services().organizers.create_organizer(request, user)

    logger.info('Organizer create request completed', extra={'organizer_id': organizer.organizer_id, 'user_id': user.id})
    return HandlerResponse(data={'organizer': organizer.to_response()}, status_code=201)


@app.get('/organizers/me')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def get_my_organizer():
    user = get_authenticated_user(app)
    organizer = get_services().organizers.get_organizer_by_clerk_id(user.id)
    return {'organizer': organizer.to_response()}


@app.get('/organizers/<organizer_id>')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def get_organizer(organizer_id: str):
    validate_organizer_id_format(organizer_id)
    user = get_authenticated_user(app)
    organizer = get_services().organizers.validate_organizer_exists(organizer_id, user)
    return {'organizer': organizer.to_response()}


@app.patch('/organizers/<organizer_id>')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def update_organizer(organizer_id: str):
    validate_organizer_id_format(organizer_id)
    user = get_authenticated_user(app)
    request = parse_request_model(OrganizerRequest, parse_json_body(app.current_event.body))

    organizer = get_services().organizers.update_organizer(organizer_id, request, user)
    return {'organizer': organizer.to_response()}


@app.delete('/organizers/<organizer_id>')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def delete_organizer(organizer_id: str):
    validate_organizer_id_format(organizer_id)
    user = get_authenticated_user(app)
    get_services().organizers.delete_organizer(organizer_id, user)
    return HandlerResponse(data=None, status_code=204)


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_HTTP)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)

"""
Registrations Handler - Lambda function for event registrations.

Anyone may register for an event, subject to a per-client rate limit. A body
with a ``participants`` array is a team registration, any other body an
individual one; an explicit ``registrationType`` takes precedence. Reading,
deleting and marking reservations as paid is reserved to the event's creator
and admins.
"""

from typing import Any, Dict, List, Mapping

from aws_lambda_powertools.event_handler import APIGatewayHttpResolver, CORSConfig
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from eventhub.handlers.utils.auth_middleware import AuthOptions, get_authenticated_user, with_auth, with_role
from eventhub.handlers.utils.errors import BadRequestError, ValidationError
from eventhub.handlers.utils.middleware import HandlerResponse, parse_json_body, parse_request_model, with_middleware
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.handlers.utils.services import get_services
from eventhub.logic.base_registration import validate_event_id_format
from eventhub.models.input import PaymentStatusRequest
from eventhub.security.rate_limiter import RateLimitConfig
from eventhub.security.rbac import Permission
from eventhub.utils.ulid import is_valid_ulid

REGISTRATION_RATE_LIMIT = RateLimitConfig(max_attempts=10, window_ms=60_000)

ORGANIZER_ROLES = ['organizer', 'admin']

# Fields that identify an individual registration body
INDIVIDUAL_FIELDS = ('email', 'firstName', 'lastName', 'waiver', 'newsletter')

# Team level fields copied onto the first participant when it has none
CAPTAIN_FIELDS = ('address', 'city', 'state', 'zipCode', 'country', 'medicalConditions', 'medications', 'allergies')

cors_config = CORSConfig(
    allow_origin='*',
    max_age=600,
    allow_headers=['Content-Type', 'Authorization'],
)

app = APIGatewayHttpResolver(cors=cors_config)


def detect_registration_type(body: Mapping[str, Any]) -> str:
    """
    Raises:
        ValidationError: If the body matches neither registration shape
    """
    explicit = body.get('registrationType')
    if explicit is not None:
        if explicit not in ('individual', 'team'):
            raise ValidationError("registrationType must be 'individual' or 'team'", details={'registrationType': explicit})
        return explicit

    if 'participants' in body:
        return 'team'
    if any(field in body for field in INDIVIDUAL_FIELDS):
        return 'individual'

    raise ValidationError(
        'Invalid registration format. Must be either individual registration (with email, firstName, lastName) '
        'or team registration (with participants array)'
    )


def prepare_team_participants(body: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Participants of a team body with team level values filled in.

    ``waiver`` and ``newsletter`` given for the team apply to every participant
    that does not set its own; address and medical fields go to the captain.

    Raises:
        ValidationError: If participants is not an array or a team level value has the wrong type
    """
    participants = body.get('participants')
    if not isinstance(participants, list):
        raise ValidationError('Participants must be an array')

    for flag in ('waiver', 'newsletter'):
        if flag in body and not isinstance(body[flag], bool):
            raise ValidationError(f'Team-level {flag} must be a boolean')
    for field in CAPTAIN_FIELDS:
        if body.get(field) is not None and not isinstance(body[field], str):
            raise ValidationError(f'Team-level {field} must be a string if provided')

    prepared = [dict(participant) if isinstance(participant, Mapping) else participant for participant in participants]

    for participant in prepared:
        if not isinstance(participant, dict):
            continue
        for flag in ('waiver', 'newsletter'):
            if flag in body and participant.get(flag) is None:
                participant[flag] = body[flag]

    if prepared and isinstance(prepared[0], dict):
        captain = prepared[0]
        for field in CAPTAIN_FIELDS:
            if body.get(field) is not None and not captain.get(field):
                captain[field] = body[field]

    return prepared


def _validate_reservation_id(reservation_id: str) -> None:
    if not reservation_id or not reservation_id.strip():
        raise BadRequestError('Missing reservationId parameter in path')
    if not is_valid_ulid(reservation_id):
        logger.warning('Invalid reservationId format', extra={'reservation_id': reservation_id})
        raise BadRequestError('Invalid reservationId format. Must be a valid ULID.', details={'reservationId': reservation_id})


@app.post('/events/<event_id>/registrations')
@with_middleware
@with_auth(app, AuthOptions(require_auth=False, rate_limit=REGISTRATION_RATE_LIMIT))
def create_registration(event_id: str):
    """
    Register an individual or a team for an event.

    Returns:
        201 with the reservation and its participants
    """
    validate_event_id_format(event_id)
    body = parse_json_body(app.current_event.body)
    registration_type = detect_registration_type(body)
    services = get_services()

    if registration_type == 'team':
        participants = prepare_team_participants(body)
        logger.info('Processing team registration', extra={'event_id': event_id, 'participant_count': len(participants)})
        result = services.team_registrations.register_team(event_id, participants)
        result['message'] = 'Team registration created successfully'
    else:
        data = {field: value for field, value in body.items() if field != 'registrationType'}
        logger.info('Processing individual registration', extra={'event_id': event_id})
        result = services.individual_registrations.register_individual(event_id, data)
        participant = result['participants'][0]
        result['participantId'] = participant['participantId']
        result['email'] = participant['email']
        result['message'] = 'Individual registration created successfully'

    logger.info('Registration created successfully', extra={
        'event_id': event_id,
        'reservation_id': result['reservationId'],
        'registration_type': registration_type,
    })
    return HandlerResponse(data=result, status_code=201)


@app.get('/events/<event_id>/participants')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def get_participants_by_event(event_id: str):
    user = get_authenticated_user(app)
    result = get_services().participants.get_participants_by_event(event_id, user)
    result['eventId'] = event_id
    return result


@app.get('/registrations/<reservation_id>')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def get_registration(reservation_id: str):
    _validate_reservation_id(reservation_id)
    user = get_authenticated_user(app)
    return get_services().registration_admin.get_registration_with_participants(reservation_id, user)


@app.patch('/registrations/<reservation_id>/payment')
@with_middleware
@with_auth(app, AuthOptions(required_permissions=[Permission.MANAGE_EVENTS]))
def update_payment_status(reservation_id: str):
    """
    Mark a reservation as paid or unpaid.

    Body: ``{"paymentStatus": bool, "paymentDate": ISO 8601 timestamp, optional}``
    """
    _validate_reservation_id(reservation_id)
    user = get_authenticated_user(app)
    request = parse_request_model(PaymentStatusRequest, parse_json_body(app.current_event.body))

    result = get_services().payments.update_payment_status(
        reservation_id,
        request.payment_status,
        payment_date=request.payment_date,
        requester=user,
    )
    result['message'] = f'Payment status updated to {"paid" if result["paymentStatus"] else "unpaid"} successfully'
    return result


@app.delete('/registrations/<reservation_id>')
@with_middleware
@with_role(app, ORGANIZER_ROLES)
def delete_registration(reservation_id: str):
    _validate_reservation_id(reservation_id)
    user = get_authenticated_user(app)
    return get_services().registration_admin.delete_registration(reservation_id, user)


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_HTTP)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)

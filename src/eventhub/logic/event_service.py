"""
Business Logic Layer for event management.

Events are created by organizers and admins. The slug, the team flag and the
creator are fixed at creation; ``isFeatured`` is only changed by admins and
``currentParticipants`` only by registrations.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.dal.dynamodb_handler import ConditionalCheckFailedError
from eventhub.dal.event_repository import EventRepository
from eventhub.dal.registration_repository import RegistrationRepository
from eventhub.handlers.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from eventhub.handlers.utils.middleware import parse_request_model
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.logic.organizer_service import OrganizerService
from eventhub.logic.slug import generate_unique_slug
from eventhub.models.event import Event
from eventhub.models.input import CreateEventRequest, UpdateEventRequest
from eventhub.security.rbac import is_admin
from eventhub.security.session import AuthUser
from eventhub.utils.pagination import DEFAULT_LIMIT, FEATURED_DEFAULT_LIMIT
from eventhub.utils.ulid import generate_event_id


def validate_team_event_capacity(is_team_event: bool, max_participants: int, required_participants: int) -> None:
    """
    Team events must fit a whole number of teams.

    Raises:
        BadRequestError: With the two nearest valid values suggested
    """
    if not is_team_event or max_participants % required_participants == 0:
        return

    suggested_max = (max_participants // required_participants) * required_participants
    next_valid_max = suggested_max + required_participants
    raise BadRequestError(
        f'For team events, maxParticipants ({max_participants}) must be a multiple of requiredParticipants '
        f'({required_participants}). Suggested values: {suggested_max} or {next_valid_max}',
        details={
            'maxParticipants': max_participants,
            'requiredParticipants': required_participants,
            'suggestedValues': [suggested_max, next_valid_max],
            'availableTeamSlots': max_participants // required_participants,
        },
    )


class EventService:
    """Business logic service for events."""

    def __init__(
        self,
        events: EventRepository,
        registrations: RegistrationRepository,
        organizer_service: OrganizerService,
    ):
        self.events = events
        self.registrations = registrations
        self.organizer_service = organizer_service

    def _resolve_organizer_id(self, requested_id: Optional[str], user: AuthUser) -> str:
        if requested_id:
            if is_admin(user):
                return self.organizer_service.get_organizer(requested_id).organizer_id
            return self.organizer_service.validate_organizer_exists(requested_id, user).organizer_id

        try:
            organizer = self.organizer_service.get_organizer_by_clerk_id(user.id)
        except NotFoundError:
            raise BadRequestError(
                'No organizer profile found for user. Please create an organizer profile first or provide a valid organizerId.',
                details={'creatorId': user.id},
            )
        logger.debug('Organizer injected from user', extra={'organizer_id': organizer.organizer_id, 'user_id': user.id})
        return organizer.organizer_id

    @tracer.capture_method
    def create_event(self, request: CreateEventRequest, user: AuthUser) -> Event:
        """
        Create an event owned by ``user``.

        Without an ``organizerId`` the user's own organizer is used. Admins may
        publish for any organizer, everyone else only for their own.

        Raises:
            BadRequestError: Team capacity rule, missing organizer profile or unusable title
            NotFoundError: Unknown or foreign organizer
        """
        validate_team_event_capacity(request.is_team_event, request.max_participants, request.required_participants)
        organizer_id = self._resolve_organizer_id(request.organizer_id, user)
        slug = generate_unique_slug(request.title, self.events.slug_exists)

        now = datetime.now(timezone.utc).isoformat()
        event = Event(
            event_id=generate_event_id(),
            creator_id=user.id,
            organizer_id=organizer_id,
            title=request.title,
            type=request.type,
            date=request.date,
            is_featured=False,
            is_team_event=request.is_team_event,
            is_relay=request.is_relay,
            required_participants=request.required_participants,
            max_participants=request.max_participants,
            current_participants=0,
            location=request.location,
            description=request.description,
            distance=request.distance,
            registration_fee=request.registration_fee,
            registration_deadline=request.registration_deadline,
            image=request.image,
            difficulty=request.difficulty,
            tags=request.tags or [],
            slug=slug,
            is_enabled=True,
            created_at=now,
            updated_at=now,
        )

        created = self.events.create(event)
        metrics.add_metric(name='EventCreated', unit=MetricUnit.Count, value=1)
        logger.info('Event created', extra={'event_id': created.event_id, 'slug': slug, 'creator_id': user.id})
        return created

    @tracer.capture_method
    def update_event(self, event_id: str, body: Mapping[str, Any], user: AuthUser) -> Event:
        """
        Apply a partial update from a request body.

        ``isTeamEvent`` is silently ignored, as is ``isFeatured`` for non-admins.

        Raises:
            BadRequestError: Slug change, capacity below registrations or team capacity rule
            ValidationError: Invalid field values
            NotFoundError: Unknown event
            ForbiddenError: User neither created the event nor is an admin
            ConflictError: Registrations arrived that the new capacity does not cover
        """
        if 'slug' in body:
            raise BadRequestError('Event slug cannot be modified after creation')

        request = parse_request_model(UpdateEventRequest, body)
        changes: Dict[str, Any] = {
            field: value for field, value in request.model_dump(exclude_unset=True).items() if value is not None
        }

        existing = self.get_event(event_id)

        max_participants = changes.get('max_participants', existing.max_participants)
        if max_participants < existing.current_participants:
            raise BadRequestError(
                f'Cannot reduce maxParticipants ({max_participants}) below current registrations '
                f'({existing.current_participants}). Minimum allowed value: {existing.current_participants}',
                details={
                    'requestedMaxParticipants': max_participants,
                    'currentParticipants': existing.current_participants,
                    'minimumAllowed': existing.current_participants,
                },
            )

        validate_team_event_capacity(
            existing.is_team_event,
            max_participants,
            changes.get('required_participants', existing.required_participants),
        )

        if not is_admin(user) and existing.creator_id != user.id:
            logger.warning('Event update denied', extra={'event_id': event_id, 'user_id': user.id})
            raise ForbiddenError('You can only update events you created')

        if changes.pop('is_team_event', None) is not None:
            logger.debug('Ignoring isTeamEvent, fixed after creation', extra={'event_id': event_id})
        if not is_admin(user) and changes.pop('is_featured', None) is not None:
            logger.debug('Ignoring isFeatured from non-admin', extra={'event_id': event_id, 'user_id': user.id})

        changes['updated_at'] = datetime.now(timezone.utc).isoformat()
        try:
            updated = self.events.update(existing, changes)
        except ConditionalCheckFailedError:
            raise ConflictError(
                'Event changed while updating. Current registrations may exceed the requested capacity.',
                details={'eventId': event_id},
            )

        metrics.add_metric(name='EventUpdated', unit=MetricUnit.Count, value=1)
        logger.info('Event updated', extra={'event_id': event_id, 'updated_fields': sorted(changes)})
        return updated

    @tracer.capture_method
    def get_event(self, event_id: str) -> Event:
        event = self.events.get(event_id)
        if event is None:
            raise NotFoundError('Event not found', details={'eventId': event_id})
        return event

    @tracer.capture_method
    def get_event_by_slug(self, slug: str) -> Event:
        event = self.events.get_by_slug(slug)
        if event is None:
            raise NotFoundError('Event not found', details={'slug': slug})
        return event

    @tracer.capture_method
    def list_events(
        self,
        event_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        next_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        List enabled events.

        Filters do not combine: ``type`` wins over ``difficulty``, and without
        either all enabled events are listed.
        """
        if event_type:
            logger.debug('Listing events by type', extra={'type': event_type, 'ignored_difficulty': difficulty})
            return self.events.query_by_type(event_type, limit, next_token)
        if difficulty:
            return self.events.query_by_difficulty(difficulty, limit, next_token)
        return self.events.query_enabled(limit, next_token)

    @tracer.capture_method
    def list_featured_events(self, limit: int = FEATURED_DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self.events.query_featured(limit, next_token)

    @tracer.capture_method
    def list_events_by_creator(self, creator_id: str, limit: int = DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self.events.query_by_creator(creator_id, limit, next_token)

    @tracer.capture_method
    def delete_event(self, event_id: str, user: AuthUser) -> None:
        """
        Raises:
            NotFoundError: Unknown event
            ForbiddenError: User neither created the event nor is an admin
            ConflictError: The event has registrations
        """
        event = self.get_event(event_id)
        if not is_admin(user) and event.creator_id != user.id:
            logger.warning('Event deletion denied', extra={'event_id': event_id, 'user_id': user.id})
            raise ForbiddenError('You can only delete events you created')

        if event.current_participants > 0 or self.registrations.has_registrations(event_id):
            raise ConflictError(
                'Cannot delete an event that has registrations. Disable it instead.',
                details={'eventId': event_id, 'currentParticipants': event.current_participants},
            )

        self.events.delete(event_id)
        logger.info('Event deleted', extra={'event_id': event_id, 'deleted_by': user.id})

"""
Organizer profiles.

Each external account owns at most one organizer in the normal flow; creating
a second one returns the existing profile. Only the owner or an admin may
change or delete an organizer, and an organizer that still has events can not
be deleted.
"""

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.dal.event_repository import EventRepository
from eventhub.dal.organizer_repository import OrganizerRepository
from eventhub.handlers.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.models.input import OrganizerRequest
from eventhub.models.organizer import Organizer
from eventhub.security.rbac import is_admin
from eventhub.security.session import AuthUser
from eventhub.utils.ulid import generate_organizer_id, is_valid_organizer_id

_URL_PATTERN = re.compile(r'^https?://.+', re.IGNORECASE)
_LIMITS = {'name': 255, 'contact': 255, 'website': 500, 'description': 1000}


def sanitize_website(website: Optional[str]) -> Optional[str]:
    """Trim and add ``https://`` when no scheme is given; empty means clear."""
    if website is None:
        return None
    trimmed = website.strip()
    if not trimmed:
        return ''
    if not re.match(r'^https?://', trimmed, re.IGNORECASE):
        return f'https://{trimmed}'
    return trimmed


def sanitize_organizer_request(request: OrganizerRequest) -> Dict[str, str]:
    """Sanitized values of the fields present in the request."""
    sanitized: Dict[str, str] = {}
    if request.name is not None:
        sanitized['name'] = re.sub(r'\s+', ' ', request.name.strip())
    if request.contact is not None:
        sanitized['contact'] = request.contact.strip()
    if request.website is not None:
        sanitized['website'] = sanitize_website(request.website)
    if request.description is not None:
        sanitized['description'] = request.description.strip()
    return sanitized


def _check_lengths(data: Dict[str, str]) -> None:
    for field, limit in _LIMITS.items():
        if field in data and len(data[field]) > limit:
            raise ValidationError(f'{field.capitalize()} must be {limit} characters or less')
    website = data.get('website')
    if website and not _URL_PATTERN.match(website):
        raise ValidationError('Website must be a valid URL starting with http:// or https://')


def validate_create_data(data: Dict[str, str]) -> None:
    if not data.get('name'):
        raise ValidationError('Name is required and must be a non-empty string')
    if not data.get('contact'):
        raise ValidationError('Contact is required and must be a non-empty string')
    _check_lengths(data)


def validate_update_data(data: Dict[str, str]) -> None:
    if not data:
        raise ValidationError('At least one field must be provided for update')
    if 'name' in data and not data['name']:
        raise ValidationError('Name must be a non-empty string')
    if 'contact' in data and not data['contact']:
        raise ValidationError('Contact must be a non-empty string')
    _check_lengths(data)


def validate_organizer_id_format(organizer_id: str) -> None:
    if not organizer_id or not organizer_id.strip():
        raise BadRequestError('Organizer ID is required')
    if not is_valid_organizer_id(organizer_id):
        raise BadRequestError('Invalid organizer ID format', details={'organizerId': organizer_id})


def check_ownership(organizer: Organizer, user: AuthUser) -> None:
    if not is_admin(user) and organizer.clerk_id != user.id:
        logger.warning('Organizer ownership check failed', extra={'organizer_id': organizer.organizer_id, 'user_id': user.id})
        raise ForbiddenError('You can only modify organizers you created')


class OrganizerService:
    """Business logic for organizer profiles."""

    def __init__(self, organizers: OrganizerRepository, events: EventRepository):
        self.organizers = organizers
        self.events = events

    @tracer.capture_method
    def get_organizer(self, organizer_id: str) -> Organizer:
        organizer = self.organizers.get(organizer_id)
        if organizer is None:
            raise NotFoundError(f'Organizer with ID {organizer_id} not found', details={'organizerId': organizer_id})
        return organizer

    @tracer.capture_method
    def get_organizer_by_clerk_id(self, clerk_id: str) -> Organizer:
        if not isinstance(clerk_id, str) or not clerk_id.strip():
            raise BadRequestError('Invalid Clerk ID format', details={'clerkId': clerk_id})
        organizer = self.organizers.get_by_clerk_id(clerk_id)
        if organizer is None:
            raise NotFoundError(f'Organizer with Clerk ID {clerk_id} not found')
        return organizer

    def validate_organizer_exists(self, organizer_id: str, user: Optional[AuthUser] = None) -> Organizer:
        """
        Load an organizer the user may use.

        Organizers of other accounts are reported as missing so their
        existence is not revealed.
        """
        organizer = self.get_organizer(organizer_id)
        if user is not None and not is_admin(user) and organizer.clerk_id != user.id:
            logger.warning('User does not have access to organizer', extra={'organizer_id': organizer_id, 'user_id': user.id})
            raise NotFoundError(f'Organizer with ID {organizer_id} not found', details={'organizerId': organizer_id})
        return organizer

    @tracer.capture_method
    def create_organizer(self, request: OrganizerRequest, user: AuthUser) -> Organizer:
        """Create the user's organizer, or return the one they already have."""
        data = sanitize_organizer_request(request)
        validate_create_data(data)

        existing = self.organizers.get_by_clerk_id(user.id)
        if existing is not None:
            logger.info('Organizer already exists, returning existing', extra={
                'organizer_id': existing.organizer_id,
                'user_id': user.id,
            })
            return existing

        now = datetime.now(timezone.utc).isoformat()
        organizer = Organizer(
            organizer_id=generate_organizer_id(),
            clerk_id=user.id,
            name=data['name'],
            contact=data['contact'],
            website=data.get('website') or None,
            description=data.get('description') or None,
            created_at=now,
            updated_at=now,
        )
        created = self.organizers.create(organizer)
        metrics.add_metric(name='OrganizerCreated', unit=MetricUnit.Count, value=1)
        logger.info('Organizer created', extra={'organizer_id': created.organizer_id, 'user_id': user.id})
        return created

    @tracer.capture_method
    def update_organizer(self, organizer_id: str, request: OrganizerRequest, user: AuthUser) -> Organizer:
        """
        Apply a partial update; an empty website or description removes it.

        Raises:
            ValidationError: Nothing to update or invalid values
            NotFoundError: Unknown organizer
            ForbiddenError: User neither owns the organizer nor is an admin
        """
        data = sanitize_organizer_request(request)
        validate_update_data(data)

        organizer = self.get_organizer(organizer_id)
        check_ownership(organizer, user)

        removals: List[str] = [field for field in ('website', 'description') if data.get(field) == '']
        changes = {field: value for field, value in data.items() if field not in removals}

        updated = self.organizers.update(organizer_id, changes, removals)
        logger.info('Organizer updated', extra={
            'organizer_id': organizer_id,
            'updated_fields': sorted(changes),
            'removed_fields': removals,
        })
        return updated

    @tracer.capture_method
    def delete_organizer(self, organizer_id: str, user: AuthUser) -> None:
        """
        Raises:
            NotFoundError: Unknown organizer
            ForbiddenError: User neither owns the organizer nor is an admin
            ConflictError: Events still reference the organizer
        """
        organizer = self.get_organizer(organizer_id)
        check_ownership(organizer, user)

        events = self.events.list_by_organizer(organizer_id)
        if events:
            titles = ', '.join(event.title for event in events[:3])
            more = f' and {len(events) - 3} more' if len(events) > 3 else ''
            logger.warning('Cannot delete organizer with events', extra={'organizer_id': organizer_id, 'event_count': len(events)})
            raise ConflictError(
                f'Cannot delete organizer. {len(events)} event(s) are associated with this organizer: {titles}{more}.',
                details={
                    'organizerId': organizer_id,
                    'eventCount': len(events),
                    'events': [{'eventId': event.event_id, 'title': event.title} for event in events],
                },
            )

        self.organizers.delete(organizer_id)
        logger.info('Organizer deleted', extra={'organizer_id': organizer_id, 'user_id': user.id})

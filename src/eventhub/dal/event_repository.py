"""
Event access patterns over the single table.

Listing queries go through the secondary indexes and return pages shaped by
``execute_with_pagination``; filtered listings only return enabled events.
"""

from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from pydantic.alias_generators import to_camel

from eventhub.dal.dynamodb_handler import DynamoDBHandler
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.models.base import to_dynamo_value
from eventhub.models.event import ENABLED_STATUS, FEATURED_STATUS, Event, event_key
from eventhub.utils.pagination import DEFAULT_LIMIT, execute_with_pagination

TABLE_KEY = ['pk', 'sk']

# Immutable or store managed attributes that a partial update never writes
_NON_UPDATABLE_FIELDS = {'event_id', 'creator_id', 'slug', 'created_at', 'current_participants', 'updated_at'}


class EventRepository:
    """Reads and writes event items."""

    def __init__(self, db: DynamoDBHandler):
        self.db = db

    @tracer.capture_method
    def get(self, event_id: str, consistent_read: bool = False) -> Optional[Event]:
        item = self.db.get_item(event_key(event_id), consistent_read=consistent_read)
        return Event.from_item(item) if item else None

    @tracer.capture_method
    def get_by_slug(self, slug: str) -> Optional[Event]:
        page = self.db.query_items(Key('slug').eq(slug), index_name='SlugIndex', limit=1)
        items = page['items']
        return Event.from_item(items[0]) if items else None

    def slug_exists(self, slug: str) -> bool:
        return self.get_by_slug(slug) is not None

    @tracer.capture_method
    def create(self, event: Event) -> Event:
        item = self.db.put_item(event.to_item(), condition_expression=Attr('pk').not_exists())
        logger.info('Event stored', extra={'event_id': event.event_id, 'slug': event.slug})
        return Event.from_item(item)

    @tracer.capture_method
    def update(self, current: Event, changes: Dict[str, Any]) -> Event:
        """
        Apply a partial update and refresh the derived index attributes.

        ``changes`` is keyed by model field name. ``currentParticipants`` is
        never written here, so concurrent registrations are not overwritten.
        When ``max_participants`` changes the write is guarded so it can not
        drop below the stored participant count.

        Raises:
            ConditionalCheckFailedError: If the event vanished or the guard failed
        """
        changes = {field: value for field, value in changes.items() if field not in _NON_UPDATABLE_FIELDS}
        merged = current.model_copy(update=changes)

        attributes: Dict[str, Any] = {}
        for field, value in changes.items():
            attributes[to_camel(field)] = value
        attributes.update(merged.index_attributes())

        removals = []
        if not merged.is_featured:
            removals.append('featuredStatus')
        if not merged.is_enabled:
            removals.append('enabledStatus')

        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        set_clauses = []
        for index, (attribute, value) in enumerate(attributes.items()):
            names[f'#a{index}'] = attribute
            values[f':val{index}'] = to_dynamo_value(value)
            set_clauses.append(f'#a{index} = :val{index}')

        expression = 'SET ' + ', '.join(set_clauses)
        if removals:
            remove_names = []
            for index, attribute in enumerate(removals):
                names[f'#r{index}'] = attribute
                remove_names.append(f'#r{index}')
            expression += ' REMOVE ' + ', '.join(remove_names)

        condition = 'attribute_exists(pk)'
        if 'max_participants' in changes:
            values[':maxAllowed'] = merged.max_participants
            condition += ' AND currentParticipants <= :maxAllowed'

        updated = self.db.update_item(
            key=event_key(current.event_id),
            update_expression=expression,
            expression_attribute_values=values,
            expression_attribute_names=names,
            condition_expression=condition,
        )
        return Event.from_item(updated)

    @tracer.capture_method
    def delete(self, event_id: str) -> bool:
        return self.db.delete_item(event_key(event_id))

    def _paginated_query(
        self,
        key_condition: Any,
        index_name: str,
        index_key: List[str],
        limit: int,
        next_token: Optional[str],
        filter_expression: Optional[Any] = None,
    ) -> Dict[str, Any]:
        def query_page(limit: int, exclusive_start_key: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            return self.db.query_items(
                key_condition,
                filter_expression=filter_expression,
                limit=limit,
                exclusive_start_key=exclusive_start_key,
                index_name=index_name,
            )

        page = execute_with_pagination(query_page, TABLE_KEY + index_key, limit=limit, next_token=next_token)
        page['data'] = [Event.from_item(item) for item in page['data']]
        return page

    @tracer.capture_method
    def query_by_type(self, event_type: str, limit: int = DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self._paginated_query(
            Key('type').eq(event_type), 'TypeIndex', ['type', 'typeDate'], limit, next_token,
            filter_expression=Attr('isEnabled').eq(True),
        )

    @tracer.capture_method
    def query_by_difficulty(self, difficulty: str, limit: int = DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self._paginated_query(
            Key('difficulty').eq(difficulty), 'DifficultyIndex', ['difficulty', 'difficultyDate'], limit, next_token,
            filter_expression=Attr('isEnabled').eq(True),
        )

    @tracer.capture_method
    def query_enabled(self, limit: int = DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self._paginated_query(
            Key('enabledStatus').eq(ENABLED_STATUS), 'EnabledIndex', ['enabledStatus', 'date'], limit, next_token,
        )

    @tracer.capture_method
    def query_featured(self, limit: int, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self._paginated_query(
            Key('featuredStatus').eq(FEATURED_STATUS), 'FeaturedIndex', ['featuredStatus', 'date'], limit, next_token,
            filter_expression=Attr('isEnabled').eq(True),
        )

    @tracer.capture_method
    def query_by_creator(self, creator_id: str, limit: int = DEFAULT_LIMIT, next_token: Optional[str] = None) -> Dict[str, Any]:
        return self._paginated_query(
            Key('creatorId').eq(creator_id), 'CreatorIndex', ['creatorId', 'date'], limit, next_token,
        )

    @tracer.capture_method
    def list_by_organizer(self, organizer_id: str) -> List[Event]:
        items = self.db.query_all(Key('eventOrganizerId').eq(organizer_id), index_name='OrganizerIndex')
        return [Event.from_item(item) for item in items]

    @tracer.capture_method
    def increment_participants(self, event: Event, count: int) -> Event:
        """
        Add ``count`` registered participants without passing maxParticipants.

        Registration flows go through ``RegistrationUnitOfWork``; this is the
        single item form of the same guarded increment.

        Raises:
            ConditionalCheckFailedError: If the event is missing, disabled or would overflow
        """
        updated = self.db.update_item(
            key=event_key(event.event_id),
            update_expression='SET currentParticipants = currentParticipants + :count',
            expression_attribute_values={
                ':count': count,
                ':threshold': event.max_participants - count,
                ':max': event.max_participants,
                ':enabled': True,
            },
            condition_expression=(
                'attribute_exists(pk) AND currentParticipants <= :threshold '
                'AND maxParticipants = :max AND isEnabled = :enabled'
            ),
        )
        logger.info('Participant count incremented', extra={'event_id': event.event_id, 'count': count})
        return Event.from_item(updated)

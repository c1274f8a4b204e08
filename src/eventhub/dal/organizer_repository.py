"""Organizer access patterns over the single table."""

from typing import Any, Dict, Iterable, Optional

from boto3.dynamodb.conditions import Attr, Key

from eventhub.dal.dynamodb_handler import DynamoDBHandler
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.models.organizer import Organizer, organizer_key


class OrganizerRepository:
    """Reads and writes organizer items."""

    def __init__(self, db: DynamoDBHandler):
        self.db = db

    @tracer.capture_method
    def get(self, organizer_id: str) -> Optional[Organizer]:
        item = self.db.get_item(organizer_key(organizer_id))
        return Organizer.from_item(item) if item else None

    @tracer.capture_method
    def get_by_clerk_id(self, clerk_id: str) -> Optional[Organizer]:
        # Oldest profile wins if more than one was ever created
        page = self.db.query_items(Key('clerkId').eq(clerk_id), index_name='ClerkIndex', limit=1)
        items = page['items']
        return Organizer.from_item(items[0]) if items else None

    @tracer.capture_method
    def create(self, organizer: Organizer) -> Organizer:
        item = self.db.put_item(organizer.to_item(), condition_expression=Attr('pk').not_exists())
        logger.info('Organizer stored', extra={'organizer_id': organizer.organizer_id})
        return Organizer.from_item(item)

    @tracer.capture_method
    def update(
        self,
        organizer_id: str,
        set_attributes: Dict[str, Any],
        remove_attributes: Iterable[str] = (),
    ) -> Organizer:
        """
        Set and remove stored attributes (camelCase names) of an existing organizer.

        Raises:
            ConditionalCheckFailedError: If the organizer does not exist
        """
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        set_clauses = []
        for index, (attribute, value) in enumerate(set_attributes.items()):
            names[f'#s{index}'] = attribute
            values[f':s{index}'] = value
            set_clauses.append(f'#s{index} = :s{index}')

        remove_clauses = []
        for index, attribute in enumerate(remove_attributes):
            names[f'#r{index}'] = attribute
            remove_clauses.append(f'#r{index}')

        expression = 'SET ' + ', '.join(set_clauses) if set_clauses else ''
        if remove_clauses:
            expression = f'{expression} REMOVE ' + ', '.join(remove_clauses)

        updated = self.db.update_item(
            key=organizer_key(organizer_id),
            update_expression=expression,
            expression_attribute_values=values,
            expression_attribute_names=names,
            condition_expression=Attr('pk').exists(),
        )
        return Organizer.from_item(updated)

    @tracer.capture_method
    def delete(self, organizer_id: str) -> bool:
        return self.db.delete_item(organizer_key(organizer_id))

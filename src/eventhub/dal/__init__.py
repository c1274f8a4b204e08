"""
Data Access Layer (DAL) for the event registration API.

Every entity lives in one DynamoDB table. ``get_dal_handler`` builds the
shared table handler; repositories wrap it with the access patterns each
entity needs.
"""

from typing import Optional

from eventhub.dal.dynamodb_handler import (
    ConditionalCheckFailedError,
    DALError,
    DynamoDBHandler,
    TransactionConflictError,
)
from eventhub.dal.event_repository import EventRepository
from eventhub.dal.organizer_repository import OrganizerRepository
from eventhub.dal.registration_repository import ParticipantRepository, RegistrationRepository
from eventhub.dal.unit_of_work import RegistrationUnitOfWork


def get_dal_handler(
    table_name: str,
    region_name: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> DynamoDBHandler:
    """
    Factory function to get the DynamoDB handler for the shared table.

    Args:
        table_name: Name of the DynamoDB table
        region_name: AWS region name
        endpoint_url: Endpoint override for local testing

    Returns:
        DAL handler instance
    """
    return DynamoDBHandler(table_name, region_name=region_name, endpoint_url=endpoint_url)


__all__ = [
    'ConditionalCheckFailedError',
    'DALError',
    'DynamoDBHandler',
    'EventRepository',
    'OrganizerRepository',
    'ParticipantRepository',
    'RegistrationRepository',
    'RegistrationUnitOfWork',
    'TransactionConflictError',
    'get_dal_handler',
]

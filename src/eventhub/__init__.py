"""
Event registration API.

The package follows a three layer layout:

- handlers: Lambda entry points, routing, request parsing and auth
- logic: registration, event and organizer business rules
- dal: DynamoDB single table access
- models: pydantic entities and request models

Notifications are queued on SQS by the API and sent by the email processor.
"""

__version__ = "1.0.0"

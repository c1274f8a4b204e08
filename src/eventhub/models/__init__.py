"""
Service Models Package

Pydantic models for the stored entities and for request bodies. Attributes are
snake_case; the JSON and DynamoDB field names are their camelCase aliases.
"""

from .event import Event
from .input import CreateEventRequest, OrganizerRequest, PaymentStatusRequest, UpdateEventRequest
from .organizer import Organizer
from .participant import Participant
from .registration import Registration

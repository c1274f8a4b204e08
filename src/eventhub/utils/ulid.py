"""
Sortable identifiers for events, organizers, reservations and participants.

A ULID is 26 Crockford base-32 characters: 10 for the millisecond timestamp
followed by 16 for 80 bits of randomness. Generation goes through the
monotonic provider of ``ulid-py``, so identifiers generated by one process
within the same millisecond still sort in generation order.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from ulid import monotonic

CROCKFORD_ALPHABET = '0123456789ABCDEFGHJKMNPQRSTVWXYZ'
ULID_LENGTH = 26

_ULID_PATTERN = re.compile(r'[0123456789ABCDEFGHJKMNPQRSTVWXYZ]{26}')


def generate_ulid(timestamp_ms: Optional[int] = None) -> str:
    """
    Generate a new ULID.

    Args:
        timestamp_ms: Explicit timestamp in milliseconds, defaults to now

    Returns:
        26 character ULID string
    """
    if timestamp_ms is None:
        return monotonic.new().str
    return monotonic.from_timestamp(timestamp_ms.to_bytes(6, 'big')).str


def is_valid_ulid(value: Any) -> bool:
    """Return True iff value is a 26 character Crockford base-32 string."""
    return isinstance(value, str) and _ULID_PATTERN.fullmatch(value) is not None


def ulid_timestamp(value: str) -> datetime:
    """
    Decode the creation time embedded in a ULID.

    Raises:
        ValueError: If value is not a valid ULID
    """
    if not is_valid_ulid(value):
        raise ValueError(f'Invalid ULID: {value!r}')

    millis = monotonic.from_str(value).timestamp().int
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def generate_event_id() -> str:
    return generate_ulid()


def generate_organizer_id() -> str:
    return generate_ulid()


def generate_reservation_id() -> str:
    return generate_ulid()


def generate_participant_id() -> str:
    return generate_ulid()


is_valid_organizer_id = is_valid_ulid
is_valid_reservation_id = is_valid_ulid

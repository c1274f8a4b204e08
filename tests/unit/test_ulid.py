"""Unit tests for sortable identifiers."""

from datetime import datetime, timezone

import pytest

from eventhub.utils.ulid import (
    CROCKFORD_ALPHABET,
    generate_event_id,
    generate_ulid,
    is_valid_ulid,
    ulid_timestamp,
)


class TestGenerateUlid:
    """Test cases for ULID generation."""

    def test_format(self):
        value = generate_ulid()

        assert len(value) == 26
        assert all(char in CROCKFORD_ALPHABET for char in value)
        assert is_valid_ulid(value)

    def test_monotonic_within_same_millisecond(self):
        """IDs generated for one timestamp still sort in generation order."""
        timestamp = 1_900_000_000_000
        values = [generate_ulid(timestamp) for _ in range(50)]

        assert values == sorted(values)
        assert len(set(values)) == 50

    def test_later_timestamp_sorts_later(self):
        first = generate_ulid(1_950_000_000_000)
        second = generate_ulid(1_950_000_000_001)

        assert first < second

    def test_timestamp_round_trip(self):
        value = generate_ulid(1_990_000_000_123)

        assert ulid_timestamp(value) == datetime.fromtimestamp(1_990_000_000.123, tz=timezone.utc)

    def test_entity_id_helpers(self):
        assert is_valid_ulid(generate_event_id())


class TestIsValidUlid:
    """Test cases for ULID validation."""

    @pytest.mark.parametrize('value', [
        '',
        'short',
        '01ARZ3NDEKTSV4RRFFQ69G5FA',     # 25 characters
        '01ARZ3NDEKTSV4RRFFQ69G5FAVX',   # 27 characters
        '01ARZ3NDEKTSV4RRFFQ69G5FAI',    # I is not Crockford
        '01arz3ndektsv4rrffq69g5fav',    # lower case
        None,
        12345,
    ])
    def test_invalid_values(self, value):
        assert is_valid_ulid(value) is False

    def test_valid_value(self):
        assert is_valid_ulid('01ARZ3NDEKTSV4RRFFQ69G5FAV') is True

    def test_timestamp_of_known_value(self):
        assert ulid_timestamp('01ARZ3NDEKTSV4RRFFQ69G5FAV') == datetime.fromtimestamp(1469918176.385, tz=timezone.utc)

    def test_timestamp_of_invalid_value(self):
        with pytest.raises(ValueError):
            ulid_timestamp('not-a-ulid')

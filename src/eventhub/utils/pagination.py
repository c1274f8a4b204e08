"""
Cursor pagination over DynamoDB queries.

Pages are fetched as ``limit + 1`` items: the extra item only tells whether a
next page exists and is never returned. The continuation token is an opaque
base64 encoding of the key of the last returned item.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from eventhub.handlers.utils.errors import BadRequestError

DEFAULT_LIMIT = 20
FEATURED_DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class PaginationParams:
    """Validated ``limit`` and ``nextToken`` query parameters."""

    limit: int
    next_token: Optional[str] = None

    @classmethod
    def from_query(
        cls,
        query_params: Optional[Mapping[str, str]],
        default_limit: int = DEFAULT_LIMIT,
    ) -> 'PaginationParams':
        query_params = query_params or {}
        raw_limit = query_params.get('limit')

        if raw_limit is None or raw_limit == '':
            limit = default_limit
        else:
            try:
                limit = int(raw_limit)
            except (TypeError, ValueError):
                raise BadRequestError('Invalid limit parameter', details={'limit': raw_limit})
            if limit < 0:
                raise BadRequestError('Invalid limit parameter', details={'limit': raw_limit})

        return cls(limit=min(limit, MAX_LIMIT), next_token=query_params.get('nextToken') or None)


def encode_cursor(key: Mapping[str, Any]) -> str:
    """Encode a DynamoDB key as an opaque URL-safe token."""
    raw = json.dumps(dict(key), separators=(',', ':'), sort_keys=True)
    return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')


def decode_cursor(token: str) -> Dict[str, Any]:
    """
    Decode a token produced by ``encode_cursor``.

    Raises:
        BadRequestError: If the token is not a valid cursor
    """
    try:
        decoded = json.loads(base64.urlsafe_b64decode(token.encode('ascii')))
    except (binascii.Error, ValueError, UnicodeError):
        raise BadRequestError('Invalid pagination token')

    if not isinstance(decoded, dict):
        raise BadRequestError('Invalid pagination token')
    return decoded


def apply_pagination(
    items: Sequence[Any],
    cursor: Optional[str],
    limit: Optional[int] = None,
    default_limit: int = DEFAULT_LIMIT,
) -> Dict[str, Any]:
    """
    Slice an over-fetched result to one page.

    Args:
        items: Up to ``limit + 1`` items returned by the store
        cursor: Token that resumes after the last item of this page
        limit: Page size, ``default_limit`` when omitted
        default_limit: Page size used when ``limit`` is None

    Returns:
        ``{'data': [...], 'pagination': {hasNextPage, nextToken, limit, count}}``
    """
    page_limit = default_limit if limit is None else limit
    has_next_page = len(items) > page_limit
    data = list(items[:page_limit]) if has_next_page else list(items)

    return {
        'data': data,
        'pagination': {
            'hasNextPage': has_next_page,
            'nextToken': cursor if has_next_page else None,
            'limit': page_limit,
            'count': len(data),
        },
    }


def execute_with_pagination(
    query_page: Callable[..., Dict[str, Any]],
    key_attributes: Sequence[str],
    limit: int = DEFAULT_LIMIT,
    next_token: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run a paginated query, fetching one item more than the page size.

    ``query_page`` is called with ``limit`` and ``exclusive_start_key`` and
    must return the ``DynamoDBHandler.query_items`` result shape. It is called
    again while filter expressions leave the collected items short of
    ``limit + 1`` and the store still has more to read.

    Args:
        query_page: Callable running one DynamoDB query page
        key_attributes: Attributes forming the index and table key of an item
        limit: Page size
        next_token: Token returned by a previous page

    Returns:
        Result of ``apply_pagination`` over the raw items
    """
    target = limit + 1
    exclusive_start_key = decode_cursor(next_token) if next_token else None
    items: List[Dict[str, Any]] = []

    while True:
        page = query_page(limit=target - len(items), exclusive_start_key=exclusive_start_key)
        items.extend(page.get('items', []))
        exclusive_start_key = page.get('last_evaluated_key')
        if len(items) >= target or not exclusive_start_key:
            break

    items = items[:target]
    cursor = None
    if len(items) > limit:
        if limit > 0:
            last_item = items[limit - 1]
            cursor = encode_cursor({attr: last_item[attr] for attr in key_attributes if attr in last_item})
        else:
            # Nothing returned yet, the next page starts where this one did
            cursor = next_token

    return apply_pagination(items, cursor, limit)

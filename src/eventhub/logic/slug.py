"""URL slugs for events, generated once from the title and never changed."""

import re
from typing import Callable

from eventhub.handlers.utils.errors import BadRequestError
from eventhub.handlers.utils.observability import logger

MAX_SLUG_LENGTH = 100
MAX_SLUG_ATTEMPTS = 1000
# Room left for a "-NNNN" collision suffix
_BASE_SLUG_LENGTH = MAX_SLUG_LENGTH - 5

_SLUG_PATTERN = re.compile(r'[a-z0-9]+(-[a-z0-9]+)*')


def sanitize_slug(title: str) -> str:
    """Lower-case the title, drop everything but letters, digits, spaces and hyphens, hyphenate."""
    slug = title.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def is_valid_slug(slug: str) -> bool:
    return isinstance(slug, str) and 0 < len(slug) <= MAX_SLUG_LENGTH and _SLUG_PATTERN.fullmatch(slug) is not None


def generate_unique_slug(title: str, exists: Callable[[str], bool]) -> str:
    """
    Build a slug for ``title`` that ``exists`` reports as unused.

    Collisions get ``-1``, ``-2`` and so on appended.

    Raises:
        BadRequestError: If the title has no usable characters or no free
            slug is found within 1000 attempts
    """
    if not isinstance(title, str) or not title.strip():
        raise BadRequestError('Event title is required')

    base_slug = sanitize_slug(title)[:_BASE_SLUG_LENGTH].strip('-')
    if not base_slug:
        raise BadRequestError('Title must contain at least one alphanumeric character')

    slug = base_slug
    counter = 1
    while exists(slug):
        if counter > MAX_SLUG_ATTEMPTS:
            raise BadRequestError(f'Unable to generate unique slug after {MAX_SLUG_ATTEMPTS} attempts')
        slug = f'{base_slug}-{counter}'
        counter += 1

    logger.debug('Generated unique slug', extra={'title': title, 'slug': slug, 'attempts': counter})
    return slug

"""
Role based access control policy.

``ROLE_PERMISSIONS`` is the static role to permission table. The functions
below are pure: they take a user (anything with a ``role`` attribute) and a
policy and answer yes or no, leaving error reporting to the caller.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol


class Role:
    USER = 'user'
    ORGANIZER = 'organizer'
    ADMIN = 'admin'


class Permission:
    READ_PROFILE = 'read:profile'
    WRITE_PROFILE = 'write:profile'
    READ_EVENTS = 'read:events'
    WRITE_EVENTS = 'write:events'
    DELETE_EVENTS = 'delete:events'
    MANAGE_EVENTS = 'manage:events'
    READ_USERS = 'read:users'
    WRITE_USERS = 'write:users'
    DELETE_USERS = 'delete:users'
    ADMIN_SYSTEM = 'admin:system'


ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    Role.USER: frozenset({
        Permission.READ_PROFILE,
        Permission.WRITE_PROFILE,
        Permission.READ_EVENTS,
    }),
    Role.ORGANIZER: frozenset({
        Permission.READ_PROFILE,
        Permission.WRITE_PROFILE,
        Permission.READ_EVENTS,
        Permission.WRITE_EVENTS,
        Permission.MANAGE_EVENTS,
    }),
    Role.ADMIN: frozenset({
        Permission.READ_PROFILE,
        Permission.WRITE_PROFILE,
        Permission.READ_EVENTS,
        Permission.WRITE_EVENTS,
        Permission.DELETE_EVENTS,
        Permission.MANAGE_EVENTS,
        Permission.READ_USERS,
        Permission.WRITE_USERS,
        Permission.DELETE_USERS,
        Permission.ADMIN_SYSTEM,
    }),
}


class HasRole(Protocol):
    role: str


@dataclass
class RBACConfig:
    """Access policy: any of ``roles``, and all (or any) of ``permissions``."""

    roles: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    require_all: bool = True


def get_user_permissions(user: Optional[HasRole]) -> FrozenSet[str]:
    if user is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(user.role, frozenset())


def has_role(user: Optional[HasRole], role: str) -> bool:
    return user is not None and user.role == role


def has_any_role(user: Optional[HasRole], roles: Iterable[str]) -> bool:
    return user is not None and user.role in set(roles)


def has_permission(user: Optional[HasRole], permission: str) -> bool:
    return permission in get_user_permissions(user)


def has_all_permissions(user: Optional[HasRole], permissions: Iterable[str]) -> bool:
    granted = get_user_permissions(user)
    return all(permission in granted for permission in permissions)


def has_any_permission(user: Optional[HasRole], permissions: Iterable[str]) -> bool:
    granted = get_user_permissions(user)
    return any(permission in granted for permission in permissions)


def missing_permissions(user: Optional[HasRole], permissions: Iterable[str]) -> List[str]:
    granted = get_user_permissions(user)
    return [permission for permission in permissions if permission not in granted]


def is_admin(user: Optional[HasRole]) -> bool:
    return has_role(user, Role.ADMIN)


def can_access(user: Optional[HasRole], policy: RBACConfig) -> bool:
    """
    Evaluate a policy for a user.

    Empty role or permission lists do not restrict access. With
    ``require_all`` every permission is needed, otherwise one is enough.
    """
    if user is None:
        return False
    if policy.roles and not has_any_role(user, policy.roles):
        return False
    if policy.permissions:
        if policy.require_all:
            return has_all_permissions(user, policy.permissions)
        return has_any_permission(user, policy.permissions)
    return True

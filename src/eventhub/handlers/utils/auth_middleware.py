"""
Authentication and authorization for resolver routes.

``with_auth`` sits between ``with_middleware`` and the route function:

    @app.post('/events')
    @with_middleware
    @with_auth(app, AuthOptions(required_roles=['organizer', 'admin']))
    def create_event(): ...

It applies the optional rate limit, validates the bearer token, enforces the
route's role, permission or RBAC policy and stores the user on the resolver
context, where ``get_authenticated_user(app)`` finds it. Failures are raised
as taxonomy errors so the response wrapper renders them.
"""

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Union

from aws_lambda_powertools.event_handler import APIGatewayHttpResolver

from eventhub.handlers.models.env_vars import get_api_env_vars
from eventhub.handlers.utils.errors import AuthenticationError, AuthorizationError, RateLimitedError
from eventhub.handlers.utils.observability import logger
from eventhub.security.rate_limiter import RateLimitConfig, RateLimiter, client_fingerprint, default_rate_limiter
from eventhub.security.rbac import RBACConfig, has_any_permission, has_any_role, missing_permissions
from eventhub.security.session import (
    AuthUser,
    Session,
    SessionValidationResult,
    SessionValidator,
    build_session_validator,
)


@dataclass
class AuthOptions:
    """Per-route authentication and authorization settings."""

    require_auth: bool = True
    required_roles: List[str] = field(default_factory=list)
    required_permissions: List[str] = field(default_factory=list)
    require_all_permissions: bool = True
    # Takes the place of required_roles and required_permissions when set
    rbac: Optional[RBACConfig] = None
    rate_limit: Optional[RateLimitConfig] = None


@dataclass
class AuthContext:
    user: AuthUser
    session: Session


_validator_cache: dict = {}


def get_session_validator() -> Optional[SessionValidator]:
    """Session validator built from the environment, reused across invocations."""
    env = get_api_env_vars()
    settings = (env.AUTH_JWT_SECRET, env.AUTH_JWKS_URL, env.AUTH_ISSUER, env.AUTH_AUDIENCE)
    if settings not in _validator_cache:
        _validator_cache.clear()
        _validator_cache[settings] = build_session_validator(*settings)
    return _validator_cache[settings]


def extract_auth_token(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Read the bearer token from the Authorization header, any casing, prefix optional."""
    for name, value in (headers or {}).items():
        if name.lower() == 'authorization' and value:
            token = value[7:] if value[:7].lower() == 'bearer ' else value
            return token.strip() or None
    return None


def _validate_token(token: Optional[str], validator: Optional[SessionValidator]) -> SessionValidationResult:
    if not token:
        return SessionValidationResult(valid=False, error='No authentication token provided')
    if validator is None:
        logger.error('Authentication token received but no session validator is configured')
        return SessionValidationResult(valid=False, error='Token validation failed')

    try:
        result = validator.validate_session(token)
    except Exception:
        logger.exception('Session validation raised an error')
        return SessionValidationResult(valid=False, error='Token validation failed')

    if not result.valid or result.user is None:
        return SessionValidationResult(valid=False, error=result.error or 'Invalid token')
    return result


def validate_user_roles(user: AuthUser, required_roles: List[str]) -> None:
    if required_roles and not has_any_role(user, required_roles):
        raise AuthorizationError(f'Access denied. Required roles: {", ".join(required_roles)}')


def validate_user_permissions(user: AuthUser, required_permissions: List[str], require_all: bool = True) -> None:
    if not required_permissions:
        return

    if require_all:
        missing = missing_permissions(user, required_permissions)
        if missing:
            raise AuthorizationError(f'Access denied. Missing permissions: {", ".join(missing)}')
    elif not has_any_permission(user, required_permissions):
        raise AuthorizationError(f'Access denied. Requires at least one of: {", ".join(required_permissions)}')


def validate_rbac(user: AuthUser, rbac: RBACConfig) -> None:
    validate_user_roles(user, rbac.roles)
    validate_user_permissions(user, rbac.permissions, rbac.require_all)


def apply_rate_limit(raw_event: Mapping[str, Any], config: RateLimitConfig, rate_limiter: RateLimiter) -> None:
    result = rate_limiter.check(client_fingerprint(raw_event), config)
    if not result.allowed:
        raise RateLimitedError(
            f'Rate limit exceeded. Maximum {config.max_attempts} requests per {config.window_ms}ms',
            retry_after=result.retry_after,
        )


def with_auth(
    app: APIGatewayHttpResolver,
    options: Optional[AuthOptions] = None,
    *,
    session_validator: Optional[SessionValidator] = None,
    rate_limiter: Optional[RateLimiter] = None,
):
    """
    Decorator enforcing authentication for a resolver route.

    Args:
        app: Resolver whose current event and context the route uses
        options: Route settings, authentication required by default
        session_validator: Validator override, from the environment otherwise
        rate_limiter: Rate limiter override, the process wide one otherwise

    Returns:
        Decorator for the route function
    """
    auth_options = options or AuthOptions()

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            raw_event = app.current_event.raw_event

            if auth_options.rate_limit:
                apply_rate_limit(raw_event, auth_options.rate_limit, rate_limiter or default_rate_limiter)

            token = extract_auth_token(raw_event.get('headers'))
            validator = session_validator
            if token and validator is None:
                validator = get_session_validator()
            result = _validate_token(token, validator)
            user = result.user if result.valid else None

            if auth_options.require_auth and user is None:
                logger.warning('Authentication failed', extra={'reason': result.error, 'path': app.current_event.path})
                raise AuthenticationError(result.error or 'Authentication required')

            if user is not None:
                if auth_options.rbac is not None:
                    validate_rbac(user, auth_options.rbac)
                else:
                    validate_user_roles(user, auth_options.required_roles)
                    validate_user_permissions(user, auth_options.required_permissions, auth_options.require_all_permissions)

            auth_context = AuthContext(user=user, session=result.session) if user and result.session else None
            app.append_context(user=user, session=result.session if user else None, auth_context=auth_context)
            if user is not None:
                logger.append_keys(user_id=user.id)

            return func(*args, **kwargs)

        return wrapper

    return decorator


def with_auth_required(
    app: APIGatewayHttpResolver,
    roles: Optional[List[str]] = None,
    permissions: Optional[List[str]] = None,
    rate_limit: Optional[RateLimitConfig] = None,
    **kwargs,
):
    return with_auth(
        app,
        AuthOptions(required_roles=roles or [], required_permissions=permissions or [], rate_limit=rate_limit),
        **kwargs,
    )


def with_role(app: APIGatewayHttpResolver, roles: Union[str, List[str]], **kwargs):
    return with_auth_required(app, roles=[roles] if isinstance(roles, str) else list(roles), **kwargs)


def with_permissions(app: APIGatewayHttpResolver, permissions: Union[str, List[str]], **kwargs):
    return with_auth_required(
        app, permissions=[permissions] if isinstance(permissions, str) else list(permissions), **kwargs
    )


def with_rbac(app: APIGatewayHttpResolver, rbac: RBACConfig, **kwargs):
    return with_auth(app, AuthOptions(rbac=rbac), **kwargs)


def get_authenticated_user(app: APIGatewayHttpResolver) -> AuthUser:
    """
    Return the user attached by ``with_auth``.

    Raises:
        AuthenticationError: If the request is not authenticated
    """
    user = app.context.get('user')
    if user is None:
        raise AuthenticationError('User not authenticated')
    return user


def get_optional_user(app: APIGatewayHttpResolver) -> Optional[AuthUser]:
    return app.context.get('user')


def get_auth_context(app: APIGatewayHttpResolver) -> Optional[AuthContext]:
    return app.context.get('auth_context')

"""
Session validation for bearer tokens.

Sessions are issued by the external identity provider; this module only
verifies them. ``JWTSessionValidator`` checks the token signature with PyJWT,
either against a shared HS256 secret or against the provider's JWKS endpoint,
and caches successful results until shortly before the token expires.
"""

import hashlib
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import jwt
from aws_lambda_powertools.metrics import MetricUnit
from cachetools import TTLCache
from jwt.exceptions import ExpiredSignatureError, PyJWKClientError
from jwt.exceptions import InvalidTokenError as JWTInvalidTokenError
from pydantic import BaseModel, Field

from eventhub.handlers.utils.observability import logger, metrics, tracer
from eventhub.security.rbac import Role


class AuthUser(BaseModel):
    """Authenticated caller."""

    id: str
    email: Optional[str] = None
    role: str = Role.USER
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class Session(BaseModel):
    """Validated session metadata."""

    id: str
    user_id: str
    expires_at: Optional[int] = None
    issued_at: Optional[int] = None


class SessionValidationResult(BaseModel):
    """Outcome of validating a session token."""

    valid: bool
    user: Optional[AuthUser] = None
    session: Optional[Session] = None
    error: Optional[str] = None


class SessionValidator(ABC):
    """Validates bearer tokens against the identity provider."""

    @abstractmethod
    def validate_session(self, token: str) -> SessionValidationResult:
        """Validate a token; never raises for invalid tokens."""


def _role_from_claims(payload: Dict[str, Any]) -> str:
    for container in (payload, payload.get('public_metadata') or {}, payload.get('metadata') or {}):
        role = container.get('role') if isinstance(container, dict) else None
        if isinstance(role, str) and role:
            return role
    return Role.USER


class JWTSessionValidator(SessionValidator):
    """
    JWT based session validator.

    Features:
    - HS256 shared secret or RS256 keys from a JWKS endpoint
    - Issuer and audience checks
    - Result cache keyed by a hash of the token
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        jwks_url: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway: int = 10,
        cache_size: int = 1024,
        cache_ttl: int = 300,
    ):
        """
        Initialize JWT session validator.

        Args:
            secret_key: Secret key for HS256 tokens
            jwks_url: URL of the JSON Web Key Set for RS256 tokens
            issuer: Expected token issuer
            audience: Expected token audience
            leeway: Time leeway for expiry checks (seconds)
            cache_size: Maximum number of cached validation results
            cache_ttl: Upper bound for caching one result (seconds)
        """
        if not secret_key and not jwks_url:
            raise ValueError('Either secret_key or jwks_url is required')

        self.secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway
        self.cache_ttl = cache_ttl
        self._jwks_client = jwt.PyJWKClient(jwks_url) if jwks_url else None
        self._cache: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl)

    @staticmethod
    def _cache_key(token: str) -> str:
        return hashlib.sha256(token.encode('utf-8')).hexdigest()

    def _decode(self, token: str) -> Dict[str, Any]:
        if self._jwks_client is not None:
            signing_key = self._jwks_client.get_signing_key_from_jwt(token)
            key, algorithms = signing_key.key, ['RS256']
        else:
            key, algorithms = self.secret_key, ['HS256']

        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            issuer=self.issuer,
            audience=self.audience,
            leeway=self.leeway,
            options={'require': ['sub', 'exp'], 'verify_aud': self.audience is not None},
        )

    @tracer.capture_method
    def validate_session(self, token: str) -> SessionValidationResult:
        cache_key = self._cache_key(token)
        cached = self._cache.get(cache_key)
        if cached is not None and (cached.session.expires_at is None or cached.session.expires_at > time.time()):
            return cached

        try:
            payload = self._decode(token)
        except ExpiredSignatureError:
            metrics.add_metric(name='AuthenticationTokenExpired', unit=MetricUnit.Count, value=1)
            logger.warning('Session token expired')
            return SessionValidationResult(valid=False, error='Session has expired')
        except (JWTInvalidTokenError, PyJWKClientError) as e:
            metrics.add_metric(name='AuthenticationInvalidToken', unit=MetricUnit.Count, value=1)
            logger.warning('Invalid session token', extra={'reason': str(e)})
            return SessionValidationResult(valid=False, error='Invalid session')

        user = AuthUser(
            id=payload['sub'],
            email=payload.get('email'),
            role=_role_from_claims(payload),
            first_name=payload.get('given_name') or payload.get('first_name'),
            last_name=payload.get('family_name') or payload.get('last_name'),
        )
        session = Session(
            id=payload.get('sid') or payload.get('jti') or cache_key[:32],
            user_id=user.id,
            expires_at=payload.get('exp'),
            issued_at=payload.get('iat'),
        )
        result = SessionValidationResult(valid=True, user=user, session=session)
        self._cache[cache_key] = result

        logger.debug('Session validated', extra={'user_id': user.id, 'role': user.role})
        return result


def build_session_validator(
    secret_key: Optional[str],
    jwks_url: Optional[str],
    issuer: Optional[str] = None,
    audience: Optional[str] = None,
) -> Optional[SessionValidator]:
    """Build the configured validator, or None when authentication is not configured."""
    if not secret_key and not jwks_url:
        return None
    return JWTSessionValidator(secret_key=secret_key, jwks_url=jwks_url, issuer=issuer, audience=audience)

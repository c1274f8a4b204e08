"""
Security Module.

Session token validation, the role and permission policy, and the rate
limiter used by the auth middleware.
"""

from .rate_limiter import InMemoryRateLimiter, RateLimitConfig, RateLimiter, RateLimitResult
from .rbac import ROLE_PERMISSIONS, Permission, RBACConfig, Role
from .session import AuthUser, JWTSessionValidator, Session, SessionValidationResult, SessionValidator

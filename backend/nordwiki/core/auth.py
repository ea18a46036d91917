"""Caller identity as FastAPI dependencies.

Authentication is done by the gateway in front of this service. It forwards
the resolved identity as three headers:

    X-User-Id    -- stable user id
    X-User-Name  -- display name (optional, defaults to the id)
    X-User-Role  -- admin | moderator | editor | member (optional, defaults to member)

Public interface:
    ``require_auth``  -- returns AuthContext or raises 401.
    ``optional_auth`` -- always returns AuthContext, never raises.

When ``settings.auth_enabled`` is False a request without headers acts as an
anonymous admin so local development works without a gateway.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from .config import settings
from ..exceptions import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

ROLES = ("admin", "moderator", "editor", "member")


@dataclass(frozen=True)
class AuthContext:
    """Resolved caller identity available to every endpoint.

    Services receive it as the ``actor`` of an operation and pass ``role``
    to permission_service.can().
    """

    user_id: str
    user_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == "anonymous"


# Dev-mode context when no gateway headers are present.
_ANONYMOUS = AuthContext(user_id="anonymous", user_name="Anonymous", role="admin")

# Auth enabled, headers missing: can read, nothing else.
_UNAUTHENTICATED = AuthContext(user_id="anonymous", user_name="Anonymous", role="member")


def build_auth_context(user_id: str, user_name: Optional[str] = None, role: Optional[str] = None) -> AuthContext:
    """Validate raw identity values and build an AuthContext."""
    user_id = user_id.strip()
    if not user_id:
        raise AuthenticationError("X-User-Id header is empty")
    role = (role or "member").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'. Must be one of: {', '.join(ROLES)}", field="X-User-Role")
    return AuthContext(user_id=user_id, user_name=(user_name or "").strip() or user_id, role=role)


def require_auth(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> AuthContext:
    """Require a caller identity and return its AuthContext.

    When ``AUTH_ENABLED=false`` and no identity is sent, returns the
    anonymous admin context.
    """
    if x_user_id is None:
        if not settings.auth_enabled:
            return _ANONYMOUS
        raise AuthenticationError("Missing X-User-Id header")

    return build_auth_context(x_user_id, x_user_name, x_user_role)


def optional_auth(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> AuthContext:
    """Return the caller's AuthContext, or a read-only anonymous one.

    Never raises for missing headers (unlike require_auth).
    """
    if x_user_id is None:
        return _UNAUTHENTICATED if settings.auth_enabled else _ANONYMOUS
    return build_auth_context(x_user_id, x_user_name, x_user_role)

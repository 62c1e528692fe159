from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..models import Reservation
from .errors import PermissionDeniedError, UnauthenticatedError


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str | None = None
    is_admin: bool = False


# Placeholder caller used only when the test-identity flag is on.
TEST_IDENTITY = Identity(uid="test-user-id-123", email="test@example.com", is_admin=False)


def identity_from_claims(claims: Mapping[str, Any]) -> Identity:
    """Build an Identity from already-verified token claims."""
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub:
        raise UnauthenticatedError("token missing subject")
    email = claims.get("email")
    return Identity(
        uid=sub,
        email=email if isinstance(email, str) else None,
        # Only a literal boolean true grants admin.
        is_admin=claims.get("admin") is True,
    )


def resolve_identity(identity: Identity | None, *, allow_test_identity: bool = False) -> Identity:
    if identity is not None:
        return identity
    if allow_test_identity:
        return TEST_IDENTITY
    raise UnauthenticatedError()


def require_admin(identity: Identity | None) -> Identity:
    if identity is None:
        raise UnauthenticatedError()
    if not identity.is_admin:
        raise PermissionDeniedError("admin privileges required")
    return identity


def can_cancel(identity: Identity, reservation: Reservation) -> bool:
    return identity.is_admin or identity.uid == reservation.user_id

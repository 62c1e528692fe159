from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import jwt
from jwt import InvalidTokenError


def create_access_token(
    *,
    user_id: str,
    secret: str,
    email: str | None = None,
    is_admin: bool = False,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
    issued_at: datetime | None = None,
) -> str:
    now = issued_at or datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload: dict[str, Any] = {"sub": str(user_id), "iat": now, "exp": exp, "admin": bool(is_admin)}
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> dict[str, Any]:
    """Verify signature and expiry, returning the claims."""
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            options={"require": ["sub", "iat", "exp"]},
        )
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise ValueError("token missing sub")
    return payload


def parse_bearer(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise ValueError("authorization header missing")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise ValueError("authorization header is not a bearer token")
    return token


def issued_before(claims: dict[str, Any], instant: datetime | None) -> bool:
    """True when the token's ``iat`` predates ``instant`` (naive UTC), at second precision."""
    if instant is None:
        return False
    iat = claims.get("iat")
    if not isinstance(iat, (int, float)):
        return True
    cutoff = int(instant.replace(tzinfo=timezone.utc).timestamp())
    return int(iat) < cutoff

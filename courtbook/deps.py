import logging
from datetime import timedelta
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import get_sessionmaker
from .domain.clock import Clock, SystemClock
from .domain.errors import UnauthenticatedError
from .domain.identity import Identity, identity_from_claims
from .domain.repositories import CourtRepository, ReservationRepository, UserRepository
from .domain.services import BookingPolicy
from .infrastructure.repositories import (
    SqlAlchemyCourtRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyUserRepository,
)
from .usecases.janitor import JanitorSweep
from .usecases.reservations import ReservationLifecycle
from .utils.audit_log import audit_listener
from .utils.auth import decode_access_token, issued_before, parse_bearer

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


def get_clock() -> Clock:
    return SystemClock()


def _decode_claims(authorization: Optional[str]) -> dict[str, Any]:
    settings = get_settings()
    if not settings.auth_secret:
        logger.error("AUTH_SECRET is not configured; rejecting bearer credential")
        raise ValueError("auth secret is not configured")
    token = parse_bearer(authorization)
    return decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])


async def get_optional_identity(authorization: Optional[str] = Header(default=None)) -> Optional[Identity]:
    """Identity from a bearer token's claims, or None when no credential was sent."""
    if authorization is None:
        return None
    try:
        return identity_from_claims(_decode_claims(authorization))
    except (ValueError, UnauthenticatedError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid bearer token",
            headers=_BEARER_CHALLENGE,
        ) from exc


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="bearer token required",
            headers=_BEARER_CHALLENGE,
        )
    return identity


async def get_court_repo(session: AsyncSession = Depends(get_session)) -> CourtRepository:
    return SqlAlchemyCourtRepository(session)


async def get_reservation_repo(session: AsyncSession = Depends(get_session)) -> ReservationRepository:
    return SqlAlchemyReservationRepository(session)


async def get_user_repo(session: AsyncSession = Depends(get_session)) -> UserRepository:
    return SqlAlchemyUserRepository(session)


async def get_lifecycle(
    session: AsyncSession = Depends(get_session),
    courts: CourtRepository = Depends(get_court_repo),
    reservations: ReservationRepository = Depends(get_reservation_repo),
    clock: Clock = Depends(get_clock),
) -> ReservationLifecycle:
    return ReservationLifecycle(
        session,
        courts,
        reservations,
        clock=clock,
        policy=BookingPolicy.from_settings(get_settings()),
        listeners=[audit_listener],
    )


async def verify_admin_bearer(
    authorization: Optional[str] = Header(default=None),
    users: UserRepository = Depends(get_user_repo),
) -> Identity:
    """Re-verify the bearer credential for admin-only HTTP endpoints.

    Checks signature and expiry, that the account still exists and that the
    token was not issued before a revocation, then the ``admin`` claim. Every
    rejection is a 403; the log tells the cases apart.
    """
    forbidden = HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    try:
        claims = _decode_claims(authorization)
        identity = identity_from_claims(claims)
    except (ValueError, UnauthenticatedError):
        logger.warning("forbidden: missing or invalid credential")
        raise forbidden

    try:
        user = await users.get(identity.uid)
    except SQLAlchemyError as exc:
        logger.exception("failed to load account %s while verifying credential", identity.uid)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error") from exc
    if user is None or issued_before(claims, user.tokens_valid_after):
        logger.warning("forbidden: unknown account or revoked credential for %s", identity.uid)
        raise forbidden
    if not identity.is_admin:
        logger.warning("forbidden-not-admin: %s", identity.uid)
        raise forbidden
    return identity


def build_janitor(clock: Optional[Clock] = None) -> JanitorSweep:
    settings = get_settings()
    return JanitorSweep(
        get_sessionmaker(),
        SqlAlchemyReservationRepository,
        clock=clock or SystemClock(),
        grace=timedelta(minutes=settings.janitor_grace_minutes),
        interval=timedelta(minutes=settings.janitor_interval_minutes),
        listeners=[audit_listener],
    )

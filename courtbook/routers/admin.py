import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_clock, get_lifecycle, get_optional_identity, get_session, get_user_repo, verify_admin_bearer
from ..domain.clock import Clock
from ..domain.errors import InternalError, ReservationError
from ..domain.identity import Identity
from ..domain.repositories import UserRepository
from ..schemas import ActionResult, AdminRoleGrant, AdminStatus, ReservationList, ReservationRead
from ..usecases import admins as admin_usecase
from ..usecases.reservations import ReservationLifecycle
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["admin"])


@router.get("/me/admin-status", response_model=AdminStatus)
async def admin_status(identity: Optional[Identity] = Depends(get_optional_identity)) -> AdminStatus:
    return AdminStatus(is_admin=admin_usecase.is_admin_status(identity))


@router.post("/admin/roles", response_model=ActionResult)
async def add_admin_role(
    payload: AdminRoleGrant,
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(get_session),
    users: UserRepository = Depends(get_user_repo),
    clock: Clock = Depends(get_clock),
) -> ActionResult:
    try:
        async with session.begin():
            await admin_usecase.grant_admin_role(users, identity, email=payload.email, now=clock.now())
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("failed to commit admin role grant")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "internal", "message": "internal server error"},
        ) from exc
    return ActionResult(message=f"Admin role granted to {payload.email}; they must sign in again.")


# Only GET is routed; other methods get 405 from the router.
@router.get("/allReservations", response_model=ReservationList)
async def all_reservations(
    identity: Identity = Depends(verify_admin_bearer),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> Union[ReservationList, JSONResponse]:
    try:
        rows = await lifecycle.list_all(identity)
    except InternalError:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": "Failed to fetch reservations."},
        )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ReservationList(data=[ReservationRead.from_db(reservation=r) for r in rows])

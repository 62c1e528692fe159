from typing import Optional

from fastapi import APIRouter, Depends, Path, status

from ..deps import get_lifecycle, get_optional_identity
from ..domain.errors import ReservationError
from ..domain.identity import Identity
from ..schemas import ActionResult, ReservationRead, ReservationSubmit, SubmitResult, UserReservations
from ..usecases.reservations import ReservationLifecycle
from .errors import to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_reservation(
    payload: ReservationSubmit,
    identity: Optional[Identity] = Depends(get_optional_identity),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> SubmitResult:
    try:
        reservation = await lifecycle.submit(
            identity,
            court_id=payload.court_id or "",
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return SubmitResult(
        message="Reservation submitted and awaiting confirmation.",
        reservation_id=reservation.id,
    )


@router.get("/me/reservations", response_model=UserReservations)
async def list_my_reservations(
    identity: Optional[Identity] = Depends(get_optional_identity),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> UserReservations:
    try:
        rows = await lifecycle.list_for_owner(identity)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return UserReservations(reservations=[ReservationRead.from_db(reservation=r) for r in rows])


@router.post("/reservations/{reservation_id}/cancel", response_model=ActionResult)
async def cancel_reservation(
    reservation_id: str = Path(..., min_length=1),
    identity: Optional[Identity] = Depends(get_optional_identity),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> ActionResult:
    try:
        await lifecycle.cancel(identity, reservation_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message="Reservation cancelled.")


@router.post("/reservations/{reservation_id}/confirm", response_model=ActionResult)
async def confirm_reservation(
    reservation_id: str = Path(..., min_length=1),
    identity: Optional[Identity] = Depends(get_optional_identity),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> ActionResult:
    try:
        await lifecycle.confirm(identity, reservation_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return ActionResult(message="Reservation confirmed.")

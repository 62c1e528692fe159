from fastapi import HTTPException, status

from ..domain.errors import ReservationError

ERROR_STATUS: dict[str, int] = {
    "malformed-input": status.HTTP_400_BAD_REQUEST,
    "invalid-range": status.HTTP_400_BAD_REQUEST,
    "not-in-future": status.HTTP_400_BAD_REQUEST,
    "duration-out-of-bounds": status.HTTP_400_BAD_REQUEST,
    "court-not-found": status.HTTP_404_NOT_FOUND,
    "already-exists": status.HTTP_409_CONFLICT,
    "slot-unavailable": status.HTTP_409_CONFLICT,
    "not-found": status.HTTP_404_NOT_FOUND,
    "permission-denied": status.HTTP_403_FORBIDDEN,
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "invalid-state": status.HTTP_409_CONFLICT,
    "cancellation-window-closed": status.HTTP_403_FORBIDDEN,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(exc: ReservationError) -> HTTPException:
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message}, headers=headers)

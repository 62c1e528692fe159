import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_court_repo, get_optional_identity, get_session
from ..domain.errors import ReservationError
from ..domain.identity import Identity
from ..domain.repositories import CourtRepository
from ..schemas import CourtCreate, CourtList, CourtRead, CourtResult, CourtUpdate
from ..usecases import courts as court_usecase
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courts", tags=["courts"])


def _internal() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "internal", "message": "internal server error"},
    )


@router.get("", response_model=CourtList)
async def list_courts(courts: CourtRepository = Depends(get_court_repo)) -> CourtList:
    try:
        rows = await court_usecase.list_courts(courts)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return CourtList(data=[CourtRead.from_db(court=c) for c in rows])


@router.get("/{court_id}", response_model=CourtResult)
async def get_court_details(
    court_id: str = Path(..., min_length=1, max_length=64),
    courts: CourtRepository = Depends(get_court_repo),
) -> CourtResult:
    try:
        court = await court_usecase.get_court(courts, court_id=court_id)
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return CourtResult(data=CourtRead.from_db(court=court))


@router.post("", response_model=CourtResult, status_code=status.HTTP_201_CREATED)
async def add_court(
    payload: CourtCreate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(get_session),
    courts: CourtRepository = Depends(get_court_repo),
) -> CourtResult:
    try:
        async with session.begin():
            court = await court_usecase.add_court(
                courts,
                identity,
                court_id=payload.court_id,
                name=payload.name,
                attributes=payload.metadata,
            )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("failed to commit new court %s", payload.court_id)
        raise _internal() from exc
    return CourtResult(data=CourtRead.from_db(court=court))


@router.patch("/{court_id}", response_model=CourtResult)
async def update_court(
    payload: CourtUpdate,
    court_id: str = Path(..., min_length=1, max_length=64),
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(get_session),
    courts: CourtRepository = Depends(get_court_repo),
) -> CourtResult:
    try:
        async with session.begin():
            court = await court_usecase.update_court(
                courts,
                identity,
                court_id=court_id,
                name=payload.name,
                attributes=payload.metadata,
            )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("failed to commit update of court %s", court_id)
        raise _internal() from exc
    return CourtResult(data=CourtRead.from_db(court=court))

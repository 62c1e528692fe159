from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import CourtAlreadyExistsError
from ..domain.repositories import CourtRepository, ReservationRepository, UserRepository
from ..models import ACTIVE_STATUSES, Court, Reservation, ReservationStatus, User
from ..utils.time import utc_now_naive


class SqlAlchemyCourtRepository(CourtRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, court_id: str) -> Court | None:
        return await self.session.get(Court, court_id)

    async def get_for_update(self, court_id: str) -> Court | None:
        # Row lock on the court serializes every booking attempt for it.
        result = await self.session.scalar(select(Court).where(Court.id == court_id).with_for_update())
        return result if isinstance(result, Court) else None

    async def list_all(self) -> List[Court]:
        rows = await self.session.scalars(select(Court).order_by(Court.name))
        return list(rows.all())

    async def create(self, *, court_id: str, name: str, attributes: dict[str, Any]) -> Court:
        now = utc_now_naive()
        court = Court(id=court_id, name=name, attributes=attributes, created_at=now, updated_at=now)
        self.session.add(court)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise CourtAlreadyExistsError() from exc
        return court

    async def update(self, court: Court) -> Court:
        court.updated_at = utc_now_naive()
        self.session.add(court)
        await self.session.flush()
        return court


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: str) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_active_overlapping(
        self,
        court_id: str,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_reservation_id: str | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.court_id == court_id,
            Reservation.status.in_(list(ACTIVE_STATUSES)),
            Reservation.starts_at < ends_at,
            Reservation.ends_at > starts_at,
        )
        if exclude_reservation_id is not None:
            stmt = stmt.where(Reservation.id != exclude_reservation_id)
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def create(
        self,
        *,
        court_id: str,
        court_name: str,
        user_id: str,
        user_email: str | None,
        starts_at: datetime,
        ends_at: datetime,
        status: ReservationStatus,
    ) -> Reservation:
        now = utc_now_naive()
        # Never earlier than the newest stored row, even if the wall clock stepped back.
        latest = await self.session.scalar(select(func.max(Reservation.created_at)))
        if latest is not None and latest > now:
            now = latest
        reservation = Reservation(
            id=uuid.uuid4().hex,
            court_id=court_id,
            court_name=court_name,
            user_id=user_id,
            user_email=user_email,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def update(self, reservation: Reservation) -> Reservation:
        reservation.updated_at = utc_now_naive()
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: str) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.user_id == user_id).order_by(Reservation.starts_at.desc())
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def list_all(self) -> List[Reservation]:
        rows = await self.session.scalars(select(Reservation).order_by(Reservation.starts_at))
        return list(rows.all())

    async def list_stale_pending(self, cutoff: datetime) -> List[Reservation]:
        # Locked so a concurrent confirm cannot slip in before the batch delete.
        stmt = (
            select(Reservation)
            .where(
                Reservation.status == ReservationStatus.PENDING,
                Reservation.starts_at < cutoff,
            )
            .with_for_update()
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def delete_many(self, reservation_ids: Iterable[str]) -> int:
        ids = list(reservation_ids)
        if not ids:
            return 0
        stmt = delete(Reservation).where(Reservation.id.in_(ids)).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, uid: str) -> Optional[User]:
        return await self.session.get(User, uid)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.scalar(select(User).where(User.email == email))
        return result if isinstance(result, User) else None

    async def update(self, user: User) -> User:
        user.updated_at = utc_now_naive()
        self.session.add(user)
        await self.session.flush()
        return user

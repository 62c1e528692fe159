from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncContextManager, Iterable, Protocol

from ..models import Court, Reservation, ReservationStatus, User


class Session(Protocol):
    """Unit-of-work boundary shared by the repositories built on it."""

    def begin(self) -> AsyncContextManager[Any]: ...

    def in_transaction(self) -> bool: ...


class CourtRepository(Protocol):
    async def get(self, court_id: str) -> Court | None: ...

    async def get_for_update(self, court_id: str) -> Court | None: ...

    async def list_all(self) -> list[Court]: ...

    async def create(self, *, court_id: str, name: str, attributes: dict[str, Any]) -> Court: ...

    async def update(self, court: Court) -> Court: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: str) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: str) -> Reservation | None: ...

    async def list_active_overlapping(
        self,
        court_id: str,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_reservation_id: str | None = None,
    ) -> list[Reservation]: ...

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
    ) -> Reservation: ...

    async def update(self, reservation: Reservation) -> Reservation: ...

    async def list_by_user(self, user_id: str) -> list[Reservation]: ...

    async def list_all(self) -> list[Reservation]: ...

    async def list_stale_pending(self, cutoff: datetime) -> list[Reservation]: ...

    async def delete_many(self, reservation_ids: Iterable[str]) -> int: ...


class UserRepository(Protocol):
    async def get(self, uid: str) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def update(self, user: User) -> User: ...

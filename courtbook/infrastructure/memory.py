"""In-memory reservation store.

Mirrors the SQLAlchemy repositories closely enough to run the full booking
flow without a database: ``InMemorySession.begin()`` stages writes and applies
them on commit (dropping them on rollback), and ``get_for_update`` takes a
per-court ``asyncio.Lock`` held until the transaction ends. Reads inside a
transaction see committed state only.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Iterable, TypeVar

from sqlalchemy import inspect

from ..domain.clock import Clock, SystemClock
from ..domain.errors import CourtAlreadyExistsError
from ..domain.repositories import CourtRepository, ReservationRepository, UserRepository
from ..domain.services import intervals_overlap
from ..models import ACTIVE_STATUSES, Court, Reservation, ReservationStatus, User

T = TypeVar("T", Court, Reservation, User)


def _detach(obj: T) -> T:
    mapper = inspect(obj).mapper
    values = {attr.key: copy.copy(getattr(obj, attr.key)) for attr in mapper.column_attrs}
    return type(obj)(**values)


class InMemoryStore:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self.courts: dict[str, Court] = {}
        self.reservations: dict[str, Reservation] = {}
        self.users: dict[str, User] = {}
        self._court_locks: dict[str, asyncio.Lock] = {}
        self._last_created_at: datetime | None = None

    def session(self) -> "InMemorySession":
        return InMemorySession(self)

    def now(self) -> datetime:
        return self.clock.now()

    def next_created_at(self) -> datetime:
        now = self.now()
        if self._last_created_at is not None and now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    def court_lock(self, court_id: str) -> asyncio.Lock:
        return self._court_locks.setdefault(court_id, asyncio.Lock())

    # Seeding helpers; these bypass transactions.
    def add_court(self, court_id: str, name: str, attributes: dict[str, Any] | None = None) -> Court:
        now = self.now()
        court = Court(id=court_id, name=name, attributes=dict(attributes or {}), created_at=now, updated_at=now)
        self.courts[court_id] = court
        return _detach(court)

    def add_user(self, uid: str, email: str, *, is_admin: bool = False) -> User:
        now = self.now()
        user = User(uid=uid, email=email, is_admin=is_admin, tokens_valid_after=None, created_at=now, updated_at=now)
        self.users[uid] = user
        return _detach(user)


class InMemorySession:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self._staged: list[Callable[[], None]] | None = None
        self._held: list[asyncio.Lock] = []

    async def __aenter__(self) -> "InMemorySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        await self.close()
        return False

    async def close(self) -> None:
        self._staged = None
        self._release()

    def in_transaction(self) -> bool:
        return self._staged is not None

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["InMemorySession"]:
        if self._staged is not None:
            raise RuntimeError("a transaction is already in progress")
        self._staged = []
        try:
            yield self
        except BaseException:
            self._staged = None
            self._release()
            raise
        staged, self._staged = self._staged, None
        try:
            for apply in staged:
                apply()
        finally:
            self._release()

    def write(self, apply: Callable[[], None]) -> None:
        if self._staged is None:
            apply()
        else:
            self._staged.append(apply)

    async def lock_court(self, court_id: str) -> None:
        # Outside a transaction there is nothing to hold the lock for.
        if self._staged is None:
            return
        lock = self.store.court_lock(court_id)
        if any(held is lock for held in self._held):
            return
        await lock.acquire()
        self._held.append(lock)

    def _release(self) -> None:
        while self._held:
            self._held.pop().release()


class InMemoryCourtRepository(CourtRepository):
    def __init__(self, session: InMemorySession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, court_id: str) -> Court | None:
        await asyncio.sleep(0)
        court = self.store.courts.get(court_id)
        return _detach(court) if court is not None else None

    async def get_for_update(self, court_id: str) -> Court | None:
        await self.session.lock_court(court_id)
        return await self.get(court_id)

    async def list_all(self) -> list[Court]:
        await asyncio.sleep(0)
        return [_detach(c) for c in sorted(self.store.courts.values(), key=lambda c: c.name)]

    async def create(self, *, court_id: str, name: str, attributes: dict[str, Any]) -> Court:
        # Held until commit, so a concurrent create of the same id waits and then sees it.
        await self.session.lock_court(court_id)
        if court_id in self.store.courts:
            raise CourtAlreadyExistsError()
        now = self.store.now()
        court = Court(id=court_id, name=name, attributes=dict(attributes), created_at=now, updated_at=now)
        staged = _detach(court)
        self.session.write(lambda: self.store.courts.__setitem__(court_id, staged))
        return court

    async def update(self, court: Court) -> Court:
        court.updated_at = self.store.now()
        staged = _detach(court)
        self.session.write(lambda: self.store.courts.__setitem__(staged.id, staged))
        return court


class InMemoryReservationRepository(ReservationRepository):
    def __init__(self, session: InMemorySession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, reservation_id: str) -> Reservation | None:
        await asyncio.sleep(0)
        reservation = self.store.reservations.get(reservation_id)
        return _detach(reservation) if reservation is not None else None

    async def get_for_update(self, reservation_id: str) -> Reservation | None:
        current = self.store.reservations.get(reservation_id)
        if current is None:
            return None
        await self.session.lock_court(current.court_id)
        return await self.get(reservation_id)

    async def list_active_overlapping(
        self,
        court_id: str,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_reservation_id: str | None = None,
    ) -> list[Reservation]:
        await asyncio.sleep(0)
        return [
            _detach(r)
            for r in self.store.reservations.values()
            if r.court_id == court_id
            and r.status in ACTIVE_STATUSES
            and r.id != exclude_reservation_id
            and intervals_overlap(r.starts_at, r.ends_at, starts_at, ends_at)
        ]

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
        created_at = self.store.next_created_at()
        reservation = Reservation(
            id=uuid.uuid4().hex,
            court_id=court_id,
            court_name=court_name,
            user_id=user_id,
            user_email=user_email,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            created_at=created_at,
            updated_at=created_at,
            cancelled_at=None,
        )
        staged = _detach(reservation)
        self.session.write(lambda: self.store.reservations.__setitem__(staged.id, staged))
        return reservation

    async def update(self, reservation: Reservation) -> Reservation:
        reservation.updated_at = self.store.now()
        staged = _detach(reservation)
        self.session.write(lambda: self.store.reservations.__setitem__(staged.id, staged))
        return reservation

    async def list_by_user(self, user_id: str) -> list[Reservation]:
        await asyncio.sleep(0)
        rows = [r for r in self.store.reservations.values() if r.user_id == user_id]
        return [_detach(r) for r in sorted(rows, key=lambda r: r.starts_at, reverse=True)]

    async def list_all(self) -> list[Reservation]:
        await asyncio.sleep(0)
        return [_detach(r) for r in sorted(self.store.reservations.values(), key=lambda r: r.starts_at)]

    async def list_stale_pending(self, cutoff: datetime) -> list[Reservation]:
        def matching() -> list[Reservation]:
            return [
                r
                for r in self.store.reservations.values()
                if r.status == ReservationStatus.PENDING and r.starts_at < cutoff
            ]

        # Lock in a stable order, then re-read under the locks.
        for court_id in sorted({r.court_id for r in matching()}):
            await self.session.lock_court(court_id)
        await asyncio.sleep(0)
        return [_detach(r) for r in matching()]

    async def delete_many(self, reservation_ids: Iterable[str]) -> int:
        ids = [rid for rid in reservation_ids if rid in self.store.reservations]

        def apply() -> None:
            for rid in ids:
                self.store.reservations.pop(rid, None)

        self.session.write(apply)
        return len(ids)


class InMemoryUserRepository(UserRepository):
    def __init__(self, session: InMemorySession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, uid: str) -> User | None:
        await asyncio.sleep(0)
        user = self.store.users.get(uid)
        return _detach(user) if user is not None else None

    async def get_by_email(self, email: str) -> User | None:
        await asyncio.sleep(0)
        for user in self.store.users.values():
            if user.email == email:
                return _detach(user)
        return None

    async def update(self, user: User) -> User:
        user.updated_at = self.store.now()
        staged = _detach(user)
        self.session.write(lambda: self.store.users.__setitem__(staged.uid, staged))
        return user

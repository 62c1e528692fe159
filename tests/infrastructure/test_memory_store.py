import asyncio
from datetime import datetime, timedelta

import pytest
from courtbook.domain.clock import FixedClock
from courtbook.domain.errors import CourtAlreadyExistsError
from courtbook.infrastructure.memory import (
    InMemoryCourtRepository,
    InMemoryReservationRepository,
    InMemoryStore,
    InMemoryUserRepository,
)
from courtbook.models import ReservationStatus

NOW = datetime(2025, 1, 1, 8, 0)


async def _create(repo: InMemoryReservationRepository, start: datetime) -> str:
    reservation = await repo.create(
        court_id="C1",
        court_name="Court 1",
        user_id="u1",
        user_email="u1@example.com",
        starts_at=start,
        ends_at=start + timedelta(hours=1),
        status=ReservationStatus.PENDING,
    )
    return reservation.id


@pytest.mark.asyncio
async def test_commit_applies_staged_writes() -> None:
    store = InMemoryStore(FixedClock(NOW))
    session = store.session()
    repo = InMemoryReservationRepository(session)
    async with session.begin():
        rid = await _create(repo, NOW + timedelta(days=1))
        assert rid not in store.reservations
    assert store.reservations[rid].user_id == "u1"


@pytest.mark.asyncio
async def test_rollback_discards_staged_writes() -> None:
    store = InMemoryStore(FixedClock(NOW))
    session = store.session()
    repo = InMemoryReservationRepository(session)
    with pytest.raises(RuntimeError):
        async with session.begin():
            await _create(repo, NOW + timedelta(days=1))
            raise RuntimeError("abort")
    assert store.reservations == {}
    assert not session.in_transaction()


@pytest.mark.asyncio
async def test_writes_outside_transaction_apply_immediately() -> None:
    store = InMemoryStore(FixedClock(NOW))
    repo = InMemoryReservationRepository(store.session())
    rid = await _create(repo, NOW + timedelta(days=1))
    assert rid in store.reservations


@pytest.mark.asyncio
async def test_nested_begin_is_rejected() -> None:
    session = InMemoryStore().session()
    async with session.begin():
        with pytest.raises(RuntimeError):
            async with session.begin():
                pass


@pytest.mark.asyncio
async def test_reads_are_detached_copies() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_court("C1", "Court 1", {"surface": "clay"})
    repo = InMemoryCourtRepository(store.session())
    court = await repo.get("C1")
    assert court is not None
    court.name = "Renamed"
    court.attributes["surface"] = "grass"
    stored = store.courts["C1"]
    assert stored.name == "Court 1"
    assert stored.attributes == {"surface": "clay"}


@pytest.mark.asyncio
async def test_court_lock_is_held_until_commit() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_court("C1", "Court 1")
    first = store.session()
    second = store.session()
    order: list[str] = []
    release = asyncio.Event()

    async def hold() -> None:
        async with first.begin():
            await InMemoryCourtRepository(first).get_for_update("C1")
            order.append("first-locked")
            await release.wait()
            order.append("first-done")

    async def wait_for_lock() -> None:
        async with second.begin():
            await InMemoryCourtRepository(second).get_for_update("C1")
            order.append("second-locked")

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0.01)
    waiter = asyncio.create_task(wait_for_lock())
    await asyncio.sleep(0.01)
    assert order == ["first-locked"]

    release.set()
    await asyncio.gather(holder, waiter)
    assert order == ["first-locked", "first-done", "second-locked"]
    assert not store.court_lock("C1").locked()


@pytest.mark.asyncio
async def test_created_at_never_goes_backwards() -> None:
    clock = FixedClock(NOW)
    store = InMemoryStore(clock)
    repo = InMemoryReservationRepository(store.session())
    first = await _create(repo, NOW + timedelta(days=1))
    clock.current = NOW - timedelta(minutes=5)
    second = await _create(repo, NOW + timedelta(days=2))
    assert store.reservations[second].created_at >= store.reservations[first].created_at


@pytest.mark.asyncio
async def test_delete_many_is_atomic_with_its_transaction() -> None:
    store = InMemoryStore(FixedClock(NOW))
    session = store.session()
    repo = InMemoryReservationRepository(session)
    ids = [await _create(repo, NOW + timedelta(days=i + 1)) for i in range(3)]

    with pytest.raises(RuntimeError):
        async with session.begin():
            assert await repo.delete_many(ids) == 3
            raise RuntimeError("abort")
    assert sorted(store.reservations) == sorted(ids)

    async with session.begin():
        assert await repo.delete_many(ids + ["unknown"]) == 3
    assert store.reservations == {}


@pytest.mark.asyncio
async def test_duplicate_court_is_rejected() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_court("C1", "Court 1")
    repo = InMemoryCourtRepository(store.session())
    with pytest.raises(CourtAlreadyExistsError):
        await repo.create(court_id="C1", name="Again", attributes={})


@pytest.mark.asyncio
async def test_concurrent_court_create_keeps_first() -> None:
    store = InMemoryStore(FixedClock(NOW))
    first = store.session()
    second = store.session()
    release = asyncio.Event()

    async def create_and_hold() -> None:
        async with first.begin():
            await InMemoryCourtRepository(first).create(court_id="C9", name="First", attributes={})
            await release.wait()

    async def create_again() -> None:
        async with second.begin():
            await InMemoryCourtRepository(second).create(court_id="C9", name="Second", attributes={})

    holder = asyncio.create_task(create_and_hold())
    await asyncio.sleep(0.01)
    racer = asyncio.create_task(create_again())
    await asyncio.sleep(0.01)
    assert not racer.done()

    release.set()
    results = await asyncio.gather(holder, racer, return_exceptions=True)
    assert results[0] is None
    assert isinstance(results[1], CourtAlreadyExistsError)
    assert store.courts["C9"].name == "First"
    assert not store.court_lock("C9").locked()


@pytest.mark.asyncio
async def test_user_lookup_by_email() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_user("u1", "u1@example.com")
    repo = InMemoryUserRepository(store.session())
    user = await repo.get_by_email("u1@example.com")
    assert user is not None and user.uid == "u1"
    assert await repo.get_by_email("nobody@example.com") is None

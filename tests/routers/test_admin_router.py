from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, List

import pytest
from courtbook.config import get_settings
from courtbook.deps import get_clock, get_court_repo, get_reservation_repo, get_session, get_user_repo
from courtbook.domain.clock import FixedClock
from courtbook.domain.repositories import CourtRepository, ReservationRepository, UserRepository
from courtbook.infrastructure.memory import (
    InMemoryCourtRepository,
    InMemoryReservationRepository,
    InMemorySession,
    InMemoryStore,
    InMemoryUserRepository,
)
from courtbook.models import Reservation, ReservationStatus
from courtbook.routers import admin
from courtbook.utils.auth import create_access_token
from courtbook.utils.time import utc_now_naive
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

SECRET = "testsecret"
NOW = datetime(2025, 1, 1, 8, 0)


class BrokenReservationRepo(InMemoryReservationRepository):
    async def list_all(self) -> List[Reservation]:
        raise RuntimeError("connection lost")


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", SECRET)
    get_settings.cache_clear()


def _make_client(store: InMemoryStore, *, broken: bool = False) -> TestClient:
    app = FastAPI()
    app.include_router(admin.router)
    reservation_repo = BrokenReservationRepo if broken else InMemoryReservationRepository

    async def override_session() -> AsyncIterator[InMemorySession]:
        async with store.session() as session:
            yield session

    async def override_courts(session: InMemorySession = Depends(get_session)) -> CourtRepository:
        return InMemoryCourtRepository(session)

    async def override_reservations(session: InMemorySession = Depends(get_session)) -> ReservationRepository:
        return reservation_repo(session)

    async def override_users(session: InMemorySession = Depends(get_session)) -> UserRepository:
        return InMemoryUserRepository(session)

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_court_repo] = override_courts
    app.dependency_overrides[get_reservation_repo] = override_reservations
    app.dependency_overrides[get_user_repo] = override_users
    app.dependency_overrides[get_clock] = lambda: FixedClock(NOW)
    return TestClient(app)


def _auth(uid: str, *, admin: bool = False, **kwargs: Any) -> dict[str, str]:
    token = create_access_token(user_id=uid, secret=SECRET, email=f"{uid}@example.com", is_admin=admin, **kwargs)
    return {"Authorization": f"Bearer {token}"}


def _store() -> InMemoryStore:
    store = InMemoryStore(FixedClock(NOW))
    store.add_user("boss", "boss@example.com", is_admin=True)
    store.add_user("player", "player@example.com")
    for rid, day in (("r2", 3), ("r1", 2)):
        start = NOW + timedelta(days=day)
        store.reservations[rid] = Reservation(
            id=rid,
            court_id="C1",
            court_name="Center Court",
            user_id="player",
            user_email="player@example.com",
            starts_at=start,
            ends_at=start + timedelta(hours=1),
            status=ReservationStatus.PENDING,
            created_at=NOW,
            updated_at=NOW,
        )
    return store


def test_all_reservations_for_admin() -> None:
    client = _make_client(_store())
    res = client.get("/allReservations", headers=_auth("boss", admin=True))
    assert res.status_code == 200
    payload = res.json()
    assert payload["status"] == "success"
    assert [r["id"] for r in payload["data"]] == ["r1", "r2"]
    assert payload["data"][0]["userEmail"] == "player@example.com"


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer garbage"},
        {"Authorization": "Basic Ym9zczpwYXNz"},
    ],
)
def test_all_reservations_rejects_bad_credentials(headers: dict[str, str]) -> None:
    client = _make_client(_store())
    res = client.get("/allReservations", headers=headers)
    assert res.status_code == 403


def test_all_reservations_rejects_expired_token() -> None:
    client = _make_client(_store())
    res = client.get("/allReservations", headers=_auth("boss", admin=True, expires_delta=timedelta(seconds=-1)))
    assert res.status_code == 403


def test_all_reservations_rejects_non_admin(caplog: pytest.LogCaptureFixture) -> None:
    client = _make_client(_store())
    with caplog.at_level("WARNING", logger="courtbook.deps"):
        res = client.get("/allReservations", headers=_auth("player"))
    assert res.status_code == 403
    assert any("forbidden-not-admin" in r.getMessage() for r in caplog.records)


def test_all_reservations_rejects_unknown_account() -> None:
    client = _make_client(_store())
    res = client.get("/allReservations", headers=_auth("ghost", admin=True))
    assert res.status_code == 403


def test_all_reservations_rejects_revoked_token() -> None:
    store = _store()
    store.users["boss"].tokens_valid_after = utc_now_naive() - timedelta(minutes=5)
    client = _make_client(store)
    stale = datetime.now(timezone.utc) - timedelta(minutes=10)
    res = client.get("/allReservations", headers=_auth("boss", admin=True, issued_at=stale))
    assert res.status_code == 403

    res = client.get("/allReservations", headers=_auth("boss", admin=True))
    assert res.status_code == 200


def test_all_reservations_only_allows_get() -> None:
    client = _make_client(_store())
    res = client.post("/allReservations", headers=_auth("boss", admin=True))
    assert res.status_code == 405


def test_all_reservations_store_failure() -> None:
    client = _make_client(_store(), broken=True)
    res = client.get("/allReservations", headers=_auth("boss", admin=True))
    assert res.status_code == 500
    assert res.json() == {"status": "error", "message": "Failed to fetch reservations."}


def test_admin_status() -> None:
    client = _make_client(_store())
    assert client.get("/me/admin-status", headers=_auth("boss", admin=True)).json()["isAdmin"] is True
    assert client.get("/me/admin-status", headers=_auth("player")).json()["isAdmin"] is False
    assert client.get("/me/admin-status").json()["isAdmin"] is False


def test_grant_admin_role() -> None:
    store = _store()
    client = _make_client(store)
    res = client.post("/admin/roles", json={"email": "player@example.com"}, headers=_auth("boss", admin=True))
    assert res.status_code == 200
    assert res.json()["status"] == "success"
    assert store.users["player"].is_admin is True
    assert store.users["player"].tokens_valid_after == NOW


def test_grant_admin_role_rejections() -> None:
    store = _store()
    client = _make_client(store)
    res = client.post("/admin/roles", json={"email": "player@example.com"}, headers=_auth("player"))
    assert res.status_code == 403
    res = client.post("/admin/roles", json={"email": "ghost@example.com"}, headers=_auth("boss", admin=True))
    assert res.status_code == 404
    assert store.users["player"].is_admin is False

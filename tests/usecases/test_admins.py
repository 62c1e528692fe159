from datetime import datetime

import pytest
from courtbook.domain.clock import FixedClock
from courtbook.domain.errors import MalformedInputError, NotFoundError, PermissionDeniedError
from courtbook.domain.identity import Identity
from courtbook.infrastructure.memory import InMemoryStore, InMemoryUserRepository
from courtbook.usecases import admins as uc

NOW = datetime(2025, 1, 1, 8, 0)
ADMIN = Identity(uid="admin", email="admin@example.com", is_admin=True)


def test_is_admin_status() -> None:
    assert uc.is_admin_status(ADMIN) is True
    assert uc.is_admin_status(Identity(uid="u1")) is False
    assert uc.is_admin_status(None) is False


@pytest.mark.asyncio
async def test_grant_admin_role_sets_claim_and_revokes_tokens() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_user("u1", "u1@example.com")
    session = store.session()
    async with session.begin():
        updated = await uc.grant_admin_role(InMemoryUserRepository(session), ADMIN, email="u1@example.com", now=NOW)
    assert updated.is_admin is True
    assert store.users["u1"].is_admin is True
    assert store.users["u1"].tokens_valid_after == NOW


@pytest.mark.asyncio
async def test_grant_admin_role_errors() -> None:
    store = InMemoryStore(FixedClock(NOW))
    store.add_user("u1", "u1@example.com")
    repo = InMemoryUserRepository(store.session())
    with pytest.raises(PermissionDeniedError):
        await uc.grant_admin_role(repo, Identity(uid="u2"), email="u1@example.com", now=NOW)
    with pytest.raises(NotFoundError):
        await uc.grant_admin_role(repo, ADMIN, email="ghost@example.com", now=NOW)
    with pytest.raises(MalformedInputError):
        await uc.grant_admin_role(repo, ADMIN, email="not-an-email", now=NOW)
    assert store.users["u1"].is_admin is False

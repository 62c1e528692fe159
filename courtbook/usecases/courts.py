from typing import Any, List, Optional

from ..domain.errors import CourtAlreadyExistsError, CourtNotFoundError, MalformedInputError
from ..domain.identity import Identity, require_admin
from ..domain.repositories import CourtRepository
from ..models import Court
from .boundary import error_boundary


@error_boundary
async def list_courts(courts: CourtRepository) -> List[Court]:
    return await courts.list_all()


@error_boundary
async def get_court(courts: CourtRepository, *, court_id: str) -> Court:
    court = await courts.get(court_id)
    if court is None:
        raise CourtNotFoundError()
    return court


@error_boundary
async def add_court(
    courts: CourtRepository,
    identity: Optional[Identity],
    *,
    court_id: str,
    name: str,
    attributes: Optional[dict[str, Any]] = None,
) -> Court:
    require_admin(identity)
    if not court_id.strip() or not name.strip():
        raise MalformedInputError("court id and name are required")
    if await courts.get(court_id) is not None:
        raise CourtAlreadyExistsError()
    return await courts.create(court_id=court_id, name=name.strip(), attributes=dict(attributes or {}))


@error_boundary
async def update_court(
    courts: CourtRepository,
    identity: Optional[Identity],
    *,
    court_id: str,
    name: Optional[str] = None,
    attributes: Optional[dict[str, Any]] = None,
) -> Court:
    """Only the display name and metadata of a court are editable."""
    require_admin(identity)
    court = await courts.get_for_update(court_id)
    if court is None:
        raise CourtNotFoundError()
    if name is not None:
        if not name.strip():
            raise MalformedInputError("court name cannot be empty")
        court.name = name.strip()
    if attributes is not None:
        court.attributes = dict(attributes)
    return await courts.update(court)

from __future__ import annotations

from datetime import datetime

from .repositories import ReservationRepository


class ConflictDetector:
    """Answers whether an active reservation already covers part of a window.

    Only meaningful inside a transaction that holds the court lock; otherwise a
    concurrent insert may land between the check and the caller's write.
    """

    def __init__(self, reservations: ReservationRepository) -> None:
        self.reservations = reservations

    async def has_conflict(
        self,
        court_id: str,
        starts_at: datetime,
        ends_at: datetime,
        exclude_reservation_id: str | None = None,
    ) -> bool:
        overlapping = await self.reservations.list_active_overlapping(
            court_id,
            starts_at,
            ends_at,
            exclude_reservation_id=exclude_reservation_id,
        )
        return len(overlapping) > 0

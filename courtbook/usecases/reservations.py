from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..domain.clock import Clock
from ..domain.conflicts import ConflictDetector
from ..domain.errors import (
    CancellationWindowClosedError,
    CourtNotFoundError,
    InvalidStateError,
    MalformedInputError,
    NotFoundError,
    PermissionDeniedError,
    SlotUnavailableError,
    UnauthenticatedError,
)
from ..domain.events import ReservationEvent, TransitionListener, publish
from ..domain.identity import Identity, can_cancel, require_admin, resolve_identity
from ..domain.repositories import CourtRepository, ReservationRepository, Session
from ..domain.services import BookingPolicy, validate_reservation_window
from ..models import TERMINAL_STATUSES, Reservation, ReservationStatus
from .boundary import error_boundary

logger = logging.getLogger(__name__)


class ReservationLifecycle:
    """Submit, confirm, cancel and list reservations.

    Every mutating operation runs in its own transaction on ``session``. Submit
    locks the court row before checking for conflicts, so two overlapping
    submissions for the same court cannot both insert.
    """

    def __init__(
        self,
        session: Session,
        courts: CourtRepository,
        reservations: ReservationRepository,
        *,
        clock: Clock,
        policy: BookingPolicy | None = None,
        listeners: Iterable[TransitionListener] = (),
    ) -> None:
        self.session = session
        self.courts = courts
        self.reservations = reservations
        self.clock = clock
        self.policy = policy or BookingPolicy()
        self.listeners: Sequence[TransitionListener] = tuple(listeners)
        self.conflicts = ConflictDetector(reservations)

    @error_boundary
    async def submit(
        self,
        identity: Identity | None,
        *,
        court_id: str,
        start_time: object,
        end_time: object,
    ) -> Reservation:
        caller = resolve_identity(identity, allow_test_identity=self.policy.allow_test_identity)
        if not court_id or not start_time or not end_time:
            raise MalformedInputError("missing courtId, startTime, or endTime")

        async with self.session.begin():
            court = await self.courts.get_for_update(court_id)
            if court is None:
                raise CourtNotFoundError()

            window = validate_reservation_window(start_time, end_time, now=self.clock.now(), policy=self.policy)
            if await self.conflicts.has_conflict(court.id, window.starts_at, window.ends_at):
                raise SlotUnavailableError()

            reservation = await self.reservations.create(
                court_id=court.id,
                court_name=court.name,
                user_id=caller.uid,
                user_email=caller.email,
                starts_at=window.starts_at,
                ends_at=window.ends_at,
                status=ReservationStatus.PENDING,
            )
            publish(
                self.listeners,
                ReservationEvent(
                    action="reservation.created",
                    initiator="user",
                    reservation=reservation,
                    status_from=None,
                    status_to=ReservationStatus.PENDING,
                ),
            )

        logger.info("reservation %s created on court %s by %s", reservation.id, court.id, caller.uid)
        return reservation

    @error_boundary
    async def confirm(self, identity: Identity | None, reservation_id: str) -> Reservation:
        require_admin(identity)
        async with self.session.begin():
            reservation = await self.reservations.get_for_update(reservation_id)
            if reservation is None:
                raise NotFoundError("reservation not found")
            if reservation.status in TERMINAL_STATUSES:
                raise InvalidStateError(f"reservation is already {reservation.status.value}")
            # Re-confirming is a no-op.
            if reservation.status == ReservationStatus.CONFIRMED:
                return reservation

            previous = reservation.status
            reservation.status = ReservationStatus.CONFIRMED
            updated = await self.reservations.update(reservation)
            publish(
                self.listeners,
                ReservationEvent(
                    action="reservation.confirmed",
                    initiator="admin",
                    reservation=updated,
                    status_from=previous,
                    status_to=ReservationStatus.CONFIRMED,
                ),
            )

        logger.info("reservation %s confirmed", updated.id)
        return updated

    @error_boundary
    async def cancel(self, identity: Identity | None, reservation_id: str) -> Reservation:
        caller = resolve_identity(identity)
        async with self.session.begin():
            reservation = await self.reservations.get_for_update(reservation_id)
            if reservation is None:
                raise NotFoundError("reservation not found")
            if not can_cancel(caller, reservation):
                raise PermissionDeniedError("not allowed to cancel this reservation")
            if reservation.status in TERMINAL_STATUSES:
                raise InvalidStateError(f"reservation is already {reservation.status.value}")

            now = self.clock.now()
            if (
                reservation.status == ReservationStatus.CONFIRMED
                and not caller.is_admin
                and reservation.starts_at - now < self.policy.cancellation_cutoff
            ):
                raise CancellationWindowClosedError()

            previous = reservation.status
            reservation.status = ReservationStatus.CANCELLED
            reservation.cancelled_at = now
            updated = await self.reservations.update(reservation)
            publish(
                self.listeners,
                ReservationEvent(
                    action="reservation.cancelled",
                    initiator="user" if caller.uid == reservation.user_id else "admin",
                    reservation=updated,
                    status_from=previous,
                    status_to=ReservationStatus.CANCELLED,
                ),
            )

        logger.info("reservation %s cancelled by %s", updated.id, caller.uid)
        return updated

    @error_boundary
    async def list_for_owner(self, identity: Identity | None) -> list[Reservation]:
        if identity is None:
            raise UnauthenticatedError()
        return await self.reservations.list_by_user(identity.uid)

    @error_boundary
    async def list_all(self, identity: Identity | None) -> list[Reservation]:
        require_admin(identity)
        return await self.reservations.list_all()

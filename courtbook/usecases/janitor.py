from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional, Sequence

from ..domain.clock import Clock
from ..domain.events import ReservationEvent, TransitionListener, publish
from ..domain.repositories import ReservationRepository
from ..models import ReservationStatus

logger = logging.getLogger(__name__)


class JanitorSweep:
    """Deletes pending reservations whose start passed more than ``grace`` ago.

    ``session_factory`` returns a new async-context session per sweep;
    ``repository_factory`` builds the reservation repository on it. A sweep
    lists and deletes inside one transaction, so a failure leaves the store
    untouched. Sweeps never overlap.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        repository_factory: Callable[[Any], ReservationRepository],
        *,
        clock: Clock,
        grace: timedelta = timedelta(hours=1),
        interval: timedelta = timedelta(minutes=30),
        listeners: Iterable[TransitionListener] = (),
    ) -> None:
        self.session_factory = session_factory
        self.repository_factory = repository_factory
        self.clock = clock
        self.grace = grace
        self.interval = interval
        self.listeners: Sequence[TransitionListener] = tuple(listeners)
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None

    async def sweep(self) -> int:
        async with self._lock:
            cutoff = self.clock.now() - self.grace
            async with self.session_factory() as session:
                async with session.begin():
                    repo = self.repository_factory(session)
                    stale = await repo.list_stale_pending(cutoff)
                    if not stale:
                        logger.debug("janitor: nothing to expire before %s", cutoff.isoformat())
                        return 0
                    deleted = await repo.delete_many(r.id for r in stale)
                    for reservation in stale:
                        publish(
                            self.listeners,
                            ReservationEvent(
                                action="reservation.expired",
                                initiator="system",
                                reservation=reservation,
                                status_from=ReservationStatus.PENDING,
                                status_to=None,
                            ),
                        )
            logger.info("janitor: expired %d pending reservations starting before %s", deleted, cutoff.isoformat())
            return deleted

    async def run_forever(self) -> None:
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("janitor sweep failed")
            await asyncio.sleep(self.interval.total_seconds())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "asyncio.Task[None]":
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="reservation-janitor")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

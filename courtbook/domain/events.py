from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Optional

from ..models import Reservation, ReservationStatus

ReservationAction = Literal[
    "reservation.created",
    "reservation.confirmed",
    "reservation.cancelled",
    "reservation.expired",
]
Initiator = Literal["user", "admin", "system"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationEvent:
    action: ReservationAction
    initiator: Initiator
    reservation: Reservation
    status_from: Optional[ReservationStatus]
    status_to: Optional[ReservationStatus]


TransitionListener = Callable[[ReservationEvent], None]


def publish(listeners: Iterable[TransitionListener], event: ReservationEvent) -> None:
    """Call every listener in order; a listener error propagates to the caller."""
    for listener in listeners:
        listener(event)
    logger.debug("published %s for reservation %s", event.action, event.reservation.id)

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from .request_id import get_request_id

if TYPE_CHECKING:
    from ..domain.events import Initiator, ReservationAction, ReservationEvent

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def emit_audit_log(
    *,
    action: "ReservationAction",
    initiator: "Initiator",
    reservation_id: str,
    court_id: Optional[str],
    user_id: Optional[str],
    starts_at: Optional[datetime],
    ends_at: Optional[datetime],
    status_from: Any,
    status_to: Any,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "court_id": court_id,
        "user_id": user_id,
        "starts_at": _datetime_to_str(starts_at),
        "ends_at": _datetime_to_str(ends_at),
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc


def audit_listener(event: "ReservationEvent") -> None:
    """Transition listener that writes every lifecycle event to the audit log."""
    reservation = event.reservation
    extra: dict[str, Any] = {}
    if reservation.cancelled_at is not None and event.action == "reservation.cancelled":
        extra["cancelled_at"] = _datetime_to_str(reservation.cancelled_at)
    emit_audit_log(
        action=event.action,
        initiator=event.initiator,
        reservation_id=reservation.id,
        court_id=reservation.court_id,
        user_id=reservation.user_id,
        starts_at=reservation.starts_at,
        ends_at=reservation.ends_at,
        status_from=event.status_from,
        status_to=event.status_to,
        extra=extra or None,
    )

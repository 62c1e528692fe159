from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .models import Court, Reservation, ReservationStatus
from .utils.time import utc_naive_to_aware


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationSubmit(CamelModel):
    # Kept optional and raw; missing or unparsable values are malformed-input.
    court_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ReservationRead(CamelModel):
    id: str
    court_id: str
    court_name: str
    user_id: str
    user_email: Optional[str]
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    @field_serializer("start_time", "end_time", "created_at", "cancelled_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        return utc_naive_to_aware(dt).isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            id=reservation.id,
            court_id=reservation.court_id,
            court_name=reservation.court_name,
            user_id=reservation.user_id,
            user_email=reservation.user_email,
            start_time=reservation.starts_at,
            end_time=reservation.ends_at,
            status=reservation.status,
            created_at=reservation.created_at,
            cancelled_at=reservation.cancelled_at,
        )


class SubmitResult(CamelModel):
    status: str = "success"
    message: str
    reservation_id: str


class ActionResult(CamelModel):
    status: str = "success"
    message: str


class UserReservations(CamelModel):
    reservations: List[ReservationRead]


class ReservationList(CamelModel):
    status: str = "success"
    data: List[ReservationRead]


class CourtRead(CamelModel):
    id: str
    name: str
    metadata: dict[str, Any]

    @classmethod
    def from_db(cls, *, court: Court) -> "CourtRead":
        return cls(id=court.id, name=court.name, metadata=dict(court.attributes or {}))


class CourtCreate(CamelModel):
    court_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CourtUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    metadata: Optional[dict[str, Any]] = None


class CourtResult(CamelModel):
    status: str = "success"
    data: CourtRead


class CourtList(CamelModel):
    status: str = "success"
    data: List[CourtRead]


class AdminStatus(CamelModel):
    status: str = "success"
    is_admin: bool


class AdminRoleGrant(CamelModel):
    email: str = Field(min_length=3, max_length=255)

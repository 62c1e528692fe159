from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
_ACCEPTED = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def generate_request_id() -> str:
    return uuid.uuid4().hex


def normalize_request_id(incoming: str | None) -> str:
    """Reuse a well-formed incoming id, otherwise mint a new one."""
    if incoming and _ACCEPTED.match(incoming):
        return incoming
    return generate_request_id()


def set_request_id(request_id: str | None) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()

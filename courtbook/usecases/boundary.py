from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from ..domain.errors import InternalError, ReservationError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def error_boundary(func: F) -> F:
    """Let booking errors through unchanged and turn anything else into InternalError."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except ReservationError:
            raise
        except Exception as exc:
            logger.exception("unexpected failure in %s", func.__qualname__)
            raise InternalError() from exc

    return wrapper  # type: ignore[return-value]

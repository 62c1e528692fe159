import logging
from datetime import datetime
from typing import Optional

from ..domain.errors import MalformedInputError, NotFoundError
from ..domain.identity import Identity, require_admin
from ..domain.repositories import UserRepository
from ..models import User
from .boundary import error_boundary

logger = logging.getLogger(__name__)


def is_admin_status(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.is_admin


@error_boundary
async def grant_admin_role(
    users: UserRepository,
    identity: Optional[Identity],
    *,
    email: str,
    now: datetime,
) -> User:
    """Grant the admin claim to the account behind ``email``.

    Tokens issued before ``now`` stop being accepted where credentials are
    re-verified, forcing the account to sign in again to pick up the claim.
    """
    caller = require_admin(identity)
    if not email or "@" not in email:
        raise MalformedInputError("a valid email is required")
    user = await users.get_by_email(email)
    if user is None:
        raise NotFoundError("no account with that email")
    user.is_admin = True
    user.tokens_valid_after = now
    updated = await users.update(user)
    logger.info("admin role granted to %s by %s", updated.uid, caller.uid)
    return updated

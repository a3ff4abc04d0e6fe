"""Read-only inspection of JWT access tokens issued by the backend."""

import logging
from datetime import UTC, datetime

import jwt

logger = logging.getLogger(__name__)


def read_expiry(token: str) -> datetime | None:
    """Return the ``exp`` claim of a JWT as an aware UTC datetime.

    The signature is not verified: the client only needs a local hint of when
    to refresh, and the server remains the authority on validity. Returns None
    for opaque (non-JWT) tokens or tokens without a numeric ``exp``.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return None

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, int | float):
        logger.debug("JWT has no usable exp claim")
        return None
    return datetime.fromtimestamp(exp, tz=UTC)

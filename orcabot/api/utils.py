"""
JWT utilities for staff access tokens.

Functions
---------
create_access_token(data: dict) -> str
    Creates a signed JWT access token with an expiration (`exp`) claim.
verify_token(token: str) -> str | None
    Verify a JWT's signature & expiration and return the subject (`sub`) if valid.
parse_subject(subject: str) -> dict
    Split a subject ``"<user_id>+?<user_name>+?<email>"`` into its parts.

Environment contract (from `settings`)
--------------------------------------
SECRET_KEY : str
    HMAC signing key shared with the identity provider.
ALGORITHM : str
    JWT signing algorithm (e.g., "HS256").
ACCESS_TOKEN_EXPIRE_MINUTES : int
    Token lifetime window in minutes.
"""

import logging
from datetime import datetime
from typing import Optional

from jose import jwt, JWTError
from orcabot.database.config.config import settings

logger = logging.getLogger(__name__)

SUBJECT_SEPARATOR = "+?"


def create_access_token(data: dict) -> str:
    """
    Create a signed JWT access token.

    Parameters
    ----------
    data : dict
        Claims to embed in the token; `sub` is read back by `verify_token`.

    Returns
    -------
    str
        Encoded JWT string.
    """
    expiration_time = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    encoding = data.copy()
    expires = int(datetime.now().timestamp()) + (int(expiration_time) * 60)
    encoding.update({"exp": expires})
    return jwt.encode(encoding, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[str]:
    """
    Verify a JWT and return its subject.

    Returns
    ----------
    str | None
        The `sub` claim if the token is valid, otherwise None (bad signature,
        expired or malformed).
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload.get("sub")
    except JWTError as e:
        logger.info(f"Rejected staff token: {e}")
        return None


def parse_subject(subject: str) -> dict:
    """Split a token subject into ``{"user_id", "user_name", "email"}``."""
    parts = subject.split(SUBJECT_SEPARATOR)
    parts += [None] * (3 - len(parts))
    return {"user_id": parts[0], "user_name": parts[1] or parts[0], "email": parts[2]}

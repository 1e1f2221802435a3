"""
Auth Service — caller tokens for the workflow API.

Users live in the CMS, which signs HS256 tokens with the shared SECRET_KEY.
This service reads them, and can mint short-lived ones for scripts and tests.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

from jose import JWTError, jwt

from seo_campaigns.config import get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
CALLER_TOKEN_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class CallerClaims:
    user_id: uuid.UUID
    email: str = ""
    brand_id: Optional[uuid.UUID] = None


def issue_caller_token(user_id, email: str = "", brand_id=None, ttl: timedelta = CALLER_TOKEN_TTL) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "email": email, "iat": now, "exp": now + ttl}
    if brand_id:
        claims["brand_id"] = str(brand_id)
    return jwt.encode(claims, get_settings().secret_key, algorithm=ALGORITHM)


def read_caller_token(token: str) -> Optional[CallerClaims]:
    """Claims of a valid token, or None when the token is not ours, expired, or has no usable subject."""
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
        brand_id = uuid.UUID(payload["brand_id"]) if payload.get("brand_id") else None
    except ValueError:
        logger.warning("Rejected caller token with a malformed subject or brand id")
        return None
    return CallerClaims(user_id=user_id, email=payload.get("email") or "", brand_id=brand_id)

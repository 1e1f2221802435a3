"""
Authentication — JWT (user login) and API-key (programmatic) auth.

- Web/frontend: JWT issued by the CMS. Include: Authorization: Bearer <jwt>
- Programmatic: API_KEY. Include: Authorization: Bearer <API_KEY> and X-User-Id: <uuid>

In development with no API_KEY set, auth is skipped and DEV_USER_ID acts as the caller.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from seo_campaigns.config import get_settings
from seo_campaigns.errors import AuthenticationError
from seo_campaigns.services.auth_service import read_caller_token
from seo_campaigns.utils import parse_uuid

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    x_user_id: Optional[str] = Header(default=None),
) -> uuid.UUID:
    """
    Resolve the acting user id.
    A valid JWT yields its `sub`; the API key requires an explicit X-User-Id header.
    """
    settings = get_settings()
    api_key = settings.api_key

    # Dev convenience: skip auth when no key is configured
    if not api_key and not credentials:
        if settings.is_production:
            raise AuthenticationError("Server misconfiguration: API_KEY must be set in production.")
        return parse_uuid(settings.dev_user_id, "dev_user_id")

    if not credentials:
        raise AuthenticationError("Missing authorization. Include header: Authorization: Bearer <token>")

    token = credentials.credentials

    # Try JWT first (user login)
    claims = read_caller_token(token)
    if claims:
        return claims.user_id

    # Fall back to API_KEY
    if api_key and token == api_key:
        if not x_user_id:
            raise AuthenticationError("API key requests must include an X-User-Id header.")
        return parse_uuid(x_user_id, "X-User-Id")

    raise AuthenticationError("Invalid or expired token. Please log in again.")

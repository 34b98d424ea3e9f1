"""Verification of access tokens issued by the external auth provider."""

import logging

from jose import JWTError, jwt

from pushrelay.config import get_settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a provider-issued JWT."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options={"verify_aud": settings.auth_jwt_audience is not None},
        )
        return payload
    except JWTError as e:
        logger.debug(f"Rejected access token: {e}")
        return None

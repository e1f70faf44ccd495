"""JWT token creation and verification.

Learn: Tokens are issued by the main web application's login flow; this
service only verifies them. create_access_token() exists for the CLI
(`taskhub token`) and tests.

Claims used here:
- sub: user id (selects the user:<id> room)
- company_id: tenant the user belongs to
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from taskhub.config import Settings, settings as default_settings


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    user_id: str,
    company_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Create a JWT access token, signed with `settings` (default: env settings)."""
    settings = settings or default_settings
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expires,
        "iat": now,
    }
    if company_id:
        payload["company_id"] = company_id
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Optional[Settings] = None) -> dict:
    """Verify and decode a JWT token.

    Checked against the secret and algorithm of `settings`; pass the
    app's own settings so apps built with create_app(settings) verify
    their own tokens. Returns the payload dict on success.
    Raises TokenError on failure.
    """
    settings = settings or default_settings
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise TokenError("Not an access token")
    return payload

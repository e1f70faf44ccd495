"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the caller's identity from the Authorization: Bearer header.
The WebSocket endpoint can't send headers from a browser, so it reads
the same token from ?token= and calls verify_token() itself.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from taskhub.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """The authenticated user making the request."""

    def __init__(self, user_id: str, company_id: Optional[str] = None):
        self.user_id = user_id
        self.company_id = company_id

    @classmethod
    def from_claims(cls, payload: dict) -> "CurrentIdentity":
        return cls(user_id=str(payload["sub"]), company_id=payload.get("company_id"))


async def get_current_user_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
        try:
            return CurrentIdentity.from_claims(
                verify_token(token, request.app.state.settings)
            )
        except TokenError as e:
            raise HTTPException(
                status_code=401,
                detail=str(e),
                headers={"WWW-Authenticate": "Bearer"},
            )
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity

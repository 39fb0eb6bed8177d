"""Caller identity.

Signup, login and token verification live outside this service; the gateway in
front of it forwards the authenticated user id in the ``X-User-Id`` header.
"""

from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()

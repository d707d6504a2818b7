"""Shared request dependencies."""
from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: str = Header(default="")) -> str:
    """Owner id set by the authenticating proxy in front of the API."""
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()

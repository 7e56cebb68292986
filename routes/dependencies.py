"""Request-scoped helpers shared by the API routers."""

from typing import Optional

from fastapi import Header

DEFAULT_USER_ID = "default_user"


def current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Return the caller identity forwarded by the auth front end."""
    if x_user_id is None or not x_user_id.strip():
        return DEFAULT_USER_ID
    return x_user_id.strip()

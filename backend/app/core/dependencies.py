from fastapi import Header

ANONYMOUS_USER = "anonymous"


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Return the owning user id for the request.

    Authentication lives in front of this service; it forwards the resolved
    user as the X-User-Id header. Requests without one share a single
    anonymous owner.
    """
    user_id = (x_user_id or "").strip()
    return user_id or ANONYMOUS_USER

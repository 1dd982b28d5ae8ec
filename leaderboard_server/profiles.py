"""
Profile lookup against the platform users endpoint. Used only to pick a display
name; every failure surfaces as UpstreamLookupFailure for the caller to degrade on.
"""
import httpx

from leaderboard_server.config import CLIENT_ID, HTTP_TIMEOUT_SECONDS, USERS_URL
from leaderboard_server.errors import UpstreamLookupFailure


def fetch_display_name(
    user_id: str,
    access_token: str,
    *,
    client_id: str = CLIENT_ID,
    users_url: str = USERS_URL,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> str | None:
    """
    GET users?id=<user_id> with the app access token.
    Returns the display name, or None if the record has none.
    Raises UpstreamLookupFailure on transport errors, non-2xx or malformed payloads.
    """
    try:
        r = httpx.get(
            users_url,
            params={"id": user_id},
            headers={
                "Authorization": f"Bearer {access_token}",
                "Client-Id": client_id,
                "Accept": "application/json",
            },
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        raise UpstreamLookupFailure(f"request failed: {type(e).__name__}") from e
    if not 200 <= r.status_code < 300:
        raise UpstreamLookupFailure(f"status {r.status_code}")
    try:
        users = r.json()["data"]
        user = users[0] if users else None
    except (ValueError, KeyError, TypeError, IndexError) as e:
        raise UpstreamLookupFailure("malformed payload") from e
    if user is None:
        return None
    if not isinstance(user, dict):
        raise UpstreamLookupFailure("malformed payload")
    name = user.get("display_name") or user.get("login")
    if name is not None and not isinstance(name, str):
        raise UpstreamLookupFailure("malformed payload")
    if not name or not name.strip():
        return None
    return name.strip()

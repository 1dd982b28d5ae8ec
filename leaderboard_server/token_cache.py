"""
App access token cache. Obtains a token from the platform with the
client_credentials grant and keeps it until it is within the refresh margin
of expiry. One process-wide instance, created in the app lifespan.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from leaderboard_server.config import (
    CLIENT_ID,
    CLIENT_SECRET,
    HTTP_TIMEOUT_SECONDS,
    TOKEN_REFRESH_MARGIN_SECONDS,
    TOKEN_URL,
)
from leaderboard_server.errors import UpstreamAuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: float

    def expires_within(self, margin_seconds: float, now: float) -> bool:
        """True if the token is expired or expires within margin_seconds of now."""
        return self.expires_at - now <= margin_seconds


class TokenCache:
    def __init__(
        self,
        client_id: str = CLIENT_ID,
        client_secret: str = CLIENT_SECRET,
        token_url: str = TOKEN_URL,
        *,
        margin_seconds: float = TOKEN_REFRESH_MARGIN_SECONDS,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.margin_seconds = margin_seconds
        self.timeout = timeout
        self._clock = clock
        self._token: AccessToken | None = None
        self._lock = threading.Lock()

    @property
    def current(self) -> AccessToken | None:
        return self._token

    def _fresh(self) -> AccessToken | None:
        token = self._token
        if token is None or token.expires_within(self.margin_seconds, self._clock()):
            return None
        return token

    def get_token(self) -> str:
        """
        Return a bearer token for platform API calls, exchanging client credentials
        when there is no cached token or it is about to expire.
        Raises UpstreamAuthError if the exchange fails.
        """
        token = self._fresh()
        if token is not None:
            return token.token
        # Single flight: whoever holds the lock refreshes, waiters reuse the result
        with self._lock:
            token = self._fresh()
            if token is None:
                token = self._exchange()
                self._token = token
        return token.token

    def invalidate(self) -> None:
        """Drop the cached token so the next get_token() exchanges again."""
        with self._lock:
            self._token = None

    def _exchange(self) -> AccessToken:
        try:
            r = httpx.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Token exchange request failed: %s", type(e).__name__)
            raise UpstreamAuthError() from e

        if r.status_code != 200:
            logger.warning("Token exchange rejected with status %s", r.status_code)
            raise UpstreamAuthError()

        try:
            data = r.json()
            access_token = data["access_token"]
            expires_in = data["expires_in"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Token exchange returned a malformed payload")
            raise UpstreamAuthError() from e
        if not isinstance(access_token, str) or not access_token:
            logger.warning("Token exchange returned an empty access_token")
            raise UpstreamAuthError()
        numeric = isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool)
        if not numeric or not math.isfinite(expires_in):
            logger.warning("Token exchange returned a non-numeric or non-finite expires_in")
            raise UpstreamAuthError()

        expires_at = self._clock() + expires_in
        logger.info("Obtained app access token (expires in %ss)", int(expires_in))
        return AccessToken(token=access_token, expires_at=expires_at)

"""
Error taxonomy. Each error knows the HTTP status and OAuth-style error code
it maps to; main.py turns them into {"detail": {"error", "error_description"}}.
"""


class LeaderboardError(Exception):
    status_code = 500
    error = "server_error"

    def __init__(self, description: str = "internal error"):
        super().__init__(description)
        self.description = description

    def to_detail(self) -> dict:
        return {"error": self.error, "error_description": self.description}


class AuthError(LeaderboardError):
    """Missing, malformed, invalid or expired identity assertion. Generic messages only."""

    status_code = 401
    error = "invalid_token"

    def __init__(self, description: str = "invalid token"):
        super().__init__(description)
        if description == "missing token":
            self.error = "invalid_request"


class ValidationError(LeaderboardError):
    status_code = 400
    error = "invalid_request"


class NotFoundError(LeaderboardError):
    status_code = 404
    error = "not_found"

    def __init__(self, description: str = "participant not found"):
        super().__init__(description)


class UpstreamAuthError(LeaderboardError):
    """Client-credentials exchange failed; fatal to whatever needed the token."""

    status_code = 502
    error = "upstream_error"

    def __init__(self, description: str = "upstream authentication failed"):
        super().__init__(description)


class UpstreamLookupFailure(LeaderboardError):
    """Profile lookup failed. Callers degrade to fallback naming; never sent to clients."""

    status_code = 502
    error = "upstream_error"

    def __init__(self, description: str = "profile lookup failed"):
        super().__init__(description)

"""
Leaderboard server configuration. Everything comes from the environment;
no secrets in this file.
"""
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# Shared secret the platform signs extension identity assertions with (HS256)
EXTENSION_SECRET = os.environ.get("EXTENSION_SECRET", "")
# The platform hands the secret out base64-encoded; set to true to decode before use
EXTENSION_SECRET_BASE64 = _env_bool("EXTENSION_SECRET_BASE64")

# Client credentials for the app access token exchange
CLIENT_ID = os.environ.get("EXTENSION_CLIENT_ID", "")
CLIENT_SECRET = os.environ.get("EXTENSION_CLIENT_SECRET", "")

# Platform endpoints: token issuing (client_credentials) and profile lookup
TOKEN_URL = os.environ.get("PLATFORM_TOKEN_URL", "https://id.twitch.tv/oauth2/token")
USERS_URL = os.environ.get("PLATFORM_USERS_URL", "https://api.twitch.tv/helix/users")

# Timeout (seconds) for every outbound call to the platform
HTTP_TIMEOUT_SECONDS = float(os.environ.get("PLATFORM_HTTP_TIMEOUT", "5.0"))

# Refresh the app access token when it expires within this many seconds
TOKEN_REFRESH_MARGIN_SECONDS = 60

# SQLite, in-memory by default; scores are not expected to survive a restart
DATABASE_URL = os.environ.get("LEADERBOARD_DATABASE_URL", "sqlite:///:memory:")

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))

CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

# Synthesized names are this prefix plus the last 6 characters of the platform id
FALLBACK_NAME_PREFIX = "Viewer-"

# Scores saturate here; the SQLite INTEGER column is a signed 64-bit value
MAX_SCORE = 2**63 - 1

import os
from pathlib import Path
from dotenv import load_dotenv

# Configuration for the relay.
# Every setting can be overridden from the process environment or a .env file
# at the repository root.

load_dotenv(Path(__file__).resolve().parents[1] / '.env')


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name, default=()):
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


SERVICE_NAME = os.getenv("SERVICE_NAME", "fetch-relay")
VERSION = "1.0.0"

# Process binding
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 5000))

# "development" or "production"; production hides raw exception text
APP_ENV = os.getenv("APP_ENV", "development").lower()

# Shared with the browser client. Static and discoverable, so not a secret.
SHARED_KEY = os.getenv("SHARED_KEY", "relay-obfuscation-key-v1")

# Maximum allowed clock skew between client timestamp and server (ms)
FRESHNESS_WINDOW_MS = int(os.getenv("FRESHNESS_WINDOW_MS", 5 * 60 * 1000))
REQUIRE_TIMESTAMP = _env_bool("REQUIRE_TIMESTAMP", False)

# Network timeout for outbound requests (seconds)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 15))
MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", 5))

REWRITE_LINKS = _env_bool("REWRITE_LINKS", True)

# GET /proxy?url= takes a plaintext target and returns the raw body
PLAIN_PROXY_ENABLED = _env_bool("PLAIN_PROXY_ENABLED", True)

USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
)

# Browser origins allowed to call the API
ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
])

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE") or None

# Unknown-error detail is cut to this many characters
MAX_ERROR_DETAIL = 100

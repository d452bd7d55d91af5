"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600

# Security and redaction
REDACTED = "[REDACTED]"
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds
DEFAULT_SESSION_SECRET = "contendo-session-secret-change-in-production"  # noqa: S105

# Request handling
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024  # 10 MiB

# Rate limiting
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 15 * 60
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100
DEFAULT_RATE_LIMIT_MESSAGE = "Too many requests from this IP"

# Sessions
DEFAULT_SESSION_MAX_AGE_SECONDS = 24 * 60 * 60
DEFAULT_SESSION_COOKIE_NAME = "contendo.sid"

# Process lifecycle
EXIT_CODE_SUCCESS = 0
EXIT_CODE_FAILURE = 1
DEFAULT_DRAIN_TIMEOUT_SECONDS = 10.0

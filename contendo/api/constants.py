"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
RATE_LIMIT_LIMIT_HEADER = "RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"

# Request handling
REQUEST_BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
JSON_CONTENT_TYPES = {"application/json", "text/json"}
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Responses
INTERNAL_SERVER_ERROR_MESSAGE = "Internal server error"
PAYLOAD_TOO_LARGE_MESSAGE = "Request entity too large"
MALFORMED_BODY_MESSAGE = "Malformed request body"
MAX_USER_AGENT_LENGTH = 200

# Routing
API_PREFIX = "/api"
DOMAIN_NAMES = (
    "healthcare",
    "training",
    "arbiter",
    "crm",
    "financial",
    "ai",
    "dashboard",
)

# Security
CONTENT_SECURITY_POLICY = {
    "default-src": ["'self'"],
    "style-src": ["'self'", "'unsafe-inline'", "https://fonts.googleapis.com"],
    "font-src": ["'self'", "https://fonts.gstatic.com"],
    "script-src": ["'self'", "'unsafe-inline'"],
    "img-src": ["'self'", "data:", "https:"],
    "connect-src": ["'self'", "ws:", "wss:", "https://*.supabase.co"],
    "base-uri": ["'self'"],
    "form-action": ["'self'"],
    "frame-ancestors": ["'self'"],
    "object-src": ["'none'"],
}

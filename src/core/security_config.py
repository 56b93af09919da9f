"""Security configuration constants for the SnapSolve API.

This module centralizes security-related configuration including:
- Sensitive keys that should be sanitized from logs
- Error response fields allowed per environment
"""

# Keys redacted from structured logs. Matching is substring-based and
# case-insensitive, so "imageBase64" also covers "image_base64".
SENSITIVE_KEYS: set[str] = {
    # Provider credentials
    "api_key",
    "apikey",
    "secret",
    "token",
    "authorization",
    "bearer",
    "x-api-key",
    "cookie",
    "set-cookie",
    # Request content that must never land in logs
    "imagebase64",
    "image_base64",
    "image_bytes",
    "data_url",
    # Personal data occasionally relayed in observer metadata
    "email",
    "phone",
    "password",
}

# Production-only error response fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development error response fields (additional fields allowed in development)
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment.

    Args:
        environment: The application environment (production, development, etc.)

    Returns:
        Set of allowed field names for error responses
    """
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    else:
        return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)

"""
Custom Exceptions

This module defines the error taxonomy of the service. Every failure a
handler can observe is one of these, and each maps to a single HTTP status.

- ConfigurationError: required settings are missing (500, operator-fixable)
- RateLimitedError: issuance cap exceeded for an identity (429)
- UnauthorizedError: caller lacks a valid admin session (401)
- UpstreamError: the external CAPTCHA service failed (relayed status)
- ChallengeVerificationError: a challenge or client proof was rejected (403)
- DatabaseError: persistence failed (500)
"""

from typing import Optional


class LinkGateException(Exception):
    """Base exception for the link gate service."""

    status_code: int = 500
    public_message: str = "Internal error"


class ConfigurationError(LinkGateException):
    """Raised when a required configuration value is absent."""

    def __init__(self, setting_name: str):
        self.setting_name = setting_name
        super().__init__(f"{setting_name} not configured")


class RateLimitedError(LinkGateException):
    """Raised when an identity exceeded its issuance cap."""

    status_code = 429

    def __init__(self, identity: str, limit: str):
        self.identity = identity
        self.limit = limit
        self.public_message = f"Rate limit exceeded: {limit}"
        super().__init__(f"Rate limit {limit} exceeded for {identity}")


class UnauthorizedError(LinkGateException):
    """Raised when the caller has no valid admin session."""

    status_code = 401
    public_message = "Unauthorized"


class UpstreamError(LinkGateException):
    """Raised when the external CAPTCHA service answers with a failure."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.public_message = message
        super().__init__(f"Upstream responded {status_code}: {message}")


class ChallengeVerificationError(LinkGateException):
    """Raised when a challenge or a client proof does not verify."""

    status_code = 403

    def __init__(self, reason: str):
        self.reason = reason
        self.public_message = reason
        super().__init__(reason)


class DatabaseError(LinkGateException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")

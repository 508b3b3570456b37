"""
Error types raised by the provider clients and the webhook layer.
"""

from typing import Optional


class StagingError(Exception):
    """Base exception for staging app lifecycle errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthFailure(StagingError):
    """A provider credential exchange failed."""
    pass


class LookupFailure(StagingError):
    """Pull request search or app listing failed."""
    pass


class MutationFailure(StagingError):
    """Create, config, build, comment or delete call failed."""
    pass


class UnrecognizedEvent(StagingError):
    """Webhook payload is not a usable pull request event."""
    pass

"""
Utility modules for the PR staging service.
"""

from pr_staging.utils.logging import (
    get_logger,
    setup_logging,
    log_pr_event,
    log_api_call,
    log_error_with_context,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_pr_event",
    "log_api_call",
    "log_error_with_context",
]

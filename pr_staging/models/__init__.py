"""Data models for the PR staging service."""

from .api_response import ReconcileAction, ReconcileResult, WebhookResponse
from .pr_event import PullRequestEvent, PullRequestState
from .staging_app import Credential, StagingApp, app_name

__all__ = [
    # PR event models
    "PullRequestEvent",
    "PullRequestState",
    # Hosting models
    "StagingApp",
    "Credential",
    "app_name",
    # API response models
    "ReconcileAction",
    "ReconcileResult",
    "WebhookResponse",
]

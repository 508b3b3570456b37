"""API response data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ReconcileAction(str, Enum):
    """Outcome of reconciling one webhook delivery."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOOP = "noop"
    REJECTED = "rejected"
    FAILED = "failed"


class ReconcileResult(BaseModel):
    """Result returned by the reconciler for a single event."""

    action: ReconcileAction
    app_name: Optional[str] = None
    message: str = ""


class WebhookResponse(BaseModel):
    """Response from webhook handler."""

    status: str
    message: str

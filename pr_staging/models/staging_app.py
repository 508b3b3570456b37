"""Staging app and credential data models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict


def app_name(domain_prefix: str, pull_request_id: str) -> str:
    """Deterministic Heroku app name for a pull request."""
    return f"{domain_prefix}{pull_request_id}"


class StagingApp(BaseModel):
    """Heroku app backing a pull request preview."""

    model_config = ConfigDict(extra="allow")

    name: str
    web_url: Optional[str] = None
    id: Optional[str] = None


class Credential(BaseModel):
    """Bearer token returned by a provider's credential exchange."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"

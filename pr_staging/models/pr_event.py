"""Pull request event data models."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class PullRequestState(str, Enum):
    """Known Bitbucket pull request states."""

    OPEN = "OPEN"
    MERGED = "MERGED"
    DECLINED = "DECLINED"
    SUPERSEDED = "SUPERSEDED"


class PullRequestEvent(BaseModel):
    """Pull request event from a Bitbucket webhook."""

    model_config = ConfigDict(frozen=True)

    repository_full_name: str
    source_branch: str
    destination_branch: str
    state: str  # unknown states are kept and treated as terminal
    id: str
    title: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("state", mode="before")
    @classmethod
    def _normalize_state(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["PullRequestEvent"]:
        """
        Build an event from a webhook body.

        Returns None when the body carries no ``pullrequest`` object.
        Raises pydantic's ValidationError, KeyError or TypeError when the
        object is present but malformed.
        """
        pullrequest = payload.get("pullrequest")
        if not pullrequest:
            return None

        return cls(
            repository_full_name=pullrequest["source"]["repository"]["full_name"],
            source_branch=pullrequest["source"]["branch"]["name"],
            destination_branch=pullrequest["destination"]["branch"]["name"],
            state=pullrequest["state"],
            id=pullrequest["id"],
            title=pullrequest.get("title") or "",
        )

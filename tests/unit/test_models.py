"""
Unit tests for event parsing and app naming.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from pr_staging.models import Credential, PullRequestEvent, PullRequestState, app_name


def make_payload(**overrides):
    pullrequest = {
        "id": 42,
        "title": "Add checkout flow",
        "state": "OPEN",
        "source": {
            "repository": {"full_name": "team/web"},
            "branch": {"name": "qa-foo"},
        },
        "destination": {"branch": {"name": "main"}},
    }
    pullrequest.update(overrides)
    return {"pullrequest": pullrequest}


def test_from_payload_extracts_fields():
    """Test building an event from a Bitbucket payload."""
    event = PullRequestEvent.from_payload(make_payload())

    assert event.repository_full_name == "team/web"
    assert event.source_branch == "qa-foo"
    assert event.destination_branch == "main"
    assert event.state == PullRequestState.OPEN
    assert event.id == "42"
    assert event.title == "Add checkout flow"


def test_from_payload_without_pull_request():
    """Test that a payload without a pull request yields None."""
    assert PullRequestEvent.from_payload({}) is None
    assert PullRequestEvent.from_payload({"pullrequest": None}) is None


def test_from_payload_missing_branch():
    """Test that a malformed pull request raises."""
    payload = make_payload()
    del payload["pullrequest"]["destination"]

    with pytest.raises(KeyError):
        PullRequestEvent.from_payload(payload)


def test_state_is_normalized():
    """Test lowercase states are upper-cased."""
    event = PullRequestEvent.from_payload(make_payload(state="declined"))

    assert event.state == PullRequestState.DECLINED


def test_event_is_immutable():
    """Test events cannot be mutated after parsing."""
    event = PullRequestEvent.from_payload(make_payload())

    with pytest.raises(ValidationError):
        event.state = "MERGED"


def test_app_name_is_prefix_plus_id():
    """Test the deterministic app name."""
    assert app_name("qapreview-", "42") == "qapreview-42"


@pytest.mark.parametrize("first,second", [("1", "2"), ("42", "420"), ("7", "77")])
def test_app_name_distinct_for_distinct_ids(first, second):
    """Test different ids never collide."""
    assert app_name("qapreview-", first) != app_name("qapreview-", second)


def test_credential_expiry():
    """Test credential expiry check."""
    now = datetime.now(timezone.utc)
    credential = Credential(access_token="abc", expires_at=now + timedelta(seconds=60))

    assert credential.is_expired(now) is False
    assert credential.is_expired(now + timedelta(seconds=61)) is True
    assert Credential(access_token="abc").is_expired() is False
    assert credential.authorization_header == "Bearer abc"

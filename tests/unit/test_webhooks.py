"""
Unit tests for the webhook endpoint.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from pr_staging.main import create_app
from pr_staging.models.api_response import ReconcileAction, ReconcileResult
from pr_staging.models.staging_app import Credential
from pr_staging.services.bitbucket_client import BitbucketClient
from pr_staging.services.heroku_client import HerokuClient
from pr_staging.services.reconciler import Reconciler

from conftest import make_settings


WEBHOOK = "/webhooks/bitbucket"


def make_payload(state="OPEN", source="qa-foo", destination="main", pr_id=42):
    return {
        "pullrequest": {
            "id": pr_id,
            "title": "Checkout flow",
            "state": state,
            "source": {
                "repository": {"full_name": "team/web"},
                "branch": {"name": source},
            },
            "destination": {"branch": {"name": destination}},
        }
    }


@pytest.fixture
def mock_reconciler():
    """Reconciler mock returning a successful create."""
    reconciler = MagicMock()
    reconciler.reconcile = AsyncMock(
        return_value=ReconcileResult(
            action=ReconcileAction.CREATED,
            app_name="qapreview-42",
            message="App qapreview-42 created from qa-foo",
        )
    )
    return reconciler


@pytest.fixture
def client(settings, mock_reconciler):
    """Test client with a mocked reconciler."""
    return TestClient(create_app(settings, reconciler=mock_reconciler))


def test_post_pull_request_event(client, mock_reconciler):
    """Test a valid event reaches the reconciler and returns 200."""
    response = client.post(WEBHOOK, json=make_payload())

    assert response.status_code == 200
    assert response.json()["status"] == "created"
    event = mock_reconciler.reconcile.await_args.args[0]
    assert event.id == "42"
    assert event.repository_full_name == "team/web"
    assert event.source_branch == "qa-foo"
    assert event.destination_branch == "main"


def test_get_pull_request_event(client, mock_reconciler):
    """Test GET deliveries are handled like POST."""
    response = client.request("GET", WEBHOOK, json=make_payload())

    assert response.status_code == 200
    mock_reconciler.reconcile.assert_awaited_once()


@pytest.mark.parametrize("action", [ReconcileAction.UPDATED, ReconcileAction.DELETED, ReconcileAction.NOOP])
def test_success_actions_return_200(client, mock_reconciler, action):
    """Test every non-failure outcome maps to 200."""
    mock_reconciler.reconcile.return_value = ReconcileResult(action=action, message="ok")

    response = client.post(WEBHOOK, json=make_payload())

    assert response.status_code == 200
    assert response.json()["status"] == action.value


def test_failed_result_returns_500(client, mock_reconciler):
    """Test provider failures map to 500."""
    mock_reconciler.reconcile.return_value = ReconcileResult(
        action=ReconcileAction.FAILED, message="heroku POST /apps returned 422"
    )

    response = client.post(WEBHOOK, json=make_payload())

    assert response.status_code == 500


def test_unexpected_error_returns_500(client, mock_reconciler):
    """Test unexpected exceptions do not escape the handler."""
    mock_reconciler.reconcile.side_effect = RuntimeError("boom")

    response = client.post(WEBHOOK, json=make_payload())

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error processing webhook"


def test_malformed_pull_request_returns_400(client, mock_reconciler):
    """Test a pull request missing required fields is rejected before reconciling."""
    payload = make_payload()
    del payload["pullrequest"]["source"]["branch"]

    response = client.post(WEBHOOK, json=payload)

    assert response.status_code == 400
    mock_reconciler.reconcile.assert_not_awaited()


def test_non_json_body_returns_400(client, mock_reconciler):
    """Test a non-JSON body is rejected."""
    response = client.post(WEBHOOK, content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    mock_reconciler.reconcile.assert_not_awaited()


def test_empty_get_returns_400(client, mock_reconciler):
    """Test a bodiless verification ping is rejected."""
    response = client.get(WEBHOOK)

    assert response.status_code == 400


def test_json_array_body_returns_400(client):
    """Test a JSON body that is not an object is rejected."""
    response = client.post(WEBHOOK, json=[1, 2, 3])

    assert response.status_code == 400


def test_custom_webhook_endpoint(mock_reconciler):
    """Test the route follows the configured path."""
    app = create_app(make_settings(webhook_endpoint="/hooks/bb"), reconciler=mock_reconciler)
    client = TestClient(app)

    assert client.post("/hooks/bb", json=make_payload()).status_code == 200
    assert client.post(WEBHOOK, json=make_payload()).status_code == 404


class TestWithRealReconciler:
    """Webhook plus Reconciler with mocked providers."""

    @pytest.fixture
    def providers(self):
        bitbucket = MagicMock(spec=BitbucketClient)
        heroku = MagicMock(spec=HerokuClient)
        heroku.authenticate.return_value = Credential(access_token="heroku-token")
        heroku.find_app.return_value = None
        return bitbucket, heroku

    @pytest.fixture
    def client(self, settings, providers):
        bitbucket, heroku = providers
        reconciler = Reconciler(settings, bitbucket=bitbucket, heroku=heroku)
        return TestClient(create_app(settings, reconciler=reconciler))

    def test_missing_pull_request_returns_400(self, client, providers):
        """Test a payload with no pull request is rejected without provider calls."""
        bitbucket, heroku = providers

        response = client.post(WEBHOOK, json={"repository": {"full_name": "team/web"}})

        assert response.status_code == 400
        assert bitbucket.mock_calls == []
        assert heroku.mock_calls == []

    def test_untracked_branch_is_noop(self, client, providers):
        """Test an ordinary open pull request returns 200 without provider calls."""
        bitbucket, heroku = providers

        response = client.post(WEBHOOK, json=make_payload(source="feature-x"))

        assert response.status_code == 200
        assert response.json()["status"] == "noop"
        assert bitbucket.mock_calls == []
        assert heroku.mock_calls == []

    def test_declined_without_app_returns_200(self, client, providers):
        """Test a declined pull request with no app is a successful no-op."""
        _, heroku = providers

        response = client.post(WEBHOOK, json=make_payload(state="DECLINED", pr_id=7))

        assert response.status_code == 200
        heroku.find_app.assert_awaited_once_with(heroku.authenticate.return_value, "qapreview-7")
        heroku.delete_app.assert_not_awaited()

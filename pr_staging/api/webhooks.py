"""
Webhook endpoint for Bitbucket pull request events.
"""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from pr_staging.models.api_response import ReconcileAction, WebhookResponse
from pr_staging.models.pr_event import PullRequestEvent
from pr_staging.services.errors import UnrecognizedEvent
from pr_staging.services.reconciler import Reconciler
from pr_staging.utils.logging import get_logger

logger = get_logger(__name__)

SUCCESS_ACTIONS = {
    ReconcileAction.CREATED,
    ReconcileAction.UPDATED,
    ReconcileAction.DELETED,
    ReconcileAction.NOOP,
}


async def parse_pr_event(request: Request) -> Optional[PullRequestEvent]:
    """
    Parse the request body into a pull request event.

    Returns:
        The event, or None when the body has no ``pullrequest`` object

    Raises:
        UnrecognizedEvent: If the body is not JSON or the pull request is malformed
    """
    try:
        payload: Any = await request.json()
    except ValueError as e:
        raise UnrecognizedEvent("Request body is not valid JSON") from e

    if not isinstance(payload, dict):
        raise UnrecognizedEvent("Request body is not a JSON object")

    try:
        return PullRequestEvent.from_payload(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise UnrecognizedEvent(f"Malformed pull request payload: {e}") from e


async def handle_pr_webhook(request: Request) -> WebhookResponse:
    """
    Receive a Bitbucket pull request webhook and reconcile its staging app.

    Status codes:
    - 200: app created, redeployed, deleted, or nothing to do
    - 400: payload is not a recognizable pull request event
    - 500: a provider call failed or an unexpected error occurred

    Raises:
        HTTPException: For 400 and 500 outcomes
    """
    reconciler: Reconciler = request.app.state.reconciler

    try:
        event = await parse_pr_event(request)
    except UnrecognizedEvent as e:
        logger.warning(f"Rejected webhook payload: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await reconciler.reconcile(event)
    except Exception as e:
        logger.error(f"Error handling webhook: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error processing webhook")

    if result.action == ReconcileAction.REJECTED:
        raise HTTPException(status_code=400, detail=result.message)

    if result.action not in SUCCESS_ACTIONS:
        raise HTTPException(status_code=500, detail=result.message)

    return WebhookResponse(status=result.action.value, message=result.message)


def build_router(webhook_endpoint: str) -> APIRouter:
    """Router serving the webhook on GET and POST at the configured path."""
    router = APIRouter(tags=["webhooks"])
    router.add_api_route(
        webhook_endpoint,
        handle_pr_webhook,
        methods=["GET", "POST"],
        response_model=WebhookResponse,
    )
    return router

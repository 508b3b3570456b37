"""
Reconciler component.

Maps a pull request event plus the current set of Heroku apps to a single
action: create, update (redeploy), delete or no-op. Runs once per webhook
delivery with no retries. Provider failures are logged and reported as a
failed result; side effects that already happened are not rolled back.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from pr_staging.config import Settings
from pr_staging.models.api_response import ReconcileAction, ReconcileResult
from pr_staging.models.pr_event import PullRequestEvent, PullRequestState
from pr_staging.models.staging_app import app_name
from pr_staging.services.bitbucket_client import BitbucketClient
from pr_staging.services.branch_policy import BranchPolicy
from pr_staging.services.errors import StagingError
from pr_staging.services.heroku_client import HerokuClient
from pr_staging.utils.logging import get_logger, log_error_with_context, log_pr_event

logger = get_logger(__name__)

DEPLOYMENT_COMMENT = (
    "The pull request **{title}** is being deployed to [{url}]({url}). "
    "Please hang on while the deployment is completed."
)


class AppLockRegistry:
    """
    In-process mutual exclusion keyed by app name.

    Serializes the find/create/build and find/delete sequences for the same
    app within one process. Locks are dropped once nobody holds or waits on
    them.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._users[name] = self._users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[name] -= 1
            if not self._users[name]:
                del self._users[name]
                del self._locks[name]

    def __len__(self) -> int:
        return len(self._locks)


class Reconciler:
    """Decides and executes the staging app action for a pull request event."""

    def __init__(
        self,
        settings: Settings,
        bitbucket: BitbucketClient,
        heroku: HerokuClient,
        policy: Optional[BranchPolicy] = None,
        locks: Optional[AppLockRegistry] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            settings: Immutable application settings
            bitbucket: Source-control client
            heroku: Hosting client
            policy: Branch policy; built from settings.branch_regex if omitted
            locks: Per-app lock registry; a private one is created if omitted
        """
        self.settings = settings
        self.bitbucket = bitbucket
        self.heroku = heroku
        self.policy = policy or BranchPolicy(settings.branch_regex)
        self.locks = locks or AppLockRegistry()

    def app_name_for(self, pull_request_id: str) -> str:
        return app_name(self.settings.domain_prefix, pull_request_id)

    async def reconcile(self, event: Optional[PullRequestEvent]) -> ReconcileResult:
        """
        Reconcile one webhook delivery.

        Args:
            event: Parsed event, or None when the payload had no pull request

        Returns:
            ReconcileResult describing the action taken
        """
        if event is None:
            logger.warning("Webhook payload carried no pull request")
            return ReconcileResult(
                action=ReconcileAction.REJECTED,
                message="Payload is not a pull request event",
            )

        log_pr_event(
            logger,
            pr_id=event.id,
            repository=event.repository_full_name,
            state=event.state,
            source_branch=event.source_branch,
            destination_branch=event.destination_branch,
        )

        if self.policy.is_actionable(event, event.source_branch, event.destination_branch):
            return await self._create_or_update(event)

        if event.state != PullRequestState.OPEN:
            return await self._delete(event)

        return ReconcileResult(
            action=ReconcileAction.REJECTED,
            message=f"Unrecognized pull request state {event.state}",
        )

    async def _create_or_update(self, event: PullRequestEvent) -> ReconcileResult:
        log = logger.with_context(pr_id=event.id, repository=event.repository_full_name)
        source = event.source_branch
        destination = event.destination_branch

        if event.state == PullRequestState.OPEN and not self.policy.matches_tracked_pattern(source):
            log.info(f"Branch {source} is not tracked, nothing to deploy")
            return ReconcileResult(
                action=ReconcileAction.NOOP,
                message=f"Branch {source} is not tracked",
            )

        deployable_branch = source
        pull_request_id = event.id

        try:
            if self.policy.targets_tracked_branch(source, destination):
                deployable_branch = destination
                credential = await self.bitbucket.authenticate()
                resolved_id = await self.bitbucket.find_open_pull_request(
                    credential, event.repository_full_name, destination
                )
                if resolved_id is None:
                    log.info(f"No open pull request for tracked branch {destination}, skipping")
                    return ReconcileResult(
                        action=ReconcileAction.NOOP,
                        message=f"No open pull request for {destination}",
                    )
                log.info(f"Merged into {destination}, redeploying pull request {resolved_id}")
                pull_request_id = resolved_id

            name = self.app_name_for(pull_request_id)
            async with self.locks.hold(name):
                return await self._deploy(event, pull_request_id, name, deployable_branch)

        except StagingError as e:
            log_error_with_context(
                log,
                f"Failed to deploy pull request {pull_request_id}: {e}",
                e,
                app_name=self.app_name_for(pull_request_id),
            )
            return ReconcileResult(
                action=ReconcileAction.FAILED,
                app_name=self.app_name_for(pull_request_id),
                message=str(e),
            )

    async def _deploy(
        self,
        event: PullRequestEvent,
        pull_request_id: str,
        name: str,
        deployable_branch: str,
    ) -> ReconcileResult:
        log = logger.with_context(
            pr_id=pull_request_id,
            app_name=name,
            repository=event.repository_full_name,
        )

        credential = await self.heroku.authenticate()
        existing = await self.heroku.find_app(credential, name)

        created = existing is None
        web_url = None
        if created:
            app = await self.heroku.create_app(credential, name)
            await self.heroku.set_config_vars(credential, name, dict(self.settings.env_vars))
            web_url = app.web_url

        tarball = self.bitbucket.source_archive_url(event.repository_full_name, deployable_branch)
        await self.heroku.start_build(credential, name, tarball)
        log.info(
            f"Build started for {name} from {deployable_branch}",
            extra={"source_url": BitbucketClient.redact_url(tarball)},
        )

        if created:
            if web_url:
                bitbucket_credential = await self.bitbucket.authenticate()
                await self.bitbucket.post_comment(
                    bitbucket_credential,
                    event.repository_full_name,
                    pull_request_id,
                    DEPLOYMENT_COMMENT.format(title=event.title, url=web_url),
                )
            else:
                log.warning(f"App {name} was created without a web URL, skipping comment")

        action = ReconcileAction.CREATED if created else ReconcileAction.UPDATED
        return ReconcileResult(
            action=action,
            app_name=name,
            message=f"App {name} {action.value} from {deployable_branch}",
        )

    async def _delete(self, event: PullRequestEvent) -> ReconcileResult:
        name = self.app_name_for(event.id)
        log = logger.with_context(pr_id=event.id, app_name=name, repository=event.repository_full_name)

        try:
            async with self.locks.hold(name):
                credential = await self.heroku.authenticate()
                existing = await self.heroku.find_app(credential, name)
                if existing is None:
                    log.info(f"No app named {name}, nothing to delete")
                    return ReconcileResult(
                        action=ReconcileAction.NOOP,
                        app_name=name,
                        message=f"App {name} does not exist",
                    )
                await self.heroku.delete_app(credential, name)
        except StagingError as e:
            log_error_with_context(log, f"Failed to delete app {name}: {e}", e)
            return ReconcileResult(action=ReconcileAction.FAILED, app_name=name, message=str(e))

        return ReconcileResult(
            action=ReconcileAction.DELETED,
            app_name=name,
            message=f"App {name} deleted ({event.state})",
        )

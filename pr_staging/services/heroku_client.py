"""
Heroku Platform API client.

Exposes the app lifecycle calls the reconciler uses: list/find, create,
config-var patching, source builds and deletion.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from pr_staging.config import Settings
from pr_staging.models.staging_app import Credential, StagingApp
from pr_staging.services.errors import AuthFailure, LookupFailure, MutationFailure
from pr_staging.services.provider_base import ProviderClient
from pr_staging.utils.logging import get_logger

logger = get_logger(__name__)

HEROKU_API_BASE = "https://api.heroku.com"
HEROKU_ACCEPT = "application/vnd.heroku+json; version=3"


class HerokuClient(ProviderClient):
    """Stateless wrapper around the Heroku Platform API."""

    service = "heroku"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        super().__init__(http_client)
        self._user = settings.heroku_user
        self._password = settings.heroku_password

    def _headers(self, credential: Credential) -> Dict[str, str]:
        return {
            "Accept": HEROKU_ACCEPT,
            "Authorization": credential.authorization_header,
        }

    async def authenticate(self) -> Credential:
        """
        Exchange basic credentials for a bearer token.

        Raises:
            AuthFailure: If Heroku rejects the credentials
        """
        response = await self._request(
            "POST",
            f"{HEROKU_API_BASE}/oauth/authorizations",
            AuthFailure,
            auth=(self._user, self._password),
            headers={"Accept": HEROKU_ACCEPT},
            json={},
        )
        body = self._json(response, AuthFailure)

        access_token = body.get("access_token") if isinstance(body, dict) else None
        token = access_token.get("token") if isinstance(access_token, dict) else None
        if not token:
            raise AuthFailure("Heroku authorization response carried no access token")

        expires_at = None
        with self._parsing(AuthFailure, "authorization response"):
            if access_token.get("expires_in"):
                expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(access_token["expires_in"]))

        return Credential(access_token=token, expires_at=expires_at)

    async def list_apps(self, credential: Credential) -> List[StagingApp]:
        """
        List every app visible to the account.

        Raises:
            LookupFailure: If the listing fails
        """
        response = await self._request(
            "GET",
            f"{HEROKU_API_BASE}/apps",
            LookupFailure,
            headers=self._headers(credential),
        )
        body = self._json(response, LookupFailure)
        if not isinstance(body, list):
            raise LookupFailure("Heroku app listing was not a JSON array")
        with self._parsing(LookupFailure, "app listing"):
            return [StagingApp.model_validate(app) for app in body]

    async def find_app(self, credential: Credential, name: str) -> Optional[StagingApp]:
        """Look an app up by name. The provider listing is the source of truth."""
        for app in await self.list_apps(credential):
            if app.name == name:
                return app
        return None

    async def create_app(self, credential: Credential, name: str) -> StagingApp:
        """
        Create a new app.

        Raises:
            MutationFailure: If creation fails (including name conflicts)
        """
        response = await self._request(
            "POST",
            f"{HEROKU_API_BASE}/apps",
            MutationFailure,
            json={"name": name},
            headers=self._headers(credential),
        )
        body = self._json(response, MutationFailure)
        with self._parsing(MutationFailure, "app creation response"):
            app = StagingApp.model_validate(body)
        logger.info(f"Created Heroku app {app.name}", extra={"app_name": app.name})
        return app

    async def set_config_vars(
        self,
        credential: Credential,
        name: str,
        config_vars: Dict[str, Any],
    ) -> None:
        await self._request(
            "PATCH",
            f"{HEROKU_API_BASE}/apps/{name}/config-vars",
            MutationFailure,
            json=config_vars,
            headers=self._headers(credential),
        )

    async def start_build(self, credential: Credential, name: str, source_tarball_url: str) -> Dict[str, Any]:
        """
        Trigger a build from a source tarball URL.

        Returns:
            The build resource as returned by Heroku
        """
        response = await self._request(
            "POST",
            f"{HEROKU_API_BASE}/apps/{name}/builds",
            MutationFailure,
            json={"source_blob": {"url": source_tarball_url}},
            headers=self._headers(credential),
        )
        return self._json(response, MutationFailure)

    async def delete_app(self, credential: Credential, name: str) -> None:
        await self._request(
            "DELETE",
            f"{HEROKU_API_BASE}/apps/{name}",
            MutationFailure,
            headers=self._headers(credential),
        )
        logger.info(f"Deleted Heroku app {name}", extra={"app_name": name})

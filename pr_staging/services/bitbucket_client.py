"""
Bitbucket client.

Covers the three Bitbucket operations the reconciler needs: looking up the
open pull request for a branch, posting a comment, and building the
authenticated tarball URL that Heroku fetches the source from.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

import httpx

from pr_staging.config import Settings
from pr_staging.models.staging_app import Credential
from pr_staging.services.errors import AuthFailure, LookupFailure, MutationFailure
from pr_staging.services.provider_base import ProviderClient
from pr_staging.utils.logging import get_logger

logger = get_logger(__name__)

BITBUCKET_HOST = "bitbucket.org"
BITBUCKET_TOKEN_URL = f"https://{BITBUCKET_HOST}/site/oauth2/access_token"
BITBUCKET_API_BASE = "https://api.bitbucket.org/2.0"


def bbql_string(value: str) -> str:
    """Escape a value for use inside a double-quoted BBQL string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


class BitbucketClient(ProviderClient):
    """Stateless wrapper around the Bitbucket Cloud REST API."""

    service = "bitbucket"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        super().__init__(http_client)
        self._key = settings.bitbucket_key
        self._secret = settings.bitbucket_secret
        self._email = settings.bitbucket_email
        self._user = settings.bitbucket_user
        self._password = settings.bitbucket_password

    async def authenticate(self) -> Credential:
        """
        Exchange the account password for an OAuth access token.

        Uses the resource-owner password grant with the OAuth consumer
        key/secret as client credentials.

        Raises:
            AuthFailure: If the token endpoint rejects the request
        """
        response = await self._request(
            "POST",
            BITBUCKET_TOKEN_URL,
            AuthFailure,
            auth=(self._key, self._secret),
            data={
                "grant_type": "password",
                "username": self._email,
                "password": self._password,
            },
        )
        body = self._json(response, AuthFailure)

        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise AuthFailure("Bitbucket token response carried no access_token")

        expires_at = None
        with self._parsing(AuthFailure, "token response"):
            if body.get("expires_in"):
                expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(body["expires_in"]))

        return Credential(access_token=token, expires_at=expires_at)

    async def find_open_pull_request(
        self,
        credential: Credential,
        repository: str,
        branch: str,
    ) -> Optional[str]:
        """
        Find the open pull request whose source branch is ``branch``.

        Args:
            credential: Bitbucket credential from authenticate()
            repository: Repository full name (``workspace/slug``)
            branch: Source branch name

        Returns:
            The first match's id, or None when nothing is open

        Raises:
            LookupFailure: If the search request fails
        """
        response = await self._request(
            "GET",
            f"{BITBUCKET_API_BASE}/repositories/{repository}/pullrequests",
            LookupFailure,
            params={"q": f'source.branch.name="{bbql_string(branch)}" AND state = "OPEN"'},
            headers={
                "Authorization": credential.authorization_header,
                "Cache-Control": "no-cache",
            },
        )
        body = self._json(response, LookupFailure)

        values = body.get("values") if isinstance(body, dict) else None
        if not values:
            logger.info(f"No open pull request found for {repository}@{branch}")
            return None

        with self._parsing(LookupFailure, "pull request search response"):
            pull_request_id = values[0].get("id")
        return str(pull_request_id) if pull_request_id is not None else None

    async def post_comment(
        self,
        credential: Credential,
        repository: str,
        pull_request_id: str,
        text: str,
    ) -> None:
        """
        Post a markdown comment on a pull request.

        Raises:
            MutationFailure: If Bitbucket rejects the comment
        """
        await self._request(
            "POST",
            f"{BITBUCKET_API_BASE}/repositories/{repository}/pullrequests/{pull_request_id}/comments",
            MutationFailure,
            json={"content": {"raw": text}},
            headers={"Authorization": credential.authorization_header},
        )
        logger.info(
            f"Posted comment on pull request {pull_request_id}",
            extra={"pr_id": pull_request_id, "repository": repository},
        )

    def source_archive_url(self, repository: str, branch: str) -> str:
        """Tarball URL of ``branch`` with basic credentials embedded."""
        user = quote(self._user, safe="")
        password = quote(self._password, safe="")
        path = f"{quote(repository, safe='/')}/get/{quote(branch, safe='/')}.tar.gz"
        return f"https://{user}:{password}@{BITBUCKET_HOST}/{path}"

    @staticmethod
    def redact_url(url: str) -> str:
        """Strip embedded credentials from a URL before logging it."""
        parsed = httpx.URL(url)
        if not parsed.userinfo:
            return url
        return str(parsed.copy_with(username="***", password="***"))

"""
Shared request plumbing for the Bitbucket and Heroku clients.
"""

import time
from contextlib import contextmanager
from typing import Any, Iterator, Type

import httpx

from pr_staging.services.errors import StagingError
from pr_staging.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class ProviderClient:
    """
    Base class for thin provider API wrappers.

    Every call is a single request: no retries and no backoff. Transport
    errors and HTTP statuses >= 400 are raised as the error class chosen by
    the caller.
    """

    service = "provider"

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: Type[StagingError],
        **kwargs: Any,
    ) -> httpx.Response:
        endpoint = httpx.URL(url).path
        start_time = time.time()

        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            log_api_call(
                logger,
                service=self.service,
                endpoint=endpoint,
                method=method,
                duration_ms=duration_ms,
                error=str(e),
            )
            raise error_cls(f"{self.service} {method} {endpoint} failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000

        if response.status_code >= 400:
            log_api_call(
                logger,
                service=self.service,
                endpoint=endpoint,
                method=method,
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=response.text[:500],
            )
            raise error_cls(
                f"{self.service} {method} {endpoint} returned "
                f"{response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        log_api_call(
            logger,
            service=self.service,
            endpoint=endpoint,
            method=method,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response

    @staticmethod
    def _json(response: httpx.Response, error_cls: Type[StagingError]) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"Unexpected non-JSON response from {response.request.url.path}",
                status_code=response.status_code,
            ) from e

    @contextmanager
    def _parsing(self, error_cls: Type[StagingError], what: str) -> Iterator[None]:
        """Raise ``error_cls`` when a response body has an unexpected shape."""
        try:
            yield
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise error_cls(f"Malformed {self.service} {what}: {e}") from e

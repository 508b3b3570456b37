"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI

from pr_staging import __version__
from pr_staging.api.webhooks import build_router
from pr_staging.config import Settings, get_settings
from pr_staging.services.bitbucket_client import BitbucketClient
from pr_staging.services.heroku_client import HerokuClient
from pr_staging.services.reconciler import Reconciler
from pr_staging.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    reconciler: Optional[Reconciler] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings; loaded from the environment if omitted
        reconciler: Pre-built reconciler, mainly for tests

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    http_client: Optional[httpx.AsyncClient] = None
    if reconciler is None:
        http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        reconciler = Reconciler(
            settings,
            bitbucket=BitbucketClient(settings, http_client),
            heroku=HerokuClient(settings, http_client),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting PR Staging, webhook at {settings.webhook_endpoint}",
            extra={"branch_regex": settings.branch_regex},
        )
        yield
        logger.info("Shutting down PR Staging")
        if http_client is not None:
            await http_client.aclose()

    app = FastAPI(
        title="PR Staging",
        description="Per pull request Heroku staging apps driven by Bitbucket webhooks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.reconciler = reconciler

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "PR Staging API",
            "version": __version__,
            "webhook": settings.webhook_endpoint,
        }

    app.include_router(build_router(settings.webhook_endpoint))

    return app


def main() -> None:
    """Run the service with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        "pr_staging.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

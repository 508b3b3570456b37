"""
Application configuration management.
"""

from functools import lru_cache
from typing import Dict

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Webhook
    webhook_endpoint: str = "/webhooks/bitbucket"

    # Bitbucket
    bitbucket_user: str
    bitbucket_email: str
    bitbucket_password: str
    bitbucket_key: str
    bitbucket_secret: str

    # Heroku
    heroku_user: str
    heroku_password: str

    # Staging apps
    domain_prefix: str
    branch_regex: str
    env_vars: Dict[str, str] = {}  # JSON object in the environment

    # Application
    log_level: str = "INFO"
    http_timeout_seconds: float = 30.0
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()

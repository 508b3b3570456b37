"""
Shared fixtures for unit tests.
"""

import pytest

from pr_staging.config import Settings


def make_settings(**overrides) -> Settings:
    """Settings with test credentials, ignoring any local .env file."""
    values = {
        "bitbucket_user": "deploy-bot",
        "bitbucket_email": "deploy-bot@example.com",
        "bitbucket_password": "bb-pass",
        "bitbucket_key": "bb-key",
        "bitbucket_secret": "bb-secret",
        "heroku_user": "ops@example.com",
        "heroku_password": "heroku-pass",
        "domain_prefix": "qapreview-",
        "branch_regex": "^qa-",
        "env_vars": {"NODE_ENV": "staging", "API_URL": "https://api.staging.example.com"},
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Test settings instance."""
    return make_settings()

"""Business logic services package."""

from pr_staging.services.bitbucket_client import BitbucketClient
from pr_staging.services.branch_policy import BranchPolicy
from pr_staging.services.errors import (
    AuthFailure,
    LookupFailure,
    MutationFailure,
    StagingError,
    UnrecognizedEvent,
)
from pr_staging.services.heroku_client import HerokuClient
from pr_staging.services.reconciler import AppLockRegistry, Reconciler

__all__ = [
    'BitbucketClient',
    'HerokuClient',
    'BranchPolicy',
    'Reconciler',
    'AppLockRegistry',
    'StagingError',
    'AuthFailure',
    'LookupFailure',
    'MutationFailure',
    'UnrecognizedEvent',
]

"""
Branch eligibility rules for staging apps.

A branch is "tracked" when its name matches the configured pattern. Tracked
branches get a staging app while their pull request is open. A feature branch
merged into a tracked branch redeploys the tracked branch's app.
"""

import re
from typing import Optional, Pattern, Union

from pr_staging.models.pr_event import PullRequestEvent, PullRequestState


class BranchPolicy:
    """Pure predicates over branch names and a tracked-branch pattern."""

    def __init__(self, branch_regex: Union[str, Pattern[str]]):
        self._pattern = re.compile(branch_regex)

    @property
    def pattern(self) -> Pattern[str]:
        return self._pattern

    def matches_tracked_pattern(self, branch: str) -> bool:
        return self._pattern.search(branch) is not None

    def targets_tracked_branch(self, source: str, destination: str) -> bool:
        """True when an untracked branch is being merged into a tracked one."""
        return (
            not self.matches_tracked_pattern(source)
            and self.matches_tracked_pattern(destination)
        )

    def is_actionable(
        self,
        pull_request: Optional[PullRequestEvent],
        source: str,
        destination: str,
    ) -> bool:
        """
        Decide whether an event should create or redeploy an app.

        Open pull requests are actionable; merged ones only when they land
        on a tracked branch.
        """
        if pull_request is None:
            return False
        if pull_request.state == PullRequestState.OPEN:
            return True
        if pull_request.state == PullRequestState.MERGED:
            return self.targets_tracked_branch(source, destination)
        return False

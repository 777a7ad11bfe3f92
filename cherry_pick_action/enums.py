"""Enumerations for target statuses and run options."""

from enum import Enum


class TargetStatus(str, Enum):
    """Evaluation state of a single target branch.

    ``PENDING`` is the only non-terminal state. Every other value is final
    for the run that produced it.
    """

    PENDING = "pending"
    DRY_RUN = "dry_run"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PLACEHOLDER_PR = "placeholder_pr"
    SKIPPED_MISSING_BRANCH = "skipped_missing_branch"
    SKIPPED_EXISTING_PR = "skipped_existing_pr"
    SKIPPED_COMMIT_PRESENT = "skipped_commit_present"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Check if this status is final for the run."""
        return self is not TargetStatus.PENDING

    @property
    def is_skipped(self) -> bool:
        """Check if the target was skipped during evaluation."""
        return self in (
            TargetStatus.SKIPPED_MISSING_BRANCH,
            TargetStatus.SKIPPED_EXISTING_PR,
            TargetStatus.SKIPPED_COMMIT_PRESENT,
        )

    @property
    def created_pr(self) -> bool:
        """Check if this status means a pull request was opened."""
        return self in (TargetStatus.SUCCEEDED, TargetStatus.PLACEHOLDER_PR)


class ConflictStrategy(str, Enum):
    """What to do when a cherry-pick does not apply cleanly.

    - fail: record the target as failed
    - placeholder-pr: open a PR with an empty commit for manual resolution
    """

    FAIL = "fail"
    PLACEHOLDER_PR = "placeholder-pr"

    def __str__(self) -> str:
        return self.value


class LogFormat(str, Enum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"

    def __str__(self) -> str:
        return self.value

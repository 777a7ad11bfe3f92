"""
Domain models for the cherry-pick action.

These dataclasses are the normalized internal representation the orchestrator
works with. Provider-specific payloads (PyGithub objects, webhook JSON) are
converted into them at the edges.

Example:
    Building the result of a target evaluation::

        result = TargetResult(
            target=Target(source_label="cherry-pick/release/v0.25", branch="release/v0.25"),
            status=TargetStatus.PENDING,
        )
"""

from dataclasses import dataclass, field

from cherry_pick_action.enums import TargetStatus


@dataclass(frozen=True)
class Target:
    """A release branch a merged change should be backported to.

    Created by the target resolver from a label name or a manual override and
    never modified afterwards. ``branch`` is normalized and is the uniqueness
    key within a run.
    """

    source_label: str
    """Label (or ``input:<branch>`` override) the target was derived from."""

    branch: str
    """Normalized target branch name, e.g. ``release/v0.25``."""


@dataclass(frozen=True)
class PRRef:
    """Reference to a pull request on the hosting service."""

    url: str
    number: int
    head_branch: str = ""
    base_branch: str = ""


@dataclass
class PRMetadata:
    """Snapshot of the source pull request.

    Read from the remote service at the start of a run and again right before
    evaluation. The orchestrator never modifies it.
    """

    owner: str
    repo: str
    number: int
    title: str = ""
    body: str = ""
    merge_commit_sha: str = ""
    head_sha: str = ""
    head_ref: str = ""
    head_owner: str = ""
    head_repo: str = ""
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    is_merged: bool = False
    is_from_fork: bool = False

    @property
    def source_commit(self) -> str:
        """Commit to cherry-pick: the merge commit, falling back to the head commit."""
        return self.merge_commit_sha or self.head_sha


@dataclass
class CreatePROptions:
    """Metadata required to open a cherry-pick pull request."""

    title: str
    body: str
    head: str
    base: str
    draft: bool = False
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    maintainer_can_modify: bool = True


@dataclass(frozen=True)
class IssueComment:
    """A comment on an issue or pull request."""

    id: int
    body: str


@dataclass
class TargetResult:
    """Outcome of evaluating (and possibly executing) one target.

    The status is set once during evaluation and at most once more during
    execution. Once terminal it is not changed again.
    """

    target: Target
    status: TargetStatus = TargetStatus.PENDING
    reason: str = ""
    existing_pr: PRRef | None = None
    created_pr: PRRef | None = None


@dataclass
class RunResult:
    """Complete output of one orchestration pass."""

    targets: list[TargetResult] = field(default_factory=list)
    skipped: bool = False
    skipped_reason: str = ""

    @property
    def failed_targets(self) -> list[TargetResult]:
        """Targets whose execution failed."""
        return [t for t in self.targets if t.status is TargetStatus.FAILED]

    @property
    def pending_targets(self) -> list[TargetResult]:
        """Targets still awaiting execution."""
        return [t for t in self.targets if t.status is TargetStatus.PENDING]

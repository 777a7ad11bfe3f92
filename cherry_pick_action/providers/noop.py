"""GitHub client placeholder that refuses every call."""

from cherry_pick_action.exceptions import ExternalServiceError
from cherry_pick_action.models.domain import CreatePROptions, IssueComment, PRMetadata, PRRef
from cherry_pick_action.providers.base import GitHubClient

_NOT_IMPLEMENTED = "noop github client not implemented"


class NoopGitHubClient(GitHubClient):
    """Client used where no GitHub access is configured.

    Every method raises :class:`ExternalServiceError`, so accidental use fails
    loudly instead of silently reporting success.
    """

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PRMetadata:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def list_cherry_pick_prs(
        self, owner: str, repo: str, source_pr: int, target_branch: str
    ) -> list[PRRef]:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def ensure_branch_exists(self, owner: str, repo: str, branch: str) -> None:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def create_branch(self, owner: str, repo: str, branch: str, from_sha: str) -> None:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def create_pull_request(
        self, owner: str, repo: str, options: CreatePROptions
    ) -> PRRef:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def comment_on_pull_request(self, owner: str, repo: str, number: int, body: str) -> None:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def list_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> list[IssueComment]:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def update_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> None:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def commit_exists_on_branch(
        self, owner: str, repo: str, commit_sha: str, branch: str
    ) -> bool:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def has_label(self, owner: str, repo: str, number: int, label: str) -> bool:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def add_label(self, owner: str, repo: str, number: int, label: str) -> None:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

    async def check_org_membership(self, org: str, username: str) -> bool:
        raise ExternalServiceError(_NOT_IMPLEMENTED)

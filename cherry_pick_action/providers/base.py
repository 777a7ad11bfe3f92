"""
Abstract base class for the hosting-service client.

The orchestrator only talks to the remote service through
:class:`GitHubClient`, so tests can substitute mocks and dry runs can use a
client that never mutates anything. Implementations raise
:class:`~cherry_pick_action.exceptions.ExternalServiceError` (with
``retryable`` set for transient failures) and
:class:`~cherry_pick_action.exceptions.BranchNotFoundError` where noted.
"""

from abc import ABC, abstractmethod

from cherry_pick_action.models.domain import CreatePROptions, IssueComment, PRMetadata, PRRef


class GitHubClient(ABC):
    """Operations the cherry-pick flow needs from GitHub.

    All methods are async to support non-blocking I/O.
    """

    @abstractmethod
    async def get_pull_request(self, owner: str, repo: str, number: int) -> PRMetadata:
        """Fetch a pull request snapshot.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            PRMetadata with labels, assignees, merge state and fork detection
            filled in.

        Raises:
            ExternalServiceError: If the API request fails
        """
        pass

    @abstractmethod
    async def list_cherry_pick_prs(
        self, owner: str, repo: str, source_pr: int, target_branch: str
    ) -> list[PRRef]:
        """List pull requests (any state) from the cherry-pick branch into ``target_branch``.

        The head branch is derived from ``target_branch`` and ``source_pr`` with
        the standard branch naming scheme.
        """
        pass

    @abstractmethod
    async def ensure_branch_exists(self, owner: str, repo: str, branch: str) -> None:
        """Verify that ``branch`` exists.

        Raises:
            BranchNotFoundError: If the branch does not exist
            ExternalServiceError: If the lookup fails for another reason
        """
        pass

    @abstractmethod
    async def create_branch(self, owner: str, repo: str, branch: str, from_sha: str) -> None:
        """Create ``branch`` pointing at ``from_sha``."""
        pass

    @abstractmethod
    async def create_pull_request(
        self, owner: str, repo: str, options: CreatePROptions
    ) -> PRRef:
        """Open a pull request, then apply labels and assignees.

        Raises:
            ExternalServiceError: If creation, labeling or assignment fails
        """
        pass

    @abstractmethod
    async def comment_on_pull_request(self, owner: str, repo: str, number: int, body: str) -> None:
        """Post a comment on a pull request."""
        pass

    @abstractmethod
    async def list_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> list[IssueComment]:
        """List all issue comments on a pull request."""
        pass

    @abstractmethod
    async def update_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> None:
        """Replace the body of an existing comment on pull request ``number``."""
        pass

    @abstractmethod
    async def commit_exists_on_branch(
        self, owner: str, repo: str, commit_sha: str, branch: str
    ) -> bool:
        """Check whether ``commit_sha`` is already reachable from ``branch``.

        Returns False when the comparison is not possible (unknown commit or
        branch).
        """
        pass

    @abstractmethod
    async def has_label(self, owner: str, repo: str, number: int, label: str) -> bool:
        """Check whether the pull request carries ``label`` (exact match)."""
        pass

    @abstractmethod
    async def add_label(self, owner: str, repo: str, number: int, label: str) -> None:
        """Add ``label`` to the pull request."""
        pass

    @abstractmethod
    async def check_org_membership(self, org: str, username: str) -> bool:
        """Check whether ``username`` belongs to organization ``org``.

        Returns False when either the organization or the user is unknown.
        """
        pass

    async def close(self) -> None:
        """Release transport resources. Default does nothing."""
        return None

"""GitHub client implementation using PyGithub and the REST API.

PyGithub is synchronous, so every call runs in a worker thread. Failures are
converted to :class:`ExternalServiceError` with ``retryable`` set for
transient conditions, and retryable failures are repeated with exponential
backoff before surfacing to the caller.
"""

import asyncio
from collections.abc import Callable
from typing import TypeVar

import requests
import structlog
from github import Auth, Github, GithubException, RateLimitExceededException  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from cherry_pick_action.engine.naming import name_for
from cherry_pick_action.exceptions import BranchNotFoundError, ExternalServiceError, is_retryable
from cherry_pick_action.models.domain import CreatePROptions, IssueComment, PRMetadata, PRRef
from cherry_pick_action.providers.base import GitHubClient
from cherry_pick_action.utils.retry import call_with_retry

log = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_USER_AGENT = "cherry-pick-action"


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a synchronous function in a thread pool.

    This prevents blocking the event loop when calling synchronous
    PyGithub methods.
    """
    return await asyncio.to_thread(func)


def is_retryable_github_error(exc: BaseException) -> bool:
    """Classify a PyGithub or transport error as transient."""
    if isinstance(exc, RateLimitExceededException):
        return True
    if isinstance(exc, GithubException):
        status = exc.status or 0
        if status == 202 or status == 429 or 500 <= status <= 599:
            return True
        if status == 403:
            message = str(exc.data).lower() if exc.data else ""
            return "secondary rate limit" in message or "abuse" in message
        return False
    if isinstance(exc, requests.exceptions.Timeout | requests.exceptions.ConnectionError):
        return True
    return False


def _is_not_found(exc: GithubException) -> bool:
    return exc.status == 404


class GitHubRestClient(GitHubClient):
    """GitHub implementation using the PyGithub library."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        api_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        """Initialize GitHub client.

        Args:
            token: GitHub token (Actions token, PAT or App token)
            base_url: GitHub API base URL (for GitHub Enterprise)
            user_agent: User-Agent header sent with every request
            api_retries: Extra attempts for retryable failures
            retry_delay: Delay before the first retry, doubled after each
            timeout: Per-request timeout in seconds
        """
        self.token = token.strip() if token else token
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.user_agent = user_agent
        self.api_retries = max(0, api_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._client: Github | None = None
        self._repos: dict[str, GHRepository] = {}

    def _github(self) -> Github:
        if self._client is None:
            self._client = Github(
                auth=Auth.Token(self.token),
                base_url=self.base_url,
                user_agent=self.user_agent,
                timeout=int(self.timeout),
                retry=None,
            )
        return self._client

    def _repo(self, owner: str, repo: str) -> GHRepository:
        full_name = f"{owner}/{repo}"
        if full_name not in self._repos:
            self._repos[full_name] = self._github().get_repo(full_name)
        return self._repos[full_name]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repos.clear()

    async def _call(self, operation: str, func: Callable[[], T], **context: object) -> T:
        """Run ``func`` in a thread, classifying and retrying failures."""

        async def attempt() -> T:
            try:
                return await _run_sync(func)
            except (GithubException, requests.exceptions.RequestException) as e:
                retryable = is_retryable_github_error(e)
                log.error(f"github_{operation}_failed", error=str(e), retryable=retryable, **context)
                status = e.status if isinstance(e, GithubException) else None
                data = str(e.data) if isinstance(e, GithubException) and e.data else None
                raise ExternalServiceError(
                    f"{operation.replace('_', ' ')}: {e}",
                    status_code=status,
                    response_text=data,
                    retryable=retryable,
                ) from e

        return await call_with_retry(
            attempt,
            max_attempts=self.api_retries + 1,
            initial_delay=self.retry_delay,
            exceptions=(ExternalServiceError,),
            retry_if=is_retryable,
            name=operation,
        )

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PRMetadata:
        """Fetch a pull request and normalize it into PRMetadata."""
        log.info("get_pull_request", owner=owner, repo=repo, number=number)

        return await self._call(
            "get_pull_request",
            lambda: self._convert_pull_request(self._repo(owner, repo).get_pull(number), owner, repo),
            number=number,
        )

    async def list_cherry_pick_prs(
        self, owner: str, repo: str, source_pr: int, target_branch: str
    ) -> list[PRRef]:
        """List cherry-pick PRs for ``source_pr`` into ``target_branch`` in any state."""
        branch_name = name_for(target_branch, source_pr)
        log.debug("list_cherry_pick_prs", head=branch_name, base=target_branch)

        def _list() -> list[PRRef]:
            pulls = self._repo(owner, repo).get_pulls(
                state="all", head=f"{owner}:{branch_name}", base=target_branch
            )
            return [self._convert_pr_ref(pr) for pr in pulls]

        return await self._call("list_pull_requests", _list, head=branch_name)

    async def ensure_branch_exists(self, owner: str, repo: str, branch: str) -> None:
        """Raise BranchNotFoundError when ``branch`` is missing."""

        def _get_branch() -> bool:
            try:
                self._repo(owner, repo).get_branch(branch)
            except GithubException as e:
                if _is_not_found(e):
                    return False
                raise
            return True

        found = await self._call("get_branch", _get_branch, branch=branch)
        if not found:
            raise BranchNotFoundError(branch)

    async def create_branch(self, owner: str, repo: str, branch: str, from_sha: str) -> None:
        """Create ``refs/heads/<branch>`` at ``from_sha``."""
        log.info("create_branch", branch=branch, sha=from_sha)
        await self._call(
            "create_ref",
            lambda: self._repo(owner, repo).create_git_ref(ref=f"refs/heads/{branch}", sha=from_sha),
            branch=branch,
        )

    async def create_pull_request(
        self, owner: str, repo: str, options: CreatePROptions
    ) -> PRRef:
        """Open a pull request and apply labels and assignees."""
        log.info("create_pull_request", head=options.head, base=options.base, title=options.title)

        gh_pr = await self._call(
            "create_pull_request",
            lambda: self._repo(owner, repo).create_pull(
                title=options.title,
                body=options.body,
                head=options.head,
                base=options.base,
                draft=options.draft,
                maintainer_can_modify=options.maintainer_can_modify,
            ),
            head=options.head,
        )
        result = self._convert_pr_ref(gh_pr)

        if options.labels:
            await self._call(
                "add_labels_to_pull_request",
                lambda: gh_pr.add_to_labels(*options.labels),
                number=result.number,
            )
        if options.assignees:
            await self._call(
                "add_assignees_to_pull_request",
                lambda: gh_pr.add_to_assignees(*options.assignees),
                number=result.number,
            )

        log.info("pull_request_created", number=result.number, url=result.url)
        return result

    async def comment_on_pull_request(self, owner: str, repo: str, number: int, body: str) -> None:
        """Add a comment to a pull request."""
        await self._call(
            "create_comment",
            lambda: self._repo(owner, repo).get_issue(number).create_comment(body),
            number=number,
        )

    async def list_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> list[IssueComment]:
        """Retrieve all comments on a pull request."""

        def _list() -> list[IssueComment]:
            comments = self._repo(owner, repo).get_issue(number).get_comments()
            return [IssueComment(id=c.id, body=c.body or "") for c in comments]

        return await self._call("list_comments", _list, number=number)

    async def update_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> None:
        """Edit an existing comment."""
        await self._call(
            "edit_comment",
            lambda: self._repo(owner, repo).get_issue(number).get_comment(comment_id).edit(body),
            comment_id=comment_id,
        )

    async def commit_exists_on_branch(
        self, owner: str, repo: str, commit_sha: str, branch: str
    ) -> bool:
        """Compare ``branch...commit_sha``; behind or identical means present."""

        def _compare() -> bool:
            try:
                comparison = self._repo(owner, repo).compare(branch, commit_sha)
            except GithubException as e:
                if _is_not_found(e):
                    return False
                raise
            return comparison.status in ("behind", "identical")

        return await self._call("compare_commits", _compare, branch=branch, sha=commit_sha)

    async def has_label(self, owner: str, repo: str, number: int, label: str) -> bool:
        """Check the pull request's labels for an exact match."""

        def _has_label() -> bool:
            labels = self._repo(owner, repo).get_issue(number).get_labels()
            return any(lbl.name == label for lbl in labels)

        return await self._call("list_labels", _has_label, number=number)

    async def add_label(self, owner: str, repo: str, number: int, label: str) -> None:
        """Add a single label to the pull request."""
        await self._call(
            "add_label",
            lambda: self._repo(owner, repo).get_issue(number).add_to_labels(label),
            number=number,
            label=label,
        )

    async def check_org_membership(self, org: str, username: str) -> bool:
        """Check organization membership; unknown org or user is not a member."""

        def _check() -> bool:
            client = self._github()
            try:
                organization = client.get_organization(org)
                user = client.get_user(username)
                return bool(organization.has_in_members(user))
            except GithubException as e:
                if _is_not_found(e):
                    return False
                raise

        return await self._call("check_org_membership", _check, org=org, user=username)

    def _convert_pull_request(self, gh_pr: GHPullRequest, owner: str, repo: str) -> PRMetadata:
        """Convert a PyGithub PullRequest to PRMetadata."""
        labels = [lbl.name for lbl in gh_pr.labels if lbl is not None and lbl.name]
        assignees = [user.login for user in gh_pr.assignees if user is not None and user.login]

        metadata = PRMetadata(
            owner=owner,
            repo=repo,
            number=gh_pr.number,
            title=gh_pr.title or "",
            body=gh_pr.body or "",
            merge_commit_sha=gh_pr.merge_commit_sha or "",
            labels=labels,
            assignees=assignees,
            is_merged=bool(gh_pr.merged),
        )

        head = gh_pr.head
        if head is not None:
            metadata.head_sha = head.sha or ""
            metadata.head_ref = head.ref or ""
            if head.repo is not None:
                metadata.head_repo = head.repo.name or ""
                if head.repo.owner is not None:
                    metadata.head_owner = head.repo.owner.login or ""

        if metadata.head_owner and metadata.head_owner.lower() != owner.lower():
            metadata.is_from_fork = True
        if metadata.head_repo and metadata.head_repo.lower() != repo.lower():
            metadata.is_from_fork = True

        return metadata

    def _convert_pr_ref(self, gh_pr: GHPullRequest) -> PRRef:
        """Convert a PyGithub PullRequest to PRRef."""
        return PRRef(
            url=gh_pr.html_url or "",
            number=gh_pr.number,
            head_branch=gh_pr.head.ref if gh_pr.head is not None else "",
            base_branch=gh_pr.base.ref if gh_pr.base is not None else "",
        )

"""Tests for cherry_pick_action/providers/github_rest.py - GitHub REST client."""

from unittest.mock import Mock, patch

import pytest
import requests
from github import GithubException, RateLimitExceededException

from cherry_pick_action.exceptions import BranchNotFoundError, ExternalServiceError
from cherry_pick_action.models.domain import CreatePROptions, PRRef
from cherry_pick_action.providers.github_rest import GitHubRestClient, is_retryable_github_error


def named(**attrs) -> Mock:
    """Mock with plain attributes (``name`` is reserved by Mock's constructor)."""
    obj = Mock()
    for key, value in attrs.items():
        setattr(obj, key, value)
    return obj


def make_gh_pull(number=42, head_owner="rancher", head_repo="dashboard", merged=True) -> Mock:
    """PyGithub-like pull request object."""
    return named(
        number=number,
        title="Fix login redirect",
        body=None,
        merge_commit_sha="abc123",
        merged=merged,
        html_url=f"https://github.com/rancher/dashboard/pull/{number}",
        labels=[named(name="bug"), named(name="cherry-pick/release/v2.9")],
        assignees=[named(login="octocat")],
        head=named(
            sha="def456",
            ref="fix-login",
            repo=named(name=head_repo, owner=named(login=head_owner)),
        ),
        base=named(ref="main"),
    )


@pytest.fixture
def client() -> GitHubRestClient:
    """Client without retry delays."""
    return GitHubRestClient(token="ghs_test_token", retry_delay=0)


@pytest.fixture
def gh_repo():
    """Patch Github so get_repo returns a mock repository."""
    with patch("cherry_pick_action.providers.github_rest.Github") as github_class:
        repo = Mock()
        github_class.return_value.get_repo.return_value = repo
        repo.github_class = github_class
        yield repo


class TestIsRetryableGithubError:
    """Tests for error classification."""

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (RateLimitExceededException(403, {"message": "API rate limit exceeded"}, {}), True),
            (GithubException(429, {"message": "Too Many Requests"}, {}), True),
            (GithubException(502, {"message": "Bad Gateway"}, {}), True),
            (GithubException(202, None, {}), True),
            (GithubException(403, {"message": "You have exceeded a secondary rate limit"}, {}), True),
            (GithubException(403, {"message": "Resource not accessible by integration"}, {}), False),
            (GithubException(404, {"message": "Not Found"}, {}), False),
            (GithubException(422, {"message": "Validation Failed"}, {}), False),
            (requests.exceptions.ConnectTimeout(), True),
            (requests.exceptions.ConnectionError(), True),
            (ValueError("x"), False),
        ],
    )
    def test_classification(self, exc, expected):
        """Should flag transient failures as retryable."""
        assert is_retryable_github_error(exc) is expected


class TestClientSetup:
    """Tests for client construction and teardown."""

    def test_defaults(self):
        """Should default to the public API and lazy client."""
        client = GitHubRestClient(token=" ghs_x ")

        assert client.token == "ghs_x"
        assert client.base_url == "https://api.github.com"
        assert client.api_retries == 2
        assert client._client is None

    @pytest.mark.asyncio
    async def test_github_constructed_without_builtin_retry(self, client, gh_repo):
        """Should build PyGithub with our base URL and no urllib3 retry."""
        gh_repo.get_branch.return_value = Mock()

        await client.ensure_branch_exists("rancher", "dashboard", "main")

        kwargs = gh_repo.github_class.call_args.kwargs
        assert kwargs["base_url"] == "https://api.github.com"
        assert kwargs["user_agent"] == "cherry-pick-action"
        assert kwargs["retry"] is None
        gh_repo.github_class.return_value.get_repo.assert_called_once_with("rancher/dashboard")

    @pytest.mark.asyncio
    async def test_repo_cached(self, client, gh_repo):
        """Should fetch each repository once."""
        gh_repo.get_branch.return_value = Mock()

        await client.ensure_branch_exists("rancher", "dashboard", "main")
        await client.ensure_branch_exists("rancher", "dashboard", "release/v1")

        gh_repo.github_class.return_value.get_repo.assert_called_once()

    @pytest.mark.asyncio
    async def test_close(self, client, gh_repo):
        """Should close the PyGithub client and drop caches."""
        gh_repo.get_branch.return_value = Mock()
        await client.ensure_branch_exists("rancher", "dashboard", "main")

        await client.close()

        gh_repo.github_class.return_value.close.assert_called_once()
        assert client._client is None
        assert client._repos == {}

    @pytest.mark.asyncio
    async def test_close_when_unused(self, client):
        """Should do nothing when no request was made."""
        await client.close()
        assert client._client is None


class TestPullRequests:
    """Tests for pull request operations."""

    @pytest.mark.asyncio
    async def test_get_pull_request(self, client, gh_repo):
        """Should convert the PyGithub object to PRMetadata."""
        gh_repo.get_pull.return_value = make_gh_pull()

        pr = await client.get_pull_request("rancher", "dashboard", 42)

        gh_repo.get_pull.assert_called_once_with(42)
        assert pr.number == 42
        assert pr.title == "Fix login redirect"
        assert pr.body == ""
        assert pr.merge_commit_sha == "abc123"
        assert pr.head_sha == "def456"
        assert pr.head_ref == "fix-login"
        assert pr.labels == ["bug", "cherry-pick/release/v2.9"]
        assert pr.assignees == ["octocat"]
        assert pr.is_merged is True
        assert pr.is_from_fork is False

    @pytest.mark.asyncio
    async def test_fork_detected(self, client, gh_repo):
        """Should flag pull requests whose head lives in another repository."""
        gh_repo.get_pull.return_value = make_gh_pull(head_owner="contributor")

        pr = await client.get_pull_request("rancher", "dashboard", 42)

        assert pr.is_from_fork is True
        assert pr.head_owner == "contributor"

    @pytest.mark.asyncio
    async def test_owner_comparison_case_insensitive(self, client, gh_repo):
        """Should not treat a differently cased owner as a fork."""
        gh_repo.get_pull.return_value = make_gh_pull(head_owner="Rancher", head_repo="Dashboard")

        assert (await client.get_pull_request("rancher", "dashboard", 42)).is_from_fork is False

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, client, gh_repo):
        """Should retry rate-limited requests."""
        gh_repo.get_pull.side_effect = [
            RateLimitExceededException(403, {"message": "API rate limit exceeded"}, {}),
            make_gh_pull(),
        ]

        pr = await client.get_pull_request("rancher", "dashboard", 42)

        assert pr.number == 42
        assert gh_repo.get_pull.call_count == 2

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, client, gh_repo):
        """Should give up after api_retries extra attempts."""
        gh_repo.get_pull.side_effect = GithubException(503, {"message": "unavailable"}, {})

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_pull_request("rancher", "dashboard", 42)

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503
        assert gh_repo.get_pull.call_count == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, client, gh_repo):
        """Should not retry permanent failures."""
        gh_repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, {})

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_pull_request("rancher", "dashboard", 42)

        assert exc_info.value.retryable is False
        assert gh_repo.get_pull.call_count == 1

    @pytest.mark.asyncio
    async def test_list_cherry_pick_prs(self, client, gh_repo):
        """Should query PRs in any state from the cherry-pick branch."""
        gh_repo.get_pulls.return_value = [make_gh_pull(number=77)]

        refs = await client.list_cherry_pick_prs("rancher", "dashboard", 42, "release/v2.9")

        gh_repo.get_pulls.assert_called_once_with(
            state="all", head="rancher:cherry-pick/release/v2.9/pr-42", base="release/v2.9"
        )
        assert refs == [
            PRRef(
                url="https://github.com/rancher/dashboard/pull/77",
                number=77,
                head_branch="fix-login",
                base_branch="main",
            )
        ]

    @pytest.mark.asyncio
    async def test_create_pull_request(self, client, gh_repo):
        """Should open the PR then apply labels and assignees."""
        gh_pr = make_gh_pull(number=100)
        gh_repo.create_pull.return_value = gh_pr
        options = CreatePROptions(
            title="[release/v2.9] Fix",
            body="body",
            head="cherry-pick/release/v2.9/pr-42",
            base="release/v2.9",
            labels=["bug"],
            assignees=["octocat"],
        )

        ref = await client.create_pull_request("rancher", "dashboard", options)

        gh_repo.create_pull.assert_called_once_with(
            title="[release/v2.9] Fix",
            body="body",
            head="cherry-pick/release/v2.9/pr-42",
            base="release/v2.9",
            draft=False,
            maintainer_can_modify=True,
        )
        gh_pr.add_to_labels.assert_called_once_with("bug")
        gh_pr.add_to_assignees.assert_called_once_with("octocat")
        assert ref.number == 100

    @pytest.mark.asyncio
    async def test_create_pull_request_without_labels(self, client, gh_repo):
        """Should skip labeling and assignment when there is nothing to apply."""
        gh_pr = make_gh_pull(number=100)
        gh_repo.create_pull.return_value = gh_pr

        await client.create_pull_request("rancher", "dashboard", CreatePROptions(title="t", body="b", head="h", base="m"))

        gh_pr.add_to_labels.assert_not_called()
        gh_pr.add_to_assignees.assert_not_called()


class TestBranchesAndCommits:
    """Tests for branch and commit operations."""

    @pytest.mark.asyncio
    async def test_branch_missing(self, client, gh_repo):
        """Should raise BranchNotFoundError on 404."""
        gh_repo.get_branch.side_effect = GithubException(404, {"message": "Branch not found"}, {})

        with pytest.raises(BranchNotFoundError) as exc_info:
            await client.ensure_branch_exists("rancher", "dashboard", "release/v9")

        assert exc_info.value.branch == "release/v9"

    @pytest.mark.asyncio
    async def test_branch_lookup_error(self, client, gh_repo):
        """Should surface other failures as ExternalServiceError."""
        gh_repo.get_branch.side_effect = GithubException(401, {"message": "Bad credentials"}, {})

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.ensure_branch_exists("rancher", "dashboard", "main")

        assert not isinstance(exc_info.value, BranchNotFoundError)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_create_branch(self, client, gh_repo):
        """Should create a git ref for the branch."""
        await client.create_branch("rancher", "dashboard", "topic", "abc123")

        gh_repo.create_git_ref.assert_called_once_with(ref="refs/heads/topic", sha="abc123")

    @pytest.mark.parametrize(
        "status,expected",
        [("behind", True), ("identical", True), ("ahead", False), ("diverged", False)],
    )
    @pytest.mark.asyncio
    async def test_commit_exists_on_branch(self, client, gh_repo, status, expected):
        """Should treat behind and identical comparisons as present."""
        gh_repo.compare.return_value = named(status=status)

        assert await client.commit_exists_on_branch("rancher", "dashboard", "abc123", "release/v1") is expected
        gh_repo.compare.assert_called_once_with("release/v1", "abc123")

    @pytest.mark.asyncio
    async def test_commit_compare_not_found(self, client, gh_repo):
        """Should report an unknown commit as absent."""
        gh_repo.compare.side_effect = GithubException(404, {"message": "Not Found"}, {})

        assert await client.commit_exists_on_branch("rancher", "dashboard", "abc123", "release/v1") is False


class TestLabelsAndComments:
    """Tests for labels, comments and membership."""

    @pytest.mark.asyncio
    async def test_has_label_exact_match(self, client, gh_repo):
        """Should match label names exactly."""
        gh_repo.get_issue.return_value.get_labels.return_value = [named(name="cherry-pick/done/release/v1")]

        assert await client.has_label("rancher", "dashboard", 42, "cherry-pick/done/release/v1") is True
        assert await client.has_label("rancher", "dashboard", 42, "cherry-pick/done/release/v") is False

    @pytest.mark.asyncio
    async def test_add_label(self, client, gh_repo):
        """Should add the label to the issue."""
        await client.add_label("rancher", "dashboard", 42, "cherry-pick/done/main")

        gh_repo.get_issue.assert_called_with(42)
        gh_repo.get_issue.return_value.add_to_labels.assert_called_once_with("cherry-pick/done/main")

    @pytest.mark.asyncio
    async def test_comments(self, client, gh_repo):
        """Should list, create and edit issue comments."""
        issue = gh_repo.get_issue.return_value
        issue.get_comments.return_value = [named(id=1, body="hello"), named(id=2, body=None)]

        comments = await client.list_pull_request_comments("rancher", "dashboard", 42)
        await client.comment_on_pull_request("rancher", "dashboard", 42, "summary")
        await client.update_comment("rancher", "dashboard", 42, 2, "updated")

        assert [(c.id, c.body) for c in comments] == [(1, "hello"), (2, "")]
        issue.create_comment.assert_called_once_with("summary")
        issue.get_comment.assert_called_once_with(2)
        issue.get_comment.return_value.edit.assert_called_once_with("updated")

    @pytest.mark.asyncio
    async def test_org_membership(self, client, gh_repo):
        """Should check membership of the user in the organization."""
        github = gh_repo.github_class.return_value
        github.get_organization.return_value.has_in_members.return_value = True

        assert await client.check_org_membership("rancher", "octocat") is True
        github.get_organization.assert_called_once_with("rancher")
        github.get_user.assert_called_once_with("octocat")

    @pytest.mark.asyncio
    async def test_org_membership_unknown_user(self, client, gh_repo):
        """Should report unknown users as non-members."""
        github = gh_repo.github_class.return_value
        github.get_user.side_effect = GithubException(404, {"message": "Not Found"}, {})

        assert await client.check_org_membership("rancher", "ghost") is False

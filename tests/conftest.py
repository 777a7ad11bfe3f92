"""Pytest configuration and shared fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

from cherry_pick_action.models.domain import PRMetadata, PRRef
from cherry_pick_action.providers.base import GitHubClient

ACTION_ENV_VARS = (
    "GITHUB_TOKEN",
    "GITHUB_EVENT_NAME",
    "GITHUB_EVENT_PATH",
    "GITHUB_ACTOR",
    "GITHUB_STEP_SUMMARY",
    "GITHUB_OUTPUT",
)


@pytest.fixture(autouse=True)
def clean_action_env(monkeypatch):
    """Remove action inputs inherited from the outer environment."""
    for name in list(os.environ):
        if name.upper().startswith("INPUT_") or name in ACTION_ENV_VARS:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def merged_pr() -> PRMetadata:
    """Merged pull request labelled for two release branches."""
    return PRMetadata(
        owner="rancher",
        repo="dashboard",
        number=42,
        title="Fix login redirect",
        body="Redirect to the original page after login.",
        merge_commit_sha="abc123",
        head_sha="def456",
        head_ref="fix-login",
        head_owner="rancher",
        head_repo="dashboard",
        labels=["bug", "cherry-pick/release/v2.8", "cherry-pick/release/v2.9"],
        assignees=["octocat"],
        is_merged=True,
    )


@pytest.fixture
def mock_client(merged_pr) -> AsyncMock:
    """GitHub client mock where every target is eligible."""
    client = AsyncMock(spec=GitHubClient)
    client.get_pull_request.return_value = merged_pr
    client.has_label.return_value = False
    client.ensure_branch_exists.return_value = None
    client.list_cherry_pick_prs.return_value = []
    client.commit_exists_on_branch.return_value = False
    client.list_pull_request_comments.return_value = []

    counter = iter(range(100, 200))

    async def create_pull_request(owner, repo, options):
        number = next(counter)
        return PRRef(
            url=f"https://github.com/{owner}/{repo}/pull/{number}",
            number=number,
            head_branch=options.head,
            base_branch=options.base,
        )

    client.create_pull_request.side_effect = create_pull_request
    return client

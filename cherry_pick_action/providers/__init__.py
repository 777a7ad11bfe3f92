"""GitHub client implementations.

Key Components:
    - GitHubClient: Abstract interface used by the orchestrator
    - GitHubRestClient: REST implementation backed by PyGithub
    - NoopGitHubClient: Placeholder that fails every call
    - RestClientFactory: Builds REST clients for github.com or Enterprise
"""

from cherry_pick_action.providers.base import GitHubClient
from cherry_pick_action.providers.factory import ClientFactory, NoopClientFactory, RestClientFactory
from cherry_pick_action.providers.github_rest import GitHubRestClient
from cherry_pick_action.providers.noop import NoopGitHubClient

__all__ = [
    "ClientFactory",
    "GitHubClient",
    "GitHubRestClient",
    "NoopClientFactory",
    "NoopGitHubClient",
    "RestClientFactory",
]

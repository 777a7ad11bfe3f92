"""Factories building GitHub clients from a token."""

from abc import ABC, abstractmethod
from urllib.parse import urlsplit, urlunsplit

from cherry_pick_action.exceptions import ConfigurationError
from cherry_pick_action.providers.base import GitHubClient
from cherry_pick_action.providers.github_rest import DEFAULT_BASE_URL, GitHubRestClient
from cherry_pick_action.providers.noop import NoopGitHubClient


def normalize_github_url(raw: str) -> str:
    """Validate an Enterprise URL and normalize it to end with a slash.

    Raises:
        ConfigurationError: If the URL has no scheme or host
    """
    raw = raw.strip()
    if not raw:
        raise ConfigurationError("url cannot be empty")

    parts = urlsplit(raw)
    if not parts.scheme:
        raise ConfigurationError(f"url must include scheme (e.g. https://): {raw}")
    if not parts.netloc:
        raise ConfigurationError(f"url must include host: {raw}")

    path = parts.path or "/"
    if not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class ClientFactory(ABC):
    """Builds a :class:`GitHubClient` for a token."""

    @abstractmethod
    def create(self, token: str) -> GitHubClient:
        """Create a client.

        Raises:
            ConfigurationError: If the token or endpoint settings are invalid
        """
        pass


class RestClientFactory(ClientFactory):
    """Factory for :class:`GitHubRestClient`.

    When ``base_url`` and ``upload_url`` are set the client targets a GitHub
    Enterprise Server instance. Both must be given together.
    """

    def __init__(
        self,
        base_url: str = "",
        upload_url: str = "",
        api_retries: int = 2,
        retry_delay: float = 1.0,
    ) -> None:
        self.base_url = base_url.strip()
        self.upload_url = upload_url.strip()
        self.api_retries = api_retries
        self.retry_delay = retry_delay

    def create(self, token: str) -> GitHubClient:
        if not token:
            raise ConfigurationError("github token is required")

        if not self.base_url and self.upload_url:
            raise ConfigurationError("github upload url cannot be set without base url")

        base_url = DEFAULT_BASE_URL
        if self.base_url:
            if not self.upload_url:
                raise ConfigurationError("github upload url must be provided when base url is set")
            base_url = normalize_github_url(self.base_url)
            # Uploads are derived from the base URL by PyGithub; the value is only validated.
            normalize_github_url(self.upload_url)

        return GitHubRestClient(
            token, base_url=base_url, api_retries=self.api_retries, retry_delay=self.retry_delay
        )


class NoopClientFactory(ClientFactory):
    """Factory returning :class:`NoopGitHubClient` instances."""

    def create(self, token: str) -> GitHubClient:
        return NoopGitHubClient()

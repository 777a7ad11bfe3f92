"""
Application glue for the GitHub Action.

The runner reads the triggering event, builds the GitHub client and the git
executor from settings, runs the orchestrator and reports the result (step
summary, action outputs, summary comment). Reporting is best-effort: a
failure there is logged and never hides the run's own outcome.
"""

import os
from collections.abc import Callable, Mapping
from urllib.parse import urlsplit

import structlog
from jinja2 import TemplateError

from cherry_pick_action.config.settings import ActionSettings
from cherry_pick_action.engine.event_parser import parse_pull_request_event_file
from cherry_pick_action.engine.orchestrator import Orchestrator, OrchestratorConfig
from cherry_pick_action.exceptions import CherryPickError, ConfigurationError, WorkflowError
from cherry_pick_action.git.executor import Executor
from cherry_pick_action.git.shell import ShellExecutor, github_remote_url
from cherry_pick_action.models.domain import RunResult
from cherry_pick_action.providers.base import GitHubClient
from cherry_pick_action.providers.factory import ClientFactory, RestClientFactory
from cherry_pick_action.rendering.report import (
    ReportRenderer,
    upsert_summary_comment,
    write_outputs,
    write_step_summary,
)

log = structlog.get_logger(__name__)

HANDLED_EVENTS = frozenset({"pull_request", "pull_request_target"})

_REPORT_ERRORS = (OSError, TemplateError, CherryPickError)


def remote_url_builder(settings: ActionSettings) -> Callable[[str, str], str] | None:
    """Remote URL builder for GitHub Enterprise, or None for github.com.

    The remote lives at the root of the Enterprise host, not under the API path.
    """
    base = settings.github_base_url.strip()
    if not base:
        return None

    parts = urlsplit(base)
    if not parts.scheme or not parts.hostname:
        return None

    scheme = parts.scheme
    host = parts.netloc.rsplit("@", 1)[-1]
    token = settings.token

    def build(owner: str, repo: str) -> str:
        if scheme == "https" and token:
            return github_remote_url(owner, repo, token, host=host)
        return f"{scheme}://{host}/{owner}/{repo}.git"

    return build


class Runner:
    """Runs one cherry-pick pass for the triggering pull request.

    Args:
        settings: Validated action settings
        client_factory: Builds the GitHub client (REST by default)
        executor: Git executor override; built from settings when None and
            the run is not a dry run
        env: Environment to read ``GITHUB_*`` variables from
        renderer: Markdown renderer for reports
    """

    def __init__(
        self,
        settings: ActionSettings,
        client_factory: ClientFactory | None = None,
        executor: Executor | None = None,
        env: Mapping[str, str] | None = None,
        renderer: ReportRenderer | None = None,
    ) -> None:
        self.settings = settings
        self.client_factory = client_factory or RestClientFactory(
            settings.github_base_url, settings.github_upload_url
        )
        self.executor = executor
        self.env = env if env is not None else os.environ
        self.renderer = renderer or ReportRenderer()

    async def run(self) -> RunResult | None:
        """Handle the event described by ``GITHUB_EVENT_NAME`` / ``GITHUB_EVENT_PATH``.

        Returns:
            The run result, or None when the event was ignored.

        Raises:
            ConfigurationError: Missing or malformed event data
            WorkflowError: One or more targets failed
        """
        log.info(
            "cherry_pick_run_started",
            dry_run=self.settings.dry_run,
            conflict_strategy=str(self.settings.conflict_strategy),
        )

        event_name = self.env.get("GITHUB_EVENT_NAME", "").strip()
        if event_name not in HANDLED_EVENTS:
            log.info("unsupported_event_ignored", event_name=event_name)
            return None

        event_path = self.env.get("GITHUB_EVENT_PATH", "").strip()
        if not event_path:
            raise ConfigurationError("GITHUB_EVENT_PATH is required for pull_request events")

        event = parse_pull_request_event_file(event_path)

        if not event.is_handled_action:
            log.info("unsupported_action_ignored", action=event.action)
            return None
        if not event.owner or not event.repo:
            raise ConfigurationError("event payload missing repository owner/name")
        if not event.number:
            raise ConfigurationError("event payload missing pull request number")

        client = self.client_factory.create(self.settings.token)
        try:
            if self.settings.require_org_membership:
                if not await self._actor_is_member(client, event.owner):
                    return None
            return await self._process(client, event.owner, event.repo, event.number)
        finally:
            await client.close()

    async def process(self, owner: str, repo: str, number: int) -> RunResult:
        """Process a pull request directly, bypassing event handling."""
        client = self.client_factory.create(self.settings.token)
        try:
            return await self._process(client, owner, repo, number)
        finally:
            await client.close()

    async def _actor_is_member(self, client: GitHubClient, org: str) -> bool:
        actor = self.env.get("GITHUB_ACTOR", "").strip()
        if not actor:
            raise ConfigurationError(
                "GITHUB_ACTOR environment variable is required when require_org_membership is enabled"
            )

        try:
            is_member = await client.check_org_membership(org, actor)
        except CherryPickError as e:
            raise WorkflowError(
                f"check organization membership for {actor!r} in {org!r}: {e.message}"
            ) from e

        if not is_member:
            log.info("actor_not_org_member", actor=actor, organization=org)
            return False

        log.debug("org_membership_verified", actor=actor, organization=org)
        return True

    def build_executor(self) -> Executor:
        """Shell executor configured from settings."""
        return ShellExecutor(
            remote_url=remote_url_builder(self.settings),
            token=self.settings.token,
            user_name=self.settings.git_user_name,
            user_email=self.settings.git_user_email,
            signing_key=self.settings.signing_key,
            signing_passphrase=self.settings.signing_passphrase,
        )

    async def _process(self, client: GitHubClient, owner: str, repo: str, number: int) -> RunResult:
        executor = self.executor
        if executor is None and not self.settings.dry_run:
            executor = self.build_executor()

        config = OrchestratorConfig(
            label_prefix=self.settings.label_prefix,
            conflict_strategy=self.settings.conflict_strategy,
            dry_run=self.settings.dry_run,
            target_branches=list(self.settings.target_branches),
        )
        result = await Orchestrator(config, client, executor).process_pull_request(owner, repo, number)

        if result.skipped:
            log.info("cherry_pick_run_skipped", reason=result.skipped_reason)
        for target in result.targets:
            log.info(
                "cherry_pick_target_evaluated",
                branch=target.target.branch,
                status=str(target.status),
                reason=target.reason,
            )

        await self._report(client, owner, repo, number, result)

        failed = [t.target.branch for t in result.failed_targets]
        if failed:
            raise WorkflowError(f"cherry-pick failed for {len(failed)} target(s): {', '.join(failed)}")

        return result

    async def _report(
        self, client: GitHubClient, owner: str, repo: str, number: int, result: RunResult
    ) -> None:
        try:
            write_step_summary(result, self.env, self.renderer)
        except _REPORT_ERRORS as e:
            log.warning("step_summary_write_failed", error=str(e))

        try:
            write_outputs(result, self.env)
        except _REPORT_ERRORS as e:
            log.warning("action_outputs_write_failed", error=str(e))

        try:
            await upsert_summary_comment(client, owner, repo, number, result, self.renderer)
        except _REPORT_ERRORS as e:
            log.warning("summary_comment_failed", error=str(e))

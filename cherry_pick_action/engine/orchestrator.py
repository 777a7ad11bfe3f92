"""
Cherry-pick orchestrator.

Decides, per target branch, what to do with a merged pull request and carries
out the cherry-pick for every target that needs one.

State Machine:
    Each target starts ``pending`` and ends in exactly one terminal state:
    dry_run, succeeded, failed, placeholder_pr, skipped_missing_branch,
    skipped_existing_pr or skipped_commit_present.

Evaluation Order (first match wins):
    1. ``<prefix>done/<branch>`` label on the source PR -> skipped_existing_pr
    2. Target branch missing -> skipped_missing_branch
    3. Cherry-pick PR already open or closed -> skipped_existing_pr
    4. Source commit already on the branch -> skipped_commit_present
    5. Otherwise -> pending

Targets are executed sequentially, each in its own workspace. A failing target
is recorded and never stops the others; aggregating failures is left to the
caller.

Example:
    >>> orchestrator = Orchestrator(OrchestratorConfig(label_prefix="cherry-pick/"), client, executor)
    >>> result = await orchestrator.process_pull_request("rancher", "dashboard", 1234)
    >>> [t.status for t in result.targets]
    [<TargetStatus.SUCCEEDED: 'succeeded'>]
"""

from dataclasses import dataclass, field

import structlog

from cherry_pick_action.engine.naming import name_for
from cherry_pick_action.engine.targets import (
    collect_targets,
    manual_targets,
    merge_targets,
    sorted_branches,
    validate_targets,
)
from cherry_pick_action.enums import ConflictStrategy, TargetStatus
from cherry_pick_action.exceptions import (
    BranchNotFoundError,
    CherryPickError,
    ConfigurationError,
    ExternalServiceError,
    WorkflowError,
)
from cherry_pick_action.git.executor import Executor, Workspace
from cherry_pick_action.models.domain import (
    CreatePROptions,
    PRMetadata,
    RunResult,
    Target,
    TargetResult,
)
from cherry_pick_action.providers.base import GitHubClient

log = structlog.get_logger(__name__)

FOOTER = "Automated cherry-pick by cherry-pick-action."

# Failures recorded against a single target instead of aborting the run.
TARGET_ERRORS = (CherryPickError, OSError, ValueError)


@dataclass
class OrchestratorConfig:
    """Runtime controls for the orchestrator."""

    label_prefix: str = "cherry-pick/"
    conflict_strategy: ConflictStrategy | str = ConflictStrategy.FAIL
    dry_run: bool = False
    target_branches: list[str] = field(default_factory=list)

    def validated(self) -> "OrchestratorConfig":
        """Return a copy with normalized values.

        Raises:
            ConfigurationError: If the label prefix is blank or the conflict
                strategy is unknown
        """
        prefix = self.label_prefix.strip()
        if not prefix:
            raise ConfigurationError("label prefix cannot be empty")

        raw = self.conflict_strategy
        if isinstance(raw, str):
            raw = raw.strip().lower() or ConflictStrategy.FAIL.value
        try:
            strategy = ConflictStrategy(raw)
        except ValueError:
            raise ConfigurationError(f"unsupported conflict strategy {self.conflict_strategy!r}") from None

        return OrchestratorConfig(
            label_prefix=prefix,
            conflict_strategy=strategy,
            dry_run=self.dry_run,
            target_branches=list(self.target_branches),
        )


def done_label(prefix: str, branch: str) -> str:
    """Label marking ``branch`` as already cherry-picked on the source PR."""
    return f"{prefix}done/{branch}"


def filter_cherry_pick_labels(labels: list[str], prefix: str) -> list[str]:
    """Drop labels starting with ``prefix`` (case-insensitive)."""
    lowered = prefix.strip().lower()
    if not lowered:
        return list(labels)
    return [label for label in labels if not label.strip().lower().startswith(lowered)]


def metadata_marker(pr: PRMetadata, branch: str) -> str:
    """Machine-readable marker identifying the source of a cherry-pick PR."""
    owner = pr.owner.strip()
    repo = pr.repo.strip()
    if owner and repo:
        source = f"{owner}/{repo}"
    else:
        source = repo or "unknown-repo"
    return f"<!-- cherry-pick-of: {source}#{pr.number} -> {branch} -->"


def build_pr_body(pr: PRMetadata, branch: str) -> str:
    body = f"{metadata_marker(pr, branch)}\n"
    body += f"Cherry pick of #{pr.number} into `{branch}`.\n\n"
    if pr.body:
        body += pr.body + "\n\n"
    body += "--\n" + FOOTER
    return body


def decorate_placeholder_body(original: str, pr_number: int, branch: str, error: BaseException) -> str:
    """Prefix a PR body with a conflict notice and the git error output."""
    message = str(error).strip()

    body = f"⚠️ Automated cherry-pick of #{pr_number} into `{branch}` encountered conflicts.\n\n"
    body += "Please resolve the conflicts manually and update this pull request.\n\n"
    if message:
        body += f"The git command reported:\n\n```\n{message}\n```\n\n"
    return body + original


class Orchestrator:
    """Evaluate and execute cherry-picks for one pull request at a time.

    Attributes:
        config: Orchestration settings (prefix, strategy, dry run, overrides)
        client: Remote service client
        executor: Workspace executor; may be None for dry runs
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        client: GitHubClient,
        executor: Executor | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.executor = executor

    async def process_pull_request(self, owner: str, repo: str, number: int) -> RunResult:
        """Evaluate every target of a pull request and execute the pending ones.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Source pull request number

        Returns:
            RunResult; per-target failures are recorded, never raised.

        Raises:
            ConfigurationError: Invalid configuration or target branch names
            ExternalServiceError: Pull request metadata could not be fetched
            WorkflowError: Evaluation could not complete for a target
        """
        config = self.config.validated()
        bound = log.bind(owner=owner, repo=repo, number=number)

        pr = await self.client.get_pull_request(owner, repo, number)

        if not pr.is_merged:
            bound.info("pull_request_not_merged")
            return RunResult(skipped=True, skipped_reason="not merged")

        if pr.is_from_fork:
            bound.info("pull_request_from_fork", head_owner=pr.head_owner, head_repo=pr.head_repo)
            return RunResult(
                skipped=True,
                skipped_reason=(
                    "pull request originates from a fork; "
                    "create a branch in the base repository before labeling"
                ),
            )

        targets = self._resolve_targets(pr, config)
        if not targets:
            bound.info("no_cherry_pick_targets")
            return RunResult(skipped=True, skipped_reason="no targets")

        # Labels may have been removed since the first fetch.
        pr = await self.client.get_pull_request(owner, repo, number)
        targets = self._resolve_targets(pr, config)
        if not targets:
            bound.info("no_cherry_pick_targets_after_refresh")
            return RunResult(skipped=True, skipped_reason="no targets")

        validate_targets(targets)
        bound.info("cherry_pick_targets_resolved", targets=sorted_branches(targets))

        source_commit, plan = await self._evaluate_targets(owner, repo, pr, targets, config)

        if not any(r.status is TargetStatus.PENDING for r in plan):
            return RunResult(targets=plan)

        if config.dry_run:
            for result in plan:
                if result.status is TargetStatus.PENDING:
                    result.status = TargetStatus.DRY_RUN
                    result.reason = "dry run enabled"
            return RunResult(targets=plan)

        if self.executor is None:
            raise ConfigurationError("git executor is required")

        for result in plan:
            if result.status is TargetStatus.PENDING:
                await self._execute_target(owner, repo, pr, source_commit, result, config)

        return RunResult(targets=plan)

    def _resolve_targets(self, pr: PRMetadata, config: OrchestratorConfig) -> list[Target]:
        from_labels = collect_targets(pr.labels, config.label_prefix)
        overrides = manual_targets(config.target_branches)
        if not overrides:
            return from_labels
        return merge_targets(from_labels, overrides)

    async def _evaluate_targets(
        self,
        owner: str,
        repo: str,
        pr: PRMetadata,
        targets: list[Target],
        config: OrchestratorConfig,
    ) -> tuple[str, list[TargetResult]]:
        source_commit = pr.source_commit
        if not source_commit:
            raise WorkflowError("source commit SHA could not be determined")

        results: list[TargetResult] = []
        for target in targets:
            result = TargetResult(target=target)
            results.append(result)
            branch = target.branch

            label = done_label(config.label_prefix, branch)
            try:
                already_done = await self.client.has_label(owner, repo, pr.number, label)
            except ExternalServiceError as e:
                log.warning("done_label_check_failed", label=label, error=str(e))
                already_done = False
            if already_done:
                result.status = TargetStatus.SKIPPED_EXISTING_PR
                result.reason = f"already cherry-picked (found {label} label)"
                log.info("target_already_completed", target=branch, label=label)
                continue

            try:
                await self.client.ensure_branch_exists(owner, repo, branch)
            except BranchNotFoundError:
                result.status = TargetStatus.SKIPPED_MISSING_BRANCH
                result.reason = (
                    "target branch not found in repository; "
                    "ensure the release branch exists or remove the label"
                )
                log.warning("target_branch_missing", target=branch)
                continue
            except ExternalServiceError as e:
                raise WorkflowError(f"ensure branch {branch}: {e}") from e

            try:
                existing = await self.client.list_cherry_pick_prs(owner, repo, pr.number, branch)
            except ExternalServiceError as e:
                raise WorkflowError(f"list cherry-pick prs for {branch}: {e}") from e
            if existing:
                result.status = TargetStatus.SKIPPED_EXISTING_PR
                result.reason = "cherry-pick PR already exists"
                result.existing_pr = existing[0]
                log.info("cherry_pick_pr_exists", target=branch, existing_pr=existing[0].url)
                continue

            try:
                present = await self.client.commit_exists_on_branch(owner, repo, source_commit, branch)
            except ExternalServiceError as e:
                raise WorkflowError(f"check commit on {branch}: {e}") from e
            if present:
                result.status = TargetStatus.SKIPPED_COMMIT_PRESENT
                result.reason = "commit already present on target"
                log.info("commit_already_present", target=branch, commit=source_commit)

        return source_commit, results

    async def _execute_target(
        self,
        owner: str,
        repo: str,
        pr: PRMetadata,
        source_commit: str,
        result: TargetResult,
        config: OrchestratorConfig,
    ) -> None:
        assert self.executor is not None
        branch = result.target.branch
        branch_name = name_for(branch, pr.number)

        try:
            workspace = await self.executor.prepare(owner, repo)
        except TARGET_ERRORS as e:
            self._fail(result, f"prepare workspace: {e}")
            return

        async with workspace:
            try:
                await workspace.checkout_branch(branch)
            except TARGET_ERRORS as e:
                self._fail(result, f"checkout target branch {branch}: {e}")
                return

            try:
                await workspace.create_branch_from(branch_name, branch)
            except TARGET_ERRORS as e:
                self._fail(result, f"create branch {branch_name}: {e}")
                return

            try:
                await workspace.checkout_branch(branch_name)
            except TARGET_ERRORS as e:
                self._fail(result, f"checkout cherry-pick branch {branch_name}: {e}")
                return

            try:
                await workspace.cherry_pick(source_commit)
            except TARGET_ERRORS as e:
                try:
                    await workspace.abort_cherry_pick()
                except TARGET_ERRORS as abort_error:
                    log.warning("cherry_pick_abort_failed", target=branch, abort_error=str(abort_error))

                if config.conflict_strategy is ConflictStrategy.PLACEHOLDER_PR:
                    await self._open_placeholder(owner, repo, pr, workspace, branch_name, result, e, config)
                else:
                    self._fail(result, f"cherry-pick commit {source_commit}: {e}")
                return

            await self._open_pull_request(owner, repo, pr, workspace, branch_name, result, config)

    async def _open_pull_request(
        self,
        owner: str,
        repo: str,
        pr: PRMetadata,
        workspace: Workspace,
        branch_name: str,
        result: TargetResult,
        config: OrchestratorConfig,
    ) -> None:
        try:
            await workspace.push_branch(branch_name)
        except TARGET_ERRORS as e:
            self._fail(result, f"push cherry-pick branch {branch_name}: {e}")
            return

        options = self._build_pr_options(pr, result.target, branch_name, config)
        try:
            created = await self.client.create_pull_request(owner, repo, options)
        except CherryPickError as e:
            self._fail(result, f"create pull request: {e}")
            return

        result.status = TargetStatus.SUCCEEDED
        result.reason = "cherry-pick pull request created"
        result.created_pr = created
        log.info(
            "cherry_pick_pr_created",
            base_branch=result.target.branch,
            head_branch=branch_name,
            pr_number=created.number,
            pr_url=created.url,
        )

        await self._mark_done(owner, repo, pr.number, result.target.branch, config)

    async def _open_placeholder(
        self,
        owner: str,
        repo: str,
        pr: PRMetadata,
        workspace: Workspace,
        branch_name: str,
        result: TargetResult,
        conflict: BaseException,
        config: OrchestratorConfig,
    ) -> None:
        branch = result.target.branch
        message = f"Placeholder cherry-pick for #{pr.number} into {branch}"
        try:
            await workspace.commit_allow_empty(message)
        except TARGET_ERRORS as e:
            self._fail(result, f"placeholder commit failed after conflict ({conflict}): {e}")
            return

        try:
            await workspace.push_branch(branch_name)
        except TARGET_ERRORS as e:
            self._fail(result, f"push placeholder branch {branch_name} failed after conflict ({conflict}): {e}")
            return

        options = self._build_pr_options(pr, result.target, branch_name, config)
        options.body = decorate_placeholder_body(options.body, pr.number, branch, conflict)
        try:
            created = await self.client.create_pull_request(owner, repo, options)
        except CherryPickError as e:
            self._fail(result, f"create placeholder pull request failed ({conflict}): {e}")
            return

        result.status = TargetStatus.PLACEHOLDER_PR
        result.reason = f"cherry-pick conflict: placeholder PR opened ({conflict})"
        result.created_pr = created
        log.warning(
            "placeholder_pr_created",
            base_branch=branch,
            head_branch=branch_name,
            pr_number=created.number,
            pr_url=created.url,
            error=str(conflict),
        )

        await self._mark_done(owner, repo, pr.number, branch, config)

    async def _mark_done(
        self, owner: str, repo: str, number: int, branch: str, config: OrchestratorConfig
    ) -> None:
        label = done_label(config.label_prefix, branch)
        try:
            await self.client.add_label(owner, repo, number, label)
        except CherryPickError as e:
            log.warning("done_label_add_failed", label=label, source_pr=number, error=str(e))
            return
        log.info("done_label_added", label=label, source_pr=number)

    def _build_pr_options(
        self, pr: PRMetadata, target: Target, branch_name: str, config: OrchestratorConfig
    ) -> CreatePROptions:
        return CreatePROptions(
            title=f"[{target.branch}] {pr.title}",
            body=build_pr_body(pr, target.branch),
            head=branch_name,
            base=target.branch,
            draft=False,
            labels=filter_cherry_pick_labels(pr.labels, config.label_prefix),
            assignees=list(pr.assignees),
            maintainer_can_modify=True,
        )

    @staticmethod
    def _fail(result: TargetResult, reason: str) -> None:
        result.status = TargetStatus.FAILED
        result.reason = reason
        log.warning("cherry_pick_target_failed", target=result.target.branch, reason=reason)

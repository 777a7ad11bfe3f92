"""Run reporting: step summary, action outputs and the summary comment.

Markdown is rendered from Jinja2 templates in a sandboxed environment with
StrictUndefined, so a template referencing a missing value fails loudly.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
from jinja2 import FileSystemLoader, StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from cherry_pick_action.enums import TargetStatus
from cherry_pick_action.models.domain import RunResult, TargetResult
from cherry_pick_action.providers.base import GitHubClient

log = structlog.get_logger(__name__)

SUMMARY_COMMENT_MARKER = "<!-- cherry-pick-action-summary -->"

TEMPLATE_DIR = Path(__file__).parent / "templates"

_NOT_CREATED_STATUSES = (TargetStatus.FAILED, TargetStatus.DRY_RUN)


def sanitize_markdown_cell(value: str) -> str:
    """Make a value safe for a Markdown table cell."""
    value = value.replace("|", "\\|").replace("\n", "<br>").strip()
    return value or "-"


def pr_cell(result: TargetResult) -> str:
    """Link to the created (or already existing) pull request."""
    if result.created_pr is not None:
        if result.created_pr.url:
            return f"[PR #{result.created_pr.number}]({result.created_pr.url})"
        return f"PR #{result.created_pr.number}"
    if result.existing_pr is not None and result.existing_pr.url:
        return f"[Existing #{result.existing_pr.number}]({result.existing_pr.url})"
    return "-"


class ReportRenderer:
    """Renders run results to Markdown.

    Args:
        template_dir: Directory holding ``summary.md.j2`` and ``comment.md.j2``.
            Defaults to the templates shipped with the package.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        self.template_dir = (template_dir or TEMPLATE_DIR).resolve()
        if not self.template_dir.is_dir():
            raise ValueError(f"Template directory does not exist: {self.template_dir}")

        self.env = SandboxedEnvironment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["cell"] = sanitize_markdown_cell

    def _context(self, result: RunResult) -> dict[str, Any]:
        rows = [
            {
                "branch": r.target.branch,
                "status": str(r.status),
                "details": r.reason or "-",
                "pr": pr_cell(r),
            }
            for r in result.targets
        ]
        return {
            "skipped": result.skipped,
            "skipped_reason": result.skipped_reason or "run skipped",
            "rows": rows,
            "marker": SUMMARY_COMMENT_MARKER,
        }

    def render_summary(self, result: RunResult) -> str:
        """Markdown for ``GITHUB_STEP_SUMMARY``."""
        return self.env.get_template("summary.md.j2").render(**self._context(result))

    def render_comment(self, result: RunResult) -> str:
        """Markdown for the summary comment on the source pull request."""
        return self.env.get_template("comment.md.j2").render(**self._context(result))


def _open_append(path: Path) -> Any:
    if not path.parent.exists():
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.warning("report_directory_create_failed", path=str(path.parent), error=str(e))
    return open(path, "a", encoding="utf-8")


def write_step_summary(result: RunResult, env: Mapping[str, str], renderer: ReportRenderer) -> bool:
    """Append the run summary to ``GITHUB_STEP_SUMMARY``.

    Returns:
        False when the variable is unset and nothing was written.

    Raises:
        OSError: If the file cannot be written
    """
    path = env.get("GITHUB_STEP_SUMMARY", "").strip()
    if not path:
        return False

    content = renderer.render_summary(result)
    if not content.endswith("\n"):
        content += "\n"

    with _open_append(Path(path)) as f:
        f.write(content)
    return True


def build_outputs(result: RunResult) -> dict[str, str]:
    """JSON values for the ``created_prs``, ``skipped_targets`` and ``run_summary`` outputs."""
    created = []
    skipped = []
    for target in result.targets:
        if target.status.created_pr:
            if target.created_pr is not None:
                created.append(
                    {
                        "branch": target.target.branch,
                        "number": target.created_pr.number,
                        "url": target.created_pr.url,
                        "head": target.created_pr.head_branch,
                        "base": target.created_pr.base_branch,
                    }
                )
        elif target.status.is_skipped or target.status in _NOT_CREATED_STATUSES:
            skipped.append(
                {
                    "branch": target.target.branch,
                    "status": str(target.status),
                    "reason": target.reason,
                }
            )

    summary = {"skipped": result.skipped, "skipped_reason": result.skipped_reason}
    return {
        "created_prs": json.dumps(created),
        "skipped_targets": json.dumps(skipped),
        "run_summary": json.dumps(summary),
    }


def write_outputs(result: RunResult, env: Mapping[str, str]) -> bool:
    """Append action outputs to ``GITHUB_OUTPUT`` using heredoc syntax.

    Returns:
        False when the variable is unset and nothing was written.

    Raises:
        OSError: If the file cannot be written
    """
    path = env.get("GITHUB_OUTPUT", "").strip()
    if not path:
        return False

    with _open_append(Path(path)) as f:
        for key, value in build_outputs(result).items():
            f.write(f"{key}<<EOF\n{value}\nEOF\n")
    return True


async def upsert_summary_comment(
    client: GitHubClient,
    owner: str,
    repo: str,
    number: int,
    result: RunResult,
    renderer: ReportRenderer,
) -> None:
    """Create or refresh the single summary comment on the source pull request.

    An existing comment is recognized by the marker it starts with. It is
    updated only when its body differs.
    """
    body = renderer.render_comment(result)

    comments = await client.list_pull_request_comments(owner, repo, number)
    for comment in comments:
        if SUMMARY_COMMENT_MARKER not in comment.body:
            continue
        if comment.body == body:
            log.debug("summary_comment_unchanged", comment_id=comment.id)
            return
        await client.update_comment(owner, repo, number, comment.id, body)
        log.info("summary_comment_updated", comment_id=comment.id)
        return

    await client.comment_on_pull_request(owner, repo, number, body)
    log.info("summary_comment_created", number=number)

"""Markdown reports and action outputs for a finished run."""

from cherry_pick_action.rendering.report import (
    SUMMARY_COMMENT_MARKER,
    ReportRenderer,
    build_outputs,
    upsert_summary_comment,
    write_outputs,
    write_step_summary,
)

__all__ = [
    "SUMMARY_COMMENT_MARKER",
    "ReportRenderer",
    "build_outputs",
    "upsert_summary_comment",
    "write_outputs",
    "write_step_summary",
]

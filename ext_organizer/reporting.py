"""Rendering helpers for ExtOrganizer outcomes and summaries."""
from __future__ import annotations

import json

from .models import Failed, Moved, OperationOutcome, OutcomeStatus, RunSummary, Skipped


def render_outcome(outcome: OperationOutcome) -> str:
    """Render one per-file outcome as a single human readable line."""

    if isinstance(outcome, Moved):
        if outcome.simulated:
            return f"[DRY RUN] Would move {outcome.source} -> {outcome.destination}"
        return f"Moved {outcome.source} -> {outcome.destination}"
    if isinstance(outcome, Skipped):
        return f"Skipped {outcome.source}: {outcome.reason}"
    if isinstance(outcome, Failed):
        return f"Failed to move {outcome.source}: {outcome.error}"
    raise TypeError(f"Unsupported outcome: {outcome!r}")


def render_summary(summary: RunSummary, fmt: str = "text") -> str:
    """Render *summary* according to *fmt*.

    ``fmt`` accepts ``"text"``, ``"markdown"`` or ``"json"``.
    """

    fmt = fmt.lower()
    if fmt == "json":
        payload = summary.to_dict()
        payload["version"] = "1.0"
        return json.dumps(payload, indent=2, ensure_ascii=False)
    if fmt == "markdown":
        return _render_markdown(summary)
    if fmt == "text":
        return _render_text(summary)
    raise ValueError(f"Unsupported report format: {fmt}")


def _render_text(summary: RunSummary) -> str:
    title = "--- Organization Complete ---"
    if summary.simulated:
        title = "--- Dry Run Complete (no files were moved) ---"
    lines = [
        title,
        f"Scanned: {summary.total}",
        f"Moved: {summary.moved}",
        f"Skipped: {summary.skipped}",
        f"Failed: {summary.failed}",
    ]
    if summary.categories:
        lines.append("")
        for category, count in sorted(summary.categories.items()):
            lines.append(f"[.{category}] : {count} files")
    if summary.skipped_files:
        lines.extend(["", "Skipped files:"])
        lines.extend(f"  - {record.path}: {record.reason}" for record in summary.skipped_files)
    if summary.failed_files:
        lines.extend(["", "Failed files:"])
        lines.extend(f"  - {record.path}: {record.reason}" for record in summary.failed_files)
    if summary.scan_issues:
        lines.extend(["", "Unreadable directories:"])
        lines.extend(f"  - {issue.path}: {issue.reason}" for issue in summary.scan_issues)
    return "\n".join(lines)


def _render_markdown(summary: RunSummary) -> str:
    lines = [
        "# ExtOrganizer Report",
        "",
        "## Summary",
        f"- Mode: {'dry run' if summary.simulated else 'live'}",
        f"- Scanned files: {summary.total}",
        f"- Moved files: {summary.moved}",
        f"- Skipped files: {summary.skipped}",
        f"- Failed files: {summary.failed}",
        "",
        "## Categories",
    ]
    if summary.categories:
        lines.append("| Category | Count |")
        lines.append("| --- | --- |")
        for key, value in sorted(summary.categories.items()):
            lines.append(f"| {key} | {value} |")
    else:
        lines.append("(no files moved)")

    problems = [(OutcomeStatus.SKIPPED, record) for record in summary.skipped_files]
    problems += [(OutcomeStatus.FAILED, record) for record in summary.failed_files]
    if problems:
        lines.extend(["", "## Problems", "| File | Status | Reason |", "| --- | --- | --- |"])
        for status, record in problems:
            lines.append(f"| {record.path} | {status.value} | {record.reason} |")
    return "\n".join(lines)


__all__ = ["render_outcome", "render_summary"]

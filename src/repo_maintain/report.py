"""Report aggregation and schema-friendly output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .models import RunSummary

REPORT_VERSION = "1"


def aggregate(summary: RunSummary) -> dict[str, Any]:
    """Aggregate a run summary into a single JSON-serialisable report.

    Outcomes are grouped per project path so consumers can render one section
    per project; totals and the top-level flags mirror ``RunSummary``.
    """
    projects: dict[str, dict[str, Any]] = {}
    buckets = (
        summary.applied,
        summary.skipped_minor,
        summary.skipped_major,
        summary.skipped_other,
        summary.failed,
    )
    for bucket in buckets:
        for outcome in bucket:
            entry = projects.setdefault(
                str(outcome.project.root_path),
                {**outcome.project.to_dict(), "outcomes": []},
            )
            entry["outcomes"].append(outcome.to_dict())

    return {
        "version": REPORT_VERSION,
        "dryRun": summary.dry_run,
        "hasFailures": summary.total_failed > 0,
        "needsReview": bool(summary.skipped_major),
        "totals": summary.totals,
        "projects": [projects[path] for path in sorted(projects)],
    }


def write_report(summary: RunSummary, path: Path) -> None:
    path.write_text(json.dumps(aggregate(summary), indent=2) + "\n", encoding="utf-8")

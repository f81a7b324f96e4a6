"""Human-readable end-of-run summary."""

from __future__ import annotations

from .models import RunSummary, UpdateOutcome

RULE = "=" * 40


def _versions(outcome: UpdateOutcome) -> str:
    return f"{outcome.package_name}: {outcome.from_version} -> {outcome.to_version}"


def render_summary(summary: RunSummary) -> str:
    """Return the terminal summary: applied, skipped minor/major, failures."""
    prefix = "[DRY-RUN] " if summary.dry_run else ""
    if summary.dry_run:
        applied_label = "Updates that would be applied"
    else:
        applied_label = "Updates applied"

    lines = ["", RULE, f"{prefix}Update Summary".center(len(RULE)).rstrip(), RULE]
    lines.append(f"Projects processed: {summary.projects_scanned}")
    if summary.projects_cancelled:
        lines.append(f"Projects skipped after interrupt: {summary.projects_cancelled}")
    lines.append("")

    lines.append(f"{prefix}{applied_label}: {summary.total_applied}")
    for outcome in summary.applied:
        lines.append(f"  {prefix}+ {_versions(outcome)}  ({outcome.project.root_path})")
    lines.append("")

    if summary.skipped_minor:
        lines.append(
            f"Minor updates available: {len(summary.skipped_minor)} "
            "(use --include-minor to apply)"
        )
        lines.extend(f"  o {_versions(o)}" for o in summary.skipped_minor)
        lines.append("")

    if summary.skipped_major:
        lines.append(
            f"Major updates available: {len(summary.skipped_major)} "
            "(manual update recommended)"
        )
        lines.extend(f"  o {_versions(o)}" for o in summary.skipped_major)
        lines.append("")

    if summary.skipped_other:
        lines.append(f"Other skipped: {len(summary.skipped_other)}")
        lines.append("")

    if summary.failed:
        lines.append(f"Failed: {summary.total_failed}")
        for outcome in summary.failed:
            target = outcome.package_name or "(project)"
            lines.append(f"  x {target} [{outcome.reason}]  ({outcome.project.root_path})")
        lines.append("")

    lines.append(RULE)
    return "\n".join(lines) + "\n"

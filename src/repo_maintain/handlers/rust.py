"""Rust handler: cargo, with or without the cargo-outdated plugin."""

from __future__ import annotations

import json
import re
from pathlib import Path

import structlog

from ..models import DependencyCandidate
from .base import CommandHandler, ToolError

log = structlog.get_logger("repo_maintain.handlers")

# "    Updating serde v1.0.100 -> v1.0.101"
_UPDATING_RE = re.compile(r"Updating\s+(\S+)\s+v([0-9][^\s]*)\s*->\s*v([0-9][^\s]*)")


def parse_cargo_outdated(payload: str) -> list[DependencyCandidate]:
    """Parse ``cargo outdated --format json``."""
    if not payload.strip():
        return []
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ToolError(f"cargo outdated returned invalid JSON: {exc.msg}") from exc

    if not isinstance(data, dict):
        return []

    candidates: list[DependencyCandidate] = []
    for dep in data.get("dependencies") or []:
        if not isinstance(dep, dict):
            continue
        name = dep.get("name")
        current = dep.get("project")
        latest = dep.get("latest")
        if not name or not current or not latest or "---" in (current, latest):
            continue
        candidates.append(DependencyCandidate(str(name), str(current), str(latest)))
    return candidates


def parse_cargo_update_dry_run(output: str) -> list[DependencyCandidate]:
    """Parse the ``Updating name vX -> vY`` lines of ``cargo update --dry-run``."""
    candidates: list[DependencyCandidate] = []
    for line in output.splitlines():
        match = _UPDATING_RE.search(line)
        if match:
            name, current, latest = match.groups()
            candidates.append(DependencyCandidate(name, current, latest))
    return candidates


class CargoHandler(CommandHandler):
    name = "cargo"

    def has_outdated_plugin(self, project_root: Path) -> bool:
        return self.run(project_root, "cargo", "outdated", "--version").ok

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        if self.has_outdated_plugin(project_root):
            result = self.run_checked(project_root, "cargo", "outdated", "--format", "json")
            return parse_cargo_outdated(result.stdout)

        log.warning(
            "cargo.outdated_missing",
            hint="cargo install cargo-outdated",
            fallback="cargo update --dry-run",
        )
        # cargo writes its progress lines to stderr.
        result = self.run_checked(project_root, "cargo", "update", "--dry-run")
        return parse_cargo_update_dry_run(result.output)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "cargo", "update", "-p", package, "--precise", to_version)

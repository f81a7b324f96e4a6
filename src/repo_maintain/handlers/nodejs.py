"""Node.js handlers: npm, yarn, pnpm and bun."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..models import DependencyCandidate
from .base import CommandHandler, ToolError


def _load_json(payload: str, tool: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ToolError(f"{tool} returned invalid JSON: {exc.msg}") from exc


def parse_npm_outdated(payload: str) -> list[DependencyCandidate]:
    """Parse ``npm outdated --json`` (also the shape ``pnpm outdated`` emits).

    The ``wanted`` version is the one that still satisfies the declared range,
    so that is the bump considered.
    """
    if not payload.strip():
        return []
    data = _load_json(payload, "npm")
    if not isinstance(data, dict):
        return []

    candidates: list[DependencyCandidate] = []
    for name, meta in sorted(data.items()):
        # Workspaces report a list of entries per package.
        entries = meta if isinstance(meta, list) else [meta]
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            current = entry.get("current")
            wanted = entry.get("wanted")
            if not current or not wanted:
                continue
            candidates.append(DependencyCandidate(name, str(current), str(wanted)))
    return candidates


def parse_yarn_outdated(payload: str) -> list[DependencyCandidate]:
    """Parse the JSON-lines stream of ``yarn outdated --json``.

    Only the ``table`` record carries data; its body rows start with
    ``[name, current, wanted, latest, ...]``.
    """
    candidates: list[DependencyCandidate] = []
    for line in payload.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(record, dict) or record.get("type") != "table":
            continue
        for row in (record.get("data") or {}).get("body") or []:
            if not isinstance(row, list) or len(row) < 3:
                continue
            name, current, wanted = (str(v) for v in row[:3])
            if name and current and wanted:
                candidates.append(DependencyCandidate(name, current, wanted))
        break
    return candidates


class NpmHandler(CommandHandler):
    name = "npm"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        # npm exits 1 when anything is outdated.
        result = self.run(project_root, "npm", "outdated", "--json")
        if not result.ok and not result.stdout.strip():
            raise ToolError(f"npm outdated failed: {result.stderr.strip()}")
        return parse_npm_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "npm", "install", f"{package}@{to_version}", "--save-exact")


class YarnHandler(CommandHandler):
    name = "yarn"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run(project_root, "yarn", "outdated", "--json")
        if not result.ok and not result.stdout.strip():
            raise ToolError(f"yarn outdated failed: {result.stderr.strip()}")
        return parse_yarn_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "yarn", "add", f"{package}@{to_version}", "--exact")


class PnpmHandler(CommandHandler):
    name = "pnpm"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run(project_root, "pnpm", "outdated", "--format", "json")
        if not result.ok and not result.stdout.strip():
            raise ToolError(f"pnpm outdated failed: {result.stderr.strip()}")
        return parse_npm_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "pnpm", "add", f"{package}@{to_version}")


class BunHandler(NpmHandler):
    """bun has no ``outdated --json``; discovery goes through npm."""

    name = "bun"

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "bun", "add", f"{package}@{to_version}", "--exact")

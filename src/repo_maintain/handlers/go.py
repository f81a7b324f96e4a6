"""Go modules handler."""

from __future__ import annotations

import json
from pathlib import Path

from ..models import DependencyCandidate
from .base import CommandHandler, ToolError


def iter_json_stream(payload: str):
    """Yield each object from a stream of concatenated JSON documents."""
    decoder = json.JSONDecoder()
    index, end = 0, len(payload)
    while index < end:
        while index < end and payload[index].isspace():
            index += 1
        if index >= end:
            break
        try:
            obj, index = decoder.raw_decode(payload, index)
        except json.JSONDecodeError as exc:
            raise ToolError(f"go list returned invalid JSON: {exc.msg}") from exc
        yield obj


def parse_go_list(payload: str) -> list[DependencyCandidate]:
    """Parse ``go list -m -u -json all``.

    The main module and modules without an ``Update`` entry are ignored.
    """
    candidates: list[DependencyCandidate] = []
    for module in iter_json_stream(payload):
        if not isinstance(module, dict) or module.get("Main"):
            continue
        path = module.get("Path")
        current = module.get("Version")
        latest = (module.get("Update") or {}).get("Version")
        if path and current and latest:
            candidates.append(DependencyCandidate(path, current, latest))
    return candidates


class GoHandler(CommandHandler):
    name = "go"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run_checked(project_root, "go", "list", "-m", "-u", "-json", "all")
        return parse_go_list(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "go", "get", f"{package}@{to_version}")

    def finish(self, project_root: Path) -> None:
        self.run_checked(project_root, "go", "mod", "tidy")

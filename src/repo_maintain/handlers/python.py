"""Python handlers: pip, poetry, uv and pipenv."""

from __future__ import annotations

import json
import re
import tomllib
from pathlib import Path

import structlog
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from ..models import DependencyCandidate
from .base import CommandHandler, ToolError, read_project_file, write_project_file

log = structlog.get_logger("repo_maintain.handlers")

_PIPENV_RE = re.compile(
    r"Package '(?P<name>[^']+)'.*?version (?P<latest>[0-9][^\s)]*).*?current: (?P<current>[0-9][^\s)]*)"
)
_POETRY_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def parse_pip_outdated(payload: str) -> list[DependencyCandidate]:
    """Parse ``pip list --outdated --format=json`` (``uv pip list`` too)."""
    if not payload.strip():
        return []
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ToolError(f"pip returned invalid JSON: {exc.msg}") from exc

    candidates: list[DependencyCandidate] = []
    for entry in data if isinstance(data, list) else []:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        current = entry.get("version")
        latest = entry.get("latest_version")
        if name and current and latest:
            candidates.append(DependencyCandidate(str(name), str(current), str(latest)))
    return candidates


def parse_poetry_outdated(output: str) -> list[DependencyCandidate]:
    """Parse ``poetry show --outdated``: ``name [(!)] current latest description``."""
    candidates: list[DependencyCandidate] = []
    for line in output.splitlines():
        tokens = [t for t in line.split() if t != "(!)"]
        if len(tokens) < 3 or not _POETRY_NAME_RE.match(tokens[0]):
            continue
        name, current, latest = tokens[:3]
        if not current[:1].isdigit() or not latest[:1].isdigit():
            continue
        candidates.append(DependencyCandidate(name, current, latest))
    return candidates


def parse_pipenv_outdated(output: str) -> list[DependencyCandidate]:
    """Parse ``pipenv update --outdated`` lines.

    Format: ``Package 'name' out-of-date: ... version X available (current: Y)``.
    """
    candidates: list[DependencyCandidate] = []
    for line in output.splitlines():
        match = _PIPENV_RE.search(line)
        if match:
            candidates.append(
                DependencyCandidate(match["name"], match["current"], match["latest"])
            )
    return candidates


def pin_requirement(content: str, package: str, version: str) -> tuple[str, bool]:
    """Pin ``package`` to ``version`` in requirements.txt content.

    Only lines that already constrain the package are touched; extras and
    environment markers are preserved. Returns the new content and whether
    anything changed.
    """
    target = canonicalize_name(package)
    changed = False
    lines: list[str] = []
    for line in content.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        requirement_text, sep, comment = body.partition(" #")
        try:
            req = Requirement(requirement_text.strip())
        except InvalidRequirement:
            lines.append(line)
            continue
        if canonicalize_name(req.name) != target or not req.specifier:
            lines.append(line)
            continue

        extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
        marker = f"; {req.marker}" if req.marker else ""
        pinned = f"{req.name}{extras}=={version}{marker}"
        if sep:
            pinned = f"{pinned} #{comment}"
        changed = changed or pinned != body
        lines.append(pinned + ending)
    return "".join(lines), changed


def update_requirements_txt(project_root: Path, package: str, version: str) -> bool:
    requirements = project_root / "requirements.txt"
    if not requirements.is_file():
        return False
    content, changed = pin_requirement(read_project_file(requirements), package, version)
    if changed:
        write_project_file(requirements, content)
        log.debug("requirements.pinned", package=package, version=version)
    return changed


class PipHandler(CommandHandler):
    name = "pip"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run_checked(project_root, "pip", "list", "--outdated", "--format=json")
        return parse_pip_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "pip", "install", f"{package}=={to_version}")
        update_requirements_txt(project_root, package, to_version)


class PoetryHandler(CommandHandler):
    name = "poetry"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        if not (project_root / "poetry.lock").is_file():
            if self.dry_run:
                log.info("poetry.lock_missing", project=str(project_root), dry_run=True)
            else:
                log.debug("poetry.lock_missing", project=str(project_root))
                self.run(project_root, "poetry", "lock", "--no-update")
        result = self.run_checked(project_root, "poetry", "show", "--outdated")
        return parse_poetry_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "poetry", "update", package)


def is_uv_project(project_root: Path) -> bool:
    """A uv.lock or a PEP 621 ``[project]`` table makes this a uv project."""
    if (project_root / "uv.lock").is_file():
        return True
    pyproject = project_root / "pyproject.toml"
    if not pyproject.is_file():
        return False
    try:
        return "project" in tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return False


class UvHandler(CommandHandler):
    """uv in project mode (lock file upgrades) or pip mode (direct installs)."""

    name = "uv"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        if is_uv_project(project_root) and not (project_root / "uv.lock").is_file():
            if self.dry_run:
                log.info("uv.lock_missing", project=str(project_root), dry_run=True)
            else:
                log.debug("uv.lock_missing", project=str(project_root))
                self.run(project_root, "uv", "lock")
        result = self.run_checked(
            project_root, "uv", "pip", "list", "--outdated", "--format=json"
        )
        return parse_pip_outdated(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        if is_uv_project(project_root):
            self.run_checked(
                project_root, "uv", "lock", "--upgrade-package", f"{package}=={to_version}"
            )
            return
        self.run_checked(project_root, "uv", "pip", "install", f"{package}=={to_version}")
        update_requirements_txt(project_root, package, to_version)

    def finish(self, project_root: Path) -> None:
        if is_uv_project(project_root):
            self.run_checked(project_root, "uv", "sync")


class PipenvHandler(CommandHandler):
    name = "pipenv"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run(project_root, "pipenv", "update", "--outdated")
        return parse_pipenv_outdated(result.output)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        self.run_checked(project_root, "pipenv", "install", f"{package}=={to_version}")

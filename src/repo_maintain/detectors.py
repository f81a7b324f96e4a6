"""Package-manager detection from lock files and manifest sections."""

from __future__ import annotations

import re
import shutil
import tomllib
from pathlib import Path

import structlog

log = structlog.get_logger("repo_maintain.discovery")

# Most specific first.
NODE_LOCKFILES: tuple[tuple[str, str], ...] = (
    ("yarn.lock", "yarn"),
    ("pnpm-lock.yaml", "pnpm"),
    ("bun.lockb", "bun"),
)
PYTHON_LOCKFILES: tuple[tuple[str, str], ...] = (
    ("poetry.lock", "poetry"),
    ("uv.lock", "uv"),
    ("Pipfile.lock", "pipenv"),
)

_HEADER_RE = re.compile(r"^\[([^\[\]]+)\]\s*$", re.MULTILINE)


def detect_node_package_manager(project_dir: Path, manifest: str = "package.json") -> str:
    for lockfile, manager in NODE_LOCKFILES:
        if (project_dir / lockfile).is_file():
            return manager
    return "npm"


def _pyproject_sections(pyproject: Path) -> set[str]:
    """Return the dotted table names present in pyproject.toml.

    An undecodable file falls back to scanning for ``[header]`` lines.
    """
    try:
        content = pyproject.read_text(encoding="utf-8")
    except OSError as exc:
        log.warning("discovery.pyproject_unreadable", path=str(pyproject), error=str(exc))
        return set()

    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        log.debug("discovery.pyproject_invalid", path=str(pyproject), error=str(exc))
        return {m.group(1).strip() for m in _HEADER_RE.finditer(content)}

    sections: set[str] = set()
    if "project" in data:
        sections.add("project")
    tool = data.get("tool")
    if isinstance(tool, dict):
        sections.update(f"tool.{name}" for name in tool)
    return sections


def detect_python_package_manager(project_dir: Path, manifest: str = "pyproject.toml") -> str:
    """Pick the Python package manager for a project directory.

    A bare requirements.txt project is always pip. Otherwise lock files win,
    then ``[tool.poetry]``, then ``[tool.uv]``; a plain ``[project]`` table
    means uv when the binary is installed. pip otherwise.
    """
    if manifest == "requirements.txt":
        return "pip"

    for lockfile, manager in PYTHON_LOCKFILES:
        if (project_dir / lockfile).is_file():
            return manager

    pyproject = project_dir / "pyproject.toml"
    if pyproject.is_file():
        sections = _pyproject_sections(pyproject)
        if "tool.poetry" in sections:
            return "poetry"
        if "tool.uv" in sections:
            return "uv"
        if "project" in sections and shutil.which("uv"):
            return "uv"

    return "pip"


def detect_java_package_manager(project_dir: Path, manifest: str = "pom.xml") -> str:
    return "maven" if manifest == "pom.xml" else "gradle"


def detect_rust_package_manager(project_dir: Path, manifest: str = "Cargo.toml") -> str:
    return "cargo"


def detect_go_package_manager(project_dir: Path, manifest: str = "go.mod") -> str:
    return "go"

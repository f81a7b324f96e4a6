"""Shared plumbing for package-manager handlers.

A handler lists the outdated dependencies of one project and applies a single
bump. Both operations shell out to the ecosystem's own tooling, so every
invocation goes through :func:`run_tool`, which enforces a timeout and turns
missing binaries and failed commands into structured errors.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeAlias
from collections.abc import Callable, Sequence

import structlog

from ..models import DependencyCandidate

log = structlog.get_logger("repo_maintain.handlers")

DEFAULT_TIMEOUT = 600.0


class HandlerError(RuntimeError):
    """Base error for failures while talking to a package manager."""


class ToolUnavailable(HandlerError):
    """Raised when the required binary is not on PATH."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"'{tool}' is required but not installed")
        self.tool = tool


class ToolError(HandlerError):
    """Raised when a tool exits non-zero or its output cannot be understood."""


class ToolTimeout(ToolError):
    """Raised when a tool does not finish within the configured timeout."""


@dataclass(frozen=True)
class ToolResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


Runner: TypeAlias = Callable[[Sequence[str], Path, float], ToolResult]


def run_tool(args: Sequence[str], cwd: Path, timeout: float = DEFAULT_TIMEOUT) -> ToolResult:
    """Run ``args`` in ``cwd`` and capture its output.

    A non-zero exit status is returned, not raised; several tools (``npm
    outdated`` among them) exit 1 when they have something to report.

    Raises:
        ToolUnavailable: the executable cannot be found.
        ToolTimeout: the command ran longer than ``timeout`` seconds.
    """
    executable = args[0]
    if "/" in executable:
        available = (cwd / executable).is_file()
    else:
        available = shutil.which(executable) is not None
    if not available:
        raise ToolUnavailable(executable)

    log.debug("tool.run", args=list(args), cwd=str(cwd), timeout=timeout)
    try:
        completed = subprocess.run(
            list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise ToolTimeout(f"'{' '.join(args)}' timed out after {timeout:g}s") from exc
    except FileNotFoundError as exc:
        raise ToolUnavailable(executable) from exc

    return ToolResult(
        args=tuple(args),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def atomic_write(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` without leaving a half-written file."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def read_project_file(path: Path) -> str:
    """Read a UTF-8 project file; unreadable or undecodable files are a ToolError."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ToolError(f"Cannot read {path.name}: {exc}") from exc


def write_project_file(path: Path, content: str) -> None:
    try:
        atomic_write(path, content)
    except OSError as exc:
        raise ToolError(f"Cannot write {path.name}: {exc}") from exc


class Handler(Protocol):
    """Interface every package-manager handler satisfies."""

    name: str

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]: ...

    def apply(
        self, project_root: Path, package: str, from_version: str, to_version: str
    ) -> None: ...

    def finish(self, project_root: Path) -> None: ...


class CommandHandler:
    """Base class for handlers built on external commands.

    Subclasses set ``name`` and implement ``discover_outdated`` and ``apply``.
    ``apply`` raises :class:`ToolError` when the update does not go through,
    including when a manifest cannot be read or rewritten. With ``dry_run``
    set, ``discover_outdated`` must not write to the project (no lock files).
    """

    name = ""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        runner: Runner | None = None,
        dry_run: bool = False,
    ) -> None:
        self.timeout = timeout
        self.dry_run = dry_run
        self._runner = runner or run_tool

    def run(self, project_root: Path, *args: str) -> ToolResult:
        return self._runner(args, project_root, self.timeout)

    def run_checked(self, project_root: Path, *args: str) -> ToolResult:
        result = self.run(project_root, *args)
        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ToolError(
                f"'{' '.join(args)}' exited with status {result.returncode}: {detail}"
            )
        return result

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        raise NotImplementedError

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        raise NotImplementedError

    def finish(self, project_root: Path) -> None:
        """Run once after at least one update was applied in the project."""

"""Core run entrypoints.

``RunCoordinator`` walks the discovered projects one at a time, asks each
project's handler for outdated dependencies, lets the update policy decide,
and records every outcome in a single ``RunSummary``. ``run_maintenance``
wires discovery, coordination and the optional GitHub issue together.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import threading
from pathlib import Path
from collections.abc import Callable, Iterable

import structlog

from .config import Settings
from .discovery import discover_projects
from .handlers import DEFAULT_TIMEOUT, Handler, ToolError, ToolTimeout, ToolUnavailable
from .models import (
    DependencyCandidate,
    ProjectDescriptor,
    RunSummary,
    UpdateOutcome,
    UpdateStatus,
)
from .policy import UpdateAction, UpdatePolicy, skip_status
from .registry import UnsupportedHandlerError, get_handler

log = structlog.get_logger("repo_maintain.core")

HandlerFactory = Callable[..., Handler]


class MissingRequirementError(RuntimeError):
    """Raised before scanning when a required tool is not installed."""

    def __init__(self, tools: list[str]) -> None:
        super().__init__(f"Required tool(s) not installed: {', '.join(tools)}")
        self.tools = tools


def check_requirements(tools: Iterable[str]) -> None:
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise MissingRequirementError(missing)


def _failure_reason(exc: Exception, default: str) -> str:
    if isinstance(exc, ToolUnavailable):
        return "missing_package_manager"
    if isinstance(exc, ToolTimeout):
        return "timeout"
    return default


class RunCoordinator:
    """Process projects sequentially and own the run summary."""

    def __init__(
        self,
        *,
        dry_run: bool = False,
        policy: UpdatePolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        handler_factory: HandlerFactory = get_handler,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.dry_run = dry_run
        self.policy = policy or UpdatePolicy()
        self.timeout = timeout
        self._handler_factory = handler_factory
        self._cancel_event = cancel_event or threading.Event()

    def run(self, projects: Iterable[ProjectDescriptor]) -> RunSummary:
        summary = RunSummary(dry_run=self.dry_run)
        pending = list(projects)

        for index, project in enumerate(pending):
            if self._cancel_event.is_set():
                summary.projects_cancelled = len(pending) - index
                log.warning("run.cancelled", remaining=summary.projects_cancelled)
                break
            summary.projects_scanned += 1
            try:
                self.process_project(project, summary)
            except Exception as exc:
                log.exception("project.crashed", path=str(project.root_path))
                self._fail(summary, project, None, "handler_crashed", str(exc))

        return summary

    def process_project(self, project: ProjectDescriptor, summary: RunSummary) -> None:
        log.info(
            "project.start",
            ecosystem=project.ecosystem.value,
            package_manager=project.package_manager,
            path=str(project.root_path),
        )

        try:
            handler = self._handler_factory(
                project.ecosystem,
                project.package_manager,
                timeout=self.timeout,
                dry_run=self.dry_run,
            )
        except UnsupportedHandlerError as exc:
            self._fail(summary, project, None, UnsupportedHandlerError.reason, str(exc))
            return

        with contextlib.ExitStack() as stack:
            try:
                stack.enter_context(contextlib.chdir(project.root_path))
            except OSError as exc:
                self._fail(summary, project, None, "discovery_failed", str(exc))
                return
            self._process_in_directory(handler, project, summary)

    def _process_in_directory(
        self, handler: Handler, project: ProjectDescriptor, summary: RunSummary
    ) -> None:
        root = project.root_path
        try:
            candidates = handler.discover_outdated(root)
        except ToolError as exc:
            self._fail(summary, project, None, _failure_reason(exc, "discovery_failed"), str(exc))
            return
        except ToolUnavailable as exc:
            self._fail(summary, project, None, "missing_package_manager", str(exc))
            return

        if not candidates:
            log.info("project.no_updates", path=str(root))
            return

        applied = 0
        for candidate in candidates:
            if self._handle_candidate(handler, project, candidate, summary):
                applied += 1

        if applied and not self.dry_run:
            try:
                handler.finish(root)
            except (ToolError, ToolUnavailable) as exc:
                self._fail(summary, project, None, _failure_reason(exc, "finish_failed"), str(exc))

    def _handle_candidate(
        self,
        handler: Handler,
        project: ProjectDescriptor,
        candidate: DependencyCandidate,
        summary: RunSummary,
    ) -> bool:
        """Decide on one candidate; return True when it was actually applied."""
        action = self.policy.evaluate(candidate)
        fields = {
            "package": candidate.name,
            "current": candidate.current_version,
            "available": candidate.available_version,
        }

        if action is not UpdateAction.APPLY:
            log.info("update.skipped", action=action.value, **fields)
            summary.record(self._outcome(project, candidate, skip_status(action)))
            return False

        if self.dry_run:
            log.info("dry_run.would_update", **fields)
            summary.record(self._outcome(project, candidate, UpdateStatus.APPLIED))
            return False

        try:
            handler.apply(
                project.root_path,
                candidate.name,
                candidate.current_version,
                candidate.available_version,
            )
        except (ToolError, ToolUnavailable) as exc:
            self._fail(
                summary, project, candidate, _failure_reason(exc, "update_failed"), str(exc)
            )
            return False

        log.info("update.applied", **fields)
        summary.record(self._outcome(project, candidate, UpdateStatus.APPLIED))
        return True

    @staticmethod
    def _outcome(
        project: ProjectDescriptor,
        candidate: DependencyCandidate,
        status: UpdateStatus,
        reason: str = "",
    ) -> UpdateOutcome:
        return UpdateOutcome(
            project=project,
            package_name=candidate.name,
            from_version=candidate.current_version,
            to_version=candidate.available_version,
            status=status,
            reason=reason,
        )

    def _fail(
        self,
        summary: RunSummary,
        project: ProjectDescriptor,
        candidate: DependencyCandidate | None,
        reason: str,
        detail: str,
    ) -> None:
        log.error(
            "update.failed" if candidate else "project.failed",
            path=str(project.root_path),
            package=candidate.name if candidate else None,
            reason=reason,
            detail=detail,
        )
        if candidate is not None:
            summary.record(self._outcome(project, candidate, UpdateStatus.FAILED, reason))
            return
        summary.record(
            UpdateOutcome(
                project=project,
                package_name=None,
                from_version="",
                to_version="",
                status=UpdateStatus.FAILED,
                reason=reason,
            )
        )


def _issue_creation_enabled() -> bool:
    value = os.getenv("REPO_MAINTAIN_CREATE_GH_ISSUE", "").strip().lower()
    return value in {"1", "true", "yes", "y"}


def _maybe_open_issue(summary: RunSummary) -> None:
    if summary.dry_run or not summary.skipped_major or not _issue_creation_enabled():
        return

    token = os.getenv("GITHUB_TOKEN", "")
    repository = os.getenv("GITHUB_REPOSITORY", "")
    if not token or not repository:
        log.warning("issue.skipped", reason="GITHUB_TOKEN or GITHUB_REPOSITORY not set")
        return

    from . import issues as issues_mod

    try:
        url = issues_mod.create_or_update_issue(summary, token=token, repository=repository)
    except issues_mod.IssueError as exc:
        log.warning("issue.failed", error=str(exc))
        return
    log.info("issue.updated", url=url)


def run_maintenance(
    root: Path,
    settings: Settings | None = None,
    dry_run: bool = False,
    cancel_event: threading.Event | None = None,
) -> RunSummary:
    """Scan ``root`` for projects and apply safe updates to each.

    Raises:
        MissingRequirementError: a configured required tool is not installed.
    """
    settings = settings or Settings()
    root = root.resolve()

    check_requirements(settings.required_tools)

    log.info("run.start", root=str(root), dry_run=dry_run, include_minor=settings.include_minor)
    projects = discover_projects(
        root,
        extra_skip_dirs=settings.skip_dirs,
        ecosystems=settings.enabled_ecosystems,
    )
    log.info("run.projects_found", count=len(projects))

    coordinator = RunCoordinator(
        dry_run=dry_run,
        policy=UpdatePolicy(include_minor=settings.include_minor),
        timeout=settings.timeout,
        cancel_event=cancel_event,
    )
    summary = coordinator.run(projects)
    _maybe_open_issue(summary)
    return summary

"""Tests for the run coordinator and run_maintenance."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from repo_maintain import core
from repo_maintain.config import Settings
from repo_maintain.core import MissingRequirementError, RunCoordinator, run_maintenance
from repo_maintain.discovery import discover_projects
from repo_maintain.handlers import NpmHandler, ToolError, ToolTimeout, ToolUnavailable
from repo_maintain.models import (
    DependencyCandidate,
    Ecosystem,
    ProjectDescriptor,
    RunSummary,
    UpdateOutcome,
    UpdateStatus,
)
from repo_maintain.policy import UpdatePolicy
from repo_maintain.registry import HANDLERS, get_handler

from .conftest import FakeRunner, ok, write_tree

ONE_PATCH = json.dumps({"left-pad": {"current": "1.0.0", "wanted": "1.0.1", "latest": "1.0.1"}})


class FakeHandler:
    """Handler double that records what the coordinator asks of it."""

    name = "fake"

    def __init__(self, candidates=(), discover_error=None, apply_errors=None, finish_error=None):
        self.candidates = list(candidates)
        self.discover_error = discover_error
        self.apply_errors = apply_errors or {}
        self.finish_error = finish_error
        self.applied: list[tuple[str, str, str]] = []
        self.finished = 0
        self.cwd_seen: list[Path] = []

    def discover_outdated(self, project_root):
        self.cwd_seen.append(Path.cwd())
        if self.discover_error:
            raise self.discover_error
        return self.candidates

    def apply(self, project_root, package, from_version, to_version):
        if package in self.apply_errors:
            raise self.apply_errors[package]
        self.applied.append((package, from_version, to_version))

    def finish(self, project_root):
        if self.finish_error:
            raise self.finish_error
        self.finished += 1


def _factory(handler):
    def factory(ecosystem, package_manager, timeout, dry_run=False):
        return handler

    return factory


def _project(path: Path, ecosystem=Ecosystem.NODEJS, pm="npm") -> ProjectDescriptor:
    path.mkdir(parents=True, exist_ok=True)
    return ProjectDescriptor(ecosystem, pm, path.resolve())


def _snapshot(root: Path) -> dict[str, tuple[int, bytes]]:
    return {
        str(p.relative_to(root)): (p.stat().st_mtime_ns, p.read_bytes())
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class TestRunCoordinator:
    def test_policy_buckets(self, tmp_path):
        handler = FakeHandler(
            [
                DependencyCandidate("patch", "1.0.0", "1.0.1"),
                DependencyCandidate("minor", "1.0.0", "1.1.0"),
                DependencyCandidate("major", "1.0.0", "2.0.0"),
                DependencyCandidate("same", "1.0.0", "1.0.0"),
            ]
        )
        summary = RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])

        assert summary.projects_scanned == 1
        assert [o.package_name for o in summary.applied] == ["patch"]
        assert [o.package_name for o in summary.skipped_minor] == ["minor"]
        assert [o.package_name for o in summary.skipped_major] == ["major"]
        assert [o.package_name for o in summary.skipped_other] == ["same"]
        assert handler.applied == [("patch", "1.0.0", "1.0.1")]
        assert handler.finished == 1

    def test_include_minor(self, tmp_path):
        handler = FakeHandler([DependencyCandidate("minor", "1.0.0", "1.1.0")])
        summary = RunCoordinator(
            policy=UpdatePolicy(include_minor=True), handler_factory=_factory(handler)
        ).run([_project(tmp_path)])
        assert summary.total_applied == 1
        assert handler.applied == [("minor", "1.0.0", "1.1.0")]

    def test_dry_run_never_applies(self, tmp_path):
        handler = FakeHandler([DependencyCandidate("patch", "1.0.0", "1.0.1")])
        summary = RunCoordinator(dry_run=True, handler_factory=_factory(handler)).run(
            [_project(tmp_path)]
        )
        assert summary.dry_run
        assert summary.total_applied == 1
        assert handler.applied == []
        assert handler.finished == 0

    def test_runs_inside_project_directory_and_restores_cwd(self, tmp_path):
        before = Path.cwd()
        handler = FakeHandler()
        project = _project(tmp_path / "app")
        RunCoordinator(handler_factory=_factory(handler)).run([project])
        assert handler.cwd_seen == [project.root_path]
        assert Path.cwd() == before

    def test_crash_is_contained_and_cwd_restored(self, tmp_path):
        before = Path.cwd()
        crashing = FakeHandler(discover_error=RuntimeError("boom"))
        healthy = FakeHandler([DependencyCandidate("a", "1.0.0", "1.0.1")])
        handlers = iter([crashing, healthy])

        summary = RunCoordinator(
            handler_factory=lambda eco, pm, timeout, dry_run: next(handlers)
        ).run([_project(tmp_path / "a"), _project(tmp_path / "b")])

        assert Path.cwd() == before
        assert [o.reason for o in summary.failed] == ["handler_crashed"]
        assert summary.total_applied == 1
        assert summary.projects_scanned == 2

    @pytest.mark.parametrize(
        "error, reason",
        [
            (ToolUnavailable("npm"), "missing_package_manager"),
            (ToolTimeout("too slow"), "timeout"),
            (ToolError("bad output"), "discovery_failed"),
        ],
    )
    def test_discovery_failures(self, tmp_path, error, reason):
        handler = FakeHandler(discover_error=error)
        summary = RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        [failure] = summary.failed
        assert failure.reason == reason
        assert failure.package_name is None
        assert summary.total_applied == 0

    def test_unsupported_package_manager(self, tmp_path):
        project = _project(tmp_path, pm="bower")
        summary = RunCoordinator(handler_factory=get_handler).run([project])
        [failure] = summary.failed
        assert failure.reason == "unsupported"

    def test_apply_failure_continues_with_next_candidate(self, tmp_path):
        handler = FakeHandler(
            [
                DependencyCandidate("bad", "1.0.0", "1.0.1"),
                DependencyCandidate("good", "2.0.0", "2.0.1"),
            ],
            apply_errors={"bad": ToolError("E404")},
        )
        summary = RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        assert [(o.package_name, o.reason) for o in summary.failed] == [("bad", "update_failed")]
        assert [o.package_name for o in summary.applied] == ["good"]
        assert handler.finished == 1

    def test_finish_skipped_when_nothing_applied(self, tmp_path):
        handler = FakeHandler(
            [DependencyCandidate("bad", "1.0.0", "1.0.1")],
            apply_errors={"bad": ToolError("E404")},
        )
        RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        assert handler.finished == 0

    def test_finish_failure_is_recorded(self, tmp_path):
        handler = FakeHandler(
            [DependencyCandidate("a", "1.0.0", "1.0.1")], finish_error=ToolError("tidy failed")
        )
        summary = RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        assert summary.total_applied == 1
        assert [o.reason for o in summary.failed] == ["finish_failed"]

    def test_factory_receives_dry_run_flag(self, tmp_path):
        seen = []

        def factory(ecosystem, package_manager, timeout, dry_run):
            seen.append(dry_run)
            return FakeHandler()

        RunCoordinator(dry_run=True, handler_factory=factory).run([_project(tmp_path)])
        assert seen == [True]

    def test_unexpected_os_error_is_not_a_discovery_failure(self, tmp_path):
        handler = FakeHandler(discover_error=PermissionError("denied"))
        summary = RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        assert [o.reason for o in summary.failed] == ["handler_crashed"]

    def test_missing_project_directory(self, tmp_path):
        project = ProjectDescriptor(Ecosystem.GO, "go", tmp_path / "gone")
        summary = RunCoordinator(handler_factory=_factory(FakeHandler())).run([project])
        assert [o.reason for o in summary.failed] == ["discovery_failed"]

    def test_cancellation_stops_before_next_project(self, tmp_path):
        cancel = threading.Event()

        class CancellingHandler(FakeHandler):
            def discover_outdated(self, project_root):
                cancel.set()
                return super().discover_outdated(project_root)

        handler = CancellingHandler([DependencyCandidate("a", "1.0.0", "1.0.1")])
        projects = [_project(tmp_path / name) for name in ("a", "b", "c")]
        summary = RunCoordinator(handler_factory=_factory(handler), cancel_event=cancel).run(
            projects
        )
        assert summary.projects_scanned == 1
        assert summary.projects_cancelled == 2
        assert summary.total_applied == 1

    def test_log_events(self, tmp_path):
        handler = FakeHandler(
            [
                DependencyCandidate("patch", "1.0.0", "1.0.1"),
                DependencyCandidate("major", "1.0.0", "2.0.0"),
            ]
        )
        with capture_logs() as logs:
            RunCoordinator(handler_factory=_factory(handler)).run([_project(tmp_path)])
        events = [entry["event"] for entry in logs]
        assert "project.start" in events
        assert "update.applied" in events
        assert "update.skipped" in events
        skipped = next(entry for entry in logs if entry["event"] == "update.skipped")
        assert skipped["package"] == "major"
        assert skipped["action"] == "skip-major"


class TestNpmEndToEnd:
    """A single nodejs project with one patch-level update available."""

    @pytest.fixture
    def project_tree(self, tmp_path):
        write_tree(tmp_path, {"web/package.json": '{"name": "web", "version": "0.1.0"}\n'})
        return tmp_path

    @pytest.fixture
    def runner(self):
        return FakeRunner({("npm", "outdated"): ok(ONE_PATCH, returncode=1)})

    def _run(self, root, runner, dry_run):
        coordinator = RunCoordinator(
            dry_run=dry_run,
            handler_factory=lambda eco, pm, timeout, dry_run: NpmHandler(
                timeout=timeout, runner=runner, dry_run=dry_run
            ),
        )
        return coordinator.run(discover_projects(root))

    def test_dry_run_reports_one_update_and_writes_nothing(self, project_tree, runner):
        before = _snapshot(project_tree)
        summary = self._run(project_tree, runner, dry_run=True)

        assert summary.total_applied == 1
        [outcome] = summary.applied
        assert (outcome.package_name, outcome.from_version, outcome.to_version) == (
            "left-pad",
            "1.0.0",
            "1.0.1",
        )
        assert runner.commands() == [("npm", "outdated", "--json")]
        assert _snapshot(project_tree) == before

    def test_apply_invokes_install_once(self, project_tree, runner):
        summary = self._run(project_tree, runner, dry_run=False)

        installs = [c for c in runner.commands() if c[:2] == ("npm", "install")]
        assert installs == [("npm", "install", "left-pad@1.0.1", "--save-exact")]
        assert summary.total_applied == 1
        assert summary.total_failed == 0

    def test_dry_run_is_idempotent(self, project_tree, runner):
        first = self._run(project_tree, runner, dry_run=True)
        second = self._run(project_tree, runner, dry_run=True)
        assert first.to_dict() == second.to_dict()


class TestPythonProjects:
    """Poetry, uv and pip projects driven through the registry handlers."""

    @staticmethod
    def _coordinator(runner, dry_run):
        return RunCoordinator(
            dry_run=dry_run,
            handler_factory=lambda eco, pm, timeout, dry_run: HANDLERS[(eco, pm)](
                timeout=timeout, runner=runner, dry_run=dry_run
            ),
        )

    def test_dry_run_without_lock_files_writes_nothing(self, tmp_path):
        write_tree(
            tmp_path,
            {
                "poetry-app/pyproject.toml": '[tool.poetry]\nname = "poetry-app"\n',
                "uv-app/pyproject.toml": '[project]\nname = "uv-app"\n\n[tool.uv]\n',
            },
        )
        runner = FakeRunner(
            {
                ("poetry", "show", "--outdated"): ok("requests 2.31.0 2.31.1 HTTP\n"),
                ("uv", "pip", "list"): ok(
                    json.dumps(
                        [{"name": "httpx", "version": "0.27.0", "latest_version": "0.27.2"}]
                    )
                ),
            }
        )
        projects = discover_projects(tmp_path)
        assert [p.package_manager for p in projects] == ["poetry", "uv"]

        before = _snapshot(tmp_path)
        summary = self._coordinator(runner, dry_run=True).run(projects)

        assert summary.total_applied == 2
        assert summary.total_failed == 0
        assert all("lock" not in command for command in runner.commands())
        assert _snapshot(tmp_path) == before

    def test_unreadable_requirements_fails_each_update_and_continues(self, tmp_path):
        app = tmp_path / "app"
        app.mkdir()
        content = b"# caf\xe9\ncafe==1.0.0\nrequests==2.31.0\n"
        (app / "requirements.txt").write_bytes(content)
        runner = FakeRunner(
            {
                ("pip", "list"): ok(
                    json.dumps(
                        [
                            {"name": "cafe", "version": "1.0.0", "latest_version": "1.0.1"},
                            {"name": "requests", "version": "2.31.0", "latest_version": "2.31.1"},
                        ]
                    )
                )
            }
        )
        summary = self._coordinator(runner, dry_run=False).run(discover_projects(tmp_path))

        installs = [c for c in runner.commands() if c[:2] == ("pip", "install")]
        assert installs == [
            ("pip", "install", "cafe==1.0.1"),
            ("pip", "install", "requests==2.31.1"),
        ]
        assert [(o.package_name, o.reason) for o in summary.failed] == [
            ("cafe", "update_failed"),
            ("requests", "update_failed"),
        ]
        assert summary.total_applied == 0
        assert (app / "requirements.txt").read_bytes() == content


class TestRunMaintenance:
    def test_missing_required_tool(self, tmp_path):
        settings = Settings(required_tools=("definitely-not-installed-tool",))
        with pytest.raises(MissingRequirementError) as info:
            run_maintenance(tmp_path, settings)
        assert info.value.tools == ["definitely-not-installed-tool"]

    def test_empty_tree(self, tmp_path):
        summary = run_maintenance(tmp_path)
        assert summary.projects_scanned == 0
        assert summary.totals["applied"] == 0

    def test_uses_settings(self, tmp_path, monkeypatch):
        write_tree(
            tmp_path,
            {
                "web/package.json": "{}",
                "svc/go.mod": "module example.com/svc\n",
            },
        )
        runner = FakeRunner(
            {
                ("npm", "outdated"): ok(
                    json.dumps({"a": {"current": "1.0.0", "wanted": "1.1.0"}}), returncode=1
                )
            }
        )
        monkeypatch.setattr("repo_maintain.handlers.base.run_tool", runner)

        settings = Settings(include_minor=True, disabled_ecosystems=(Ecosystem.GO,))
        summary = run_maintenance(tmp_path, settings, dry_run=True)

        assert summary.projects_scanned == 1
        assert summary.total_applied == 1
        assert all(args[0] == "npm" for args in runner.commands())

    def test_issue_opened_for_major_updates(self, tmp_path, monkeypatch):
        write_tree(tmp_path, {"web/package.json": "{}"})
        runner = FakeRunner(
            {
                ("npm", "outdated"): ok(
                    json.dumps({"a": {"current": "1.0.0", "wanted": "2.0.0"}}), returncode=1
                )
            }
        )
        monkeypatch.setattr("repo_maintain.handlers.base.run_tool", runner)
        monkeypatch.setenv("REPO_MAINTAIN_CREATE_GH_ISSUE", "true")
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")

        calls = []

        def fake_issue(summary, token, repository):
            calls.append((len(summary.skipped_major), token, repository))
            return "https://github.com/acme/widgets/issues/1"

        monkeypatch.setattr("repo_maintain.issues.create_or_update_issue", fake_issue)
        run_maintenance(tmp_path)
        assert calls == [(1, "t", "acme/widgets")]

    def test_issue_not_opened_on_dry_run(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REPO_MAINTAIN_CREATE_GH_ISSUE", "1")
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")
        monkeypatch.setattr(
            "repo_maintain.issues.create_or_update_issue",
            lambda *a, **k: pytest.fail("issue must not be created"),
        )
        summary = RunSummary(dry_run=True)
        summary.record(
            UpdateOutcome(
                project=ProjectDescriptor(Ecosystem.GO, "go", tmp_path),
                package_name="x",
                from_version="v1.0.0",
                to_version="v2.0.0",
                status=UpdateStatus.SKIPPED_MAJOR,
            )
        )
        core._maybe_open_issue(summary)


def test_check_requirements_passes_for_available_tools(monkeypatch):
    monkeypatch.setattr("repo_maintain.core.shutil.which", lambda name: f"/usr/bin/{name}")
    core.check_requirements(["git", "jq"])

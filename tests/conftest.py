"""Shared pytest fixtures for repo-maintain tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from repo_maintain.handlers import ToolResult


class FakeRunner:
    """Stand-in for ``run_tool`` that replays scripted results.

    ``responses`` maps a command prefix (tuple of leading args) to a
    ``ToolResult`` or an exception instance to raise. Every call is recorded.
    """

    def __init__(self, responses: dict[tuple[str, ...], object] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[tuple[str, ...], Path]] = []

    def __call__(self, args, cwd, timeout):
        args = tuple(args)
        self.calls.append((args, cwd))
        for prefix in sorted(self.responses, key=len, reverse=True):
            if args[: len(prefix)] == prefix:
                response = self.responses[prefix]
                if isinstance(response, BaseException):
                    raise response
                return response
        return ok()

    def commands(self) -> list[tuple[str, ...]]:
        return [args for args, _ in self.calls]


def ok(stdout: str = "", stderr: str = "", returncode: int = 0) -> ToolResult:
    return ToolResult(args=(), returncode=returncode, stdout=stdout, stderr=stderr)


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture(autouse=True)
def _no_uv(monkeypatch):
    """Detection must not depend on whether uv is installed on the test host."""
    monkeypatch.setattr("repo_maintain.detectors.shutil.which", lambda name: None)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "REPO_MAINTAIN_CONFIG",
        "REPO_MAINTAIN_CREATE_GH_ISSUE",
        "GITHUB_TOKEN",
        "GITHUB_REPOSITORY",
    ):
        monkeypatch.delenv(name, raising=False)

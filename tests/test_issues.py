"""Tests for the GitHub review issue (HTTP layer mocked)."""

from __future__ import annotations

from pathlib import Path

import pytest
import requests

from repo_maintain import issues
from repo_maintain.models import (
    Ecosystem,
    ProjectDescriptor,
    RunSummary,
    UpdateOutcome,
    UpdateStatus,
)


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def summary():
    project = ProjectDescriptor(Ecosystem.GO, "go", Path("/repo/svc"))
    s = RunSummary(projects_scanned=1)
    s.record(
        UpdateOutcome(project, "golang.org/x/net", "v0.1.0", "v1.0.0", UpdateStatus.SKIPPED_MAJOR)
    )
    return s


def test_body_lists_major_updates(summary):
    body = issues.build_issue_body(summary)
    assert body.startswith(issues.ISSUE_MARKER)
    assert "- `/repo/svc` (go): golang.org/x/net v0.1.0 -> v1.0.0" in body


def test_pick_prefers_marker():
    listed = [
        {"title": issues.ISSUE_TITLE, "body": "", "url": "a"},
        {"title": "other", "body": f"x {issues.ISSUE_MARKER}", "url": "b"},
    ]
    assert issues._pick_issue_to_update(listed)["url"] == "b"
    assert issues._pick_issue_to_update(listed[:1])["url"] == "a"
    assert issues._pick_issue_to_update([]) is None


def test_creates_issue_when_none_open(summary, monkeypatch):
    sent = []
    monkeypatch.setattr(issues, "_http_get", lambda url, **kw: FakeResponse([]))

    def fake_send(method, url, **kw):
        sent.append((method, url, kw["json"]["title"]))
        return FakeResponse({"html_url": "https://github.com/acme/w/issues/7"})

    monkeypatch.setattr(issues, "_http_send", fake_send)
    url = issues.create_or_update_issue(summary, token="t", repository="acme/w")
    assert url == "https://github.com/acme/w/issues/7"
    assert sent == [("POST", "https://api.github.com/repos/acme/w/issues", issues.ISSUE_TITLE)]


def test_updates_existing_issue(summary, monkeypatch):
    existing = [{"title": issues.ISSUE_TITLE, "body": issues.ISSUE_MARKER, "url": "https://api/i/3"}]
    sent = []
    monkeypatch.setattr(issues, "_http_get", lambda url, **kw: FakeResponse(existing))
    monkeypatch.setattr(
        issues,
        "_http_send",
        lambda method, url, **kw: sent.append((method, url)) or FakeResponse({"html_url": "h"}),
    )
    assert issues.create_or_update_issue(summary, token="t", repository="acme/w") == "h"
    assert sent == [("PATCH", "https://api/i/3")]


def test_http_failure_becomes_issue_error(summary, monkeypatch):
    monkeypatch.setattr(issues, "_http_get", lambda url, **kw: FakeResponse({}, status=401))
    with pytest.raises(issues.IssueError, match="401"):
        issues.create_or_update_issue(summary, token="bad", repository="acme/w")

"""Optional GitHub issue listing major updates that need manual review.

Enabled with ``REPO_MAINTAIN_CREATE_GH_ISSUE``; requires ``GITHUB_TOKEN`` and
``GITHUB_REPOSITORY``. A single open issue is reused across runs, found by a
hidden marker in its body.
"""

from __future__ import annotations

from typing import Any

import requests
from requests import Response
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .models import RunSummary

ISSUE_TITLE = "Major dependency updates need manual review"
ISSUE_LABELS = ["dependencies", "repo-maintain"]
ISSUE_MARKER = "<!-- repo-maintain-issue-marker: do-not-edit -->"
API_ROOT = "https://api.github.com"


class IssueError(RuntimeError):
    """Raised when the issue cannot be listed, created or updated."""


_retrying = retry(
    reraise=True,
    retry=retry_if_exception_type(requests.ConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_fixed(2),
)


@_retrying
def _http_get(url: str, **kwargs: Any) -> Response:
    return requests.get(url, timeout=10, **kwargs)


@_retrying
def _http_send(method: str, url: str, **kwargs: Any) -> Response:
    return requests.request(method, url, timeout=10, **kwargs)


def _pick_issue_to_update(issues: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Choose an existing issue to update based on marker or title match."""
    for it in issues:
        body = it.get("body") or ""
        if ISSUE_MARKER in body:
            return it
    for it in issues:
        if it.get("title") == ISSUE_TITLE:
            return it
    return None


def build_issue_body(summary: RunSummary) -> str:
    lines = [ISSUE_MARKER, "", "Major updates were skipped and need manual review:", ""]
    for outcome in summary.skipped_major:
        lines.append(
            f"- `{outcome.project.root_path}` ({outcome.project.package_manager}): "
            f"{outcome.package_name} {outcome.from_version} -> {outcome.to_version}"
        )
    if summary.skipped_minor:
        lines.append("")
        lines.append(f"Minor updates also available: {len(summary.skipped_minor)}")
    return "\n".join(lines) + "\n"


def create_or_update_issue(
    summary: RunSummary,
    token: str,
    repository: str,
    labels: list[str] | None = None,
) -> str:
    """Create or update the review issue; return its HTML URL.

    Raises:
        IssueError: on any HTTP or network failure.
    """
    api = f"{API_ROOT}/repos/{repository}/issues"
    headers = {"Authorization": f"token {token}", "Accept": "application/vnd.github+json"}
    payload = {
        "title": ISSUE_TITLE,
        "body": build_issue_body(summary),
        "labels": labels or ISSUE_LABELS,
    }

    try:
        r = _http_get(api, params={"state": "open", "per_page": 50}, headers=headers)
        r.raise_for_status()
        existing = r.json()
        chosen = _pick_issue_to_update(existing if isinstance(existing, list) else [])

        if chosen:
            r2 = _http_send("PATCH", chosen.get("url"), json=payload, headers=headers)
        else:
            r2 = _http_send("POST", api, json=payload, headers=headers)
        r2.raise_for_status()
    except requests.RequestException as exc:
        raise IssueError(f"GitHub issue update failed: {exc}") from exc

    return r2.json().get("html_url", "")

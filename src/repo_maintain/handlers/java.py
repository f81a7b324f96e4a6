"""Java handlers: Maven (versions plugin) and Gradle (gradle-versions-plugin)."""

from __future__ import annotations

import json
import re
from pathlib import Path

import structlog

from ..models import DependencyCandidate
from .base import CommandHandler, ToolError, read_project_file, write_project_file

log = structlog.get_logger("repo_maintain.handlers")

_COORD = r"[A-Za-z0-9._-]+:[A-Za-z0-9._-]+"
_VERSION = r"[0-9][0-9.A-Za-z-]*"

# "[INFO]   org.slf4j:slf4j-api ............................ 2.0.7 -> 2.0.9"
_MAVEN_RE = re.compile(rf"({_COORD})\s+\.+\s+({_VERSION})\s+->\s+({_VERSION})")
# " - com.google.guava:guava [31.0-jre -> 31.1-jre]"
_GRADLE_RE = re.compile(rf"-\s+({_COORD})\s+\[({_VERSION})\s+->\s+({_VERSION})\]")

GRADLE_BUILD_FILES = ("build.gradle.kts", "build.gradle")
GRADLE_REPORT = Path("build") / "dependencyUpdates" / "report.json"


def parse_maven_updates(output: str) -> list[DependencyCandidate]:
    """Parse ``mvn versions:display-dependency-updates`` output."""
    candidates: list[DependencyCandidate] = []
    for line in output.splitlines():
        match = _MAVEN_RE.search(line)
        if match:
            candidates.append(DependencyCandidate(*match.groups()))
    return candidates


def parse_gradle_text(output: str) -> list[DependencyCandidate]:
    candidates: list[DependencyCandidate] = []
    for line in output.splitlines():
        match = _GRADLE_RE.search(line)
        if match:
            candidates.append(DependencyCandidate(*match.groups()))
    return candidates


def parse_gradle_report(payload: str) -> list[DependencyCandidate]:
    """Parse the gradle-versions-plugin JSON report."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ToolError(f"Gradle report is not valid JSON: {exc.msg}") from exc

    outdated = (data.get("outdated") or {}) if isinstance(data, dict) else {}
    candidates: list[DependencyCandidate] = []
    for dep in outdated.get("dependencies") or []:
        if not isinstance(dep, dict):
            continue
        group, name, current = dep.get("group"), dep.get("name"), dep.get("version")
        available = dep.get("available") or {}
        latest = available.get("release") or available.get("milestone")
        if group and name and current and latest:
            candidates.append(DependencyCandidate(f"{group}:{name}", str(current), str(latest)))
    return candidates


class MavenHandler(CommandHandler):
    name = "maven"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run_checked(
            project_root,
            "mvn",
            "versions:display-dependency-updates",
            "-DprocessDependencyManagement=false",
        )
        return parse_maven_updates(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        group_id, _, artifact_id = package.partition(":")
        self.run_checked(
            project_root,
            "mvn",
            "versions:use-dep-version",
            f"-Dincludes={group_id}:{artifact_id}",
            f"-DdepVersion={to_version}",
            "-DgenerateBackupPoms=false",
        )


def find_gradle_build_file(project_root: Path) -> Path | None:
    for name in GRADLE_BUILD_FILES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


class GradleHandler(CommandHandler):
    name = "gradle"

    def gradle_command(self, project_root: Path) -> str:
        if (project_root / "gradlew").is_file():
            log.debug("gradle.wrapper", project=str(project_root))
            return "./gradlew"
        return "gradle"

    def discover_outdated(self, project_root: Path) -> list[DependencyCandidate]:
        result = self.run(
            project_root,
            self.gradle_command(project_root),
            "dependencyUpdates",
            "-Drevision=release",
            "--no-daemon",
        )
        if not result.ok:
            raise ToolError(
                "gradle dependencyUpdates failed; is the "
                "'com.github.ben-manes.versions' plugin configured?"
            )
        report = project_root / GRADLE_REPORT
        if report.is_file():
            return parse_gradle_report(read_project_file(report))
        return parse_gradle_text(result.stdout)

    def apply(self, project_root: Path, package: str, from_version: str, to_version: str) -> None:
        """Rewrite the ``group:name:version`` coordinate in the build file."""
        build_file = find_gradle_build_file(project_root)
        if build_file is None:
            raise ToolError(f"No Gradle build file in {project_root}")

        content = read_project_file(build_file)
        old, new = f"{package}:{from_version}", f"{package}:{to_version}"
        if old not in content:
            raise ToolError(f"{old} not declared in {build_file.name}")
        write_project_file(build_file, content.replace(old, new))

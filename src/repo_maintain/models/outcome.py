"""Update outcome and run summary models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .project import ProjectDescriptor


class UpdateStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED_MINOR = "skipped-minor"
    SKIPPED_MAJOR = "skipped-major"
    SKIPPED_OTHER = "skipped-other"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class UpdateOutcome:
    """One decision taken for one package (or for a whole project).

    Project-level failures such as a missing package manager carry no
    ``package_name``.
    """

    project: ProjectDescriptor
    package_name: str | None
    from_version: str
    to_version: str
    status: UpdateStatus
    reason: str = ""

    def __post_init__(self) -> None:
        if self.status is UpdateStatus.FAILED and not self.reason:
            raise ValueError("Failed outcomes must carry a reason")

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "project": str(self.project.root_path),
            "ecosystem": self.project.ecosystem.value,
            "packageManager": self.project.package_manager,
            "package": self.package_name,
            "from": self.from_version,
            "to": self.to_version,
            "status": self.status.value,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class RunSummary:
    """Accumulated outcomes of one run.

    Only the run coordinator writes to a summary; everything else reads it
    once the run is over.
    """

    dry_run: bool = False
    projects_scanned: int = 0
    projects_cancelled: int = 0
    applied: list[UpdateOutcome] = field(default_factory=list)
    skipped_minor: list[UpdateOutcome] = field(default_factory=list)
    skipped_major: list[UpdateOutcome] = field(default_factory=list)
    skipped_other: list[UpdateOutcome] = field(default_factory=list)
    failed: list[UpdateOutcome] = field(default_factory=list)

    def record(self, outcome: UpdateOutcome) -> None:
        buckets = {
            UpdateStatus.APPLIED: self.applied,
            UpdateStatus.SKIPPED_MINOR: self.skipped_minor,
            UpdateStatus.SKIPPED_MAJOR: self.skipped_major,
            UpdateStatus.SKIPPED_OTHER: self.skipped_other,
            UpdateStatus.FAILED: self.failed,
        }
        buckets[outcome.status].append(outcome)

    @property
    def total_applied(self) -> int:
        return len(self.applied)

    @property
    def total_skipped(self) -> int:
        return len(self.skipped_minor) + len(self.skipped_major) + len(self.skipped_other)

    @property
    def total_failed(self) -> int:
        return len(self.failed)

    @property
    def totals(self) -> dict[str, int]:
        return {
            "projects": self.projects_scanned,
            "cancelled": self.projects_cancelled,
            "applied": self.total_applied,
            "skipped": self.total_skipped,
            "skippedMinor": len(self.skipped_minor),
            "skippedMajor": len(self.skipped_major),
            "failed": self.total_failed,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "dryRun": self.dry_run,
            "totals": self.totals,
            "applied": [o.to_dict() for o in self.applied],
            "skippedMinor": [o.to_dict() for o in self.skipped_minor],
            "skippedMajor": [o.to_dict() for o in self.skipped_major],
            "skippedOther": [o.to_dict() for o in self.skipped_other],
            "failed": [o.to_dict() for o in self.failed],
        }

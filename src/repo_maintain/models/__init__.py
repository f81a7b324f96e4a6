"""Data models for project discovery and update decisions."""

from __future__ import annotations

from .candidate import DependencyCandidate, UpdateTier
from .outcome import RunSummary, UpdateOutcome, UpdateStatus
from .project import Ecosystem, ProjectDescriptor

__all__ = [
    "DependencyCandidate",
    "Ecosystem",
    "ProjectDescriptor",
    "RunSummary",
    "UpdateOutcome",
    "UpdateStatus",
    "UpdateTier",
]

"""Dependency candidate model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UpdateTier(str, Enum):
    """Size of the jump between two versions."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DependencyCandidate:
    """A package inside one project that has a newer version available.

    Versions are kept as the raw strings the package manager reported.
    """

    name: str
    current_version: str
    available_version: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Package name must be non-empty")

    @property
    def tier(self) -> UpdateTier:
        from ..semver import classify_update

        return classify_update(self.current_version, self.available_version)

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "current": self.current_version,
            "available": self.available_version,
        }

"""Project descriptor model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Ecosystem(str, Enum):
    """Language/tooling families the scanner understands."""

    NODEJS = "nodejs"
    PYTHON = "python"
    RUST = "rust"
    JAVA = "java"
    GO = "go"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProjectDescriptor:
    """One discoverable project: ecosystem, package manager and root path."""

    ecosystem: Ecosystem
    package_manager: str
    root_path: Path
    manifest: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.ecosystem, Ecosystem):
            object.__setattr__(self, "ecosystem", Ecosystem(self.ecosystem))
        if not self.package_manager:
            raise ValueError("package_manager must be non-empty")
        if not self.root_path.is_absolute():
            raise ValueError(f"root_path must be absolute: {self.root_path}")

    @property
    def key(self) -> tuple[Ecosystem, Path]:
        return (self.ecosystem, self.root_path)

    @property
    def sort_key(self) -> str:
        return f"{self.ecosystem.value}|{self.package_manager}|{self.root_path}"

    def to_dict(self) -> dict[str, str]:
        return {
            "ecosystem": self.ecosystem.value,
            "packageManager": self.package_manager,
            "path": str(self.root_path),
            "manifest": self.manifest,
        }

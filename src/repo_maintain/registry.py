"""Ecosystem registry: manifests, package-manager detection and handlers.

Each ecosystem is registered with the manifest files that mark a project root
(in precedence order) and the function that picks its package manager. Each
``(ecosystem, package manager)`` pair is registered with the handler class
that talks to that tool.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias
from collections.abc import Callable

from .detectors import (
    detect_go_package_manager,
    detect_java_package_manager,
    detect_node_package_manager,
    detect_python_package_manager,
    detect_rust_package_manager,
)
from .handlers import (
    DEFAULT_TIMEOUT,
    BunHandler,
    CargoHandler,
    GoHandler,
    GradleHandler,
    Handler,
    MavenHandler,
    NpmHandler,
    PipenvHandler,
    PipHandler,
    PnpmHandler,
    PoetryHandler,
    UvHandler,
    YarnHandler,
)
from .models import Ecosystem

DetectFunction: TypeAlias = Callable[[Path, str], str]
HandlerFactory: TypeAlias = Callable[..., Handler]


@dataclass(slots=True, frozen=True)
class EcosystemSpec:
    """Binding of an ecosystem to its manifests and package-manager detector.

    ``manifests`` is ordered by precedence: when several are present in one
    directory only the first one found makes a project.
    """

    ecosystem: Ecosystem
    manifests: tuple[str, ...]
    detect: DetectFunction


ECOSYSTEMS: dict[Ecosystem, EcosystemSpec] = {
    Ecosystem.NODEJS: EcosystemSpec(
        ecosystem=Ecosystem.NODEJS,
        manifests=("package.json",),
        detect=detect_node_package_manager,
    ),
    Ecosystem.PYTHON: EcosystemSpec(
        ecosystem=Ecosystem.PYTHON,
        manifests=("pyproject.toml", "requirements.txt"),
        detect=detect_python_package_manager,
    ),
    Ecosystem.RUST: EcosystemSpec(
        ecosystem=Ecosystem.RUST,
        manifests=("Cargo.toml",),
        detect=detect_rust_package_manager,
    ),
    Ecosystem.JAVA: EcosystemSpec(
        ecosystem=Ecosystem.JAVA,
        manifests=("pom.xml", "build.gradle.kts", "build.gradle"),
        detect=detect_java_package_manager,
    ),
    Ecosystem.GO: EcosystemSpec(
        ecosystem=Ecosystem.GO,
        manifests=("go.mod",),
        detect=detect_go_package_manager,
    ),
}

# Add new package managers here by writing a handler and registering it.
HANDLERS: dict[tuple[Ecosystem, str], HandlerFactory] = {
    (Ecosystem.NODEJS, "npm"): NpmHandler,
    (Ecosystem.NODEJS, "yarn"): YarnHandler,
    (Ecosystem.NODEJS, "pnpm"): PnpmHandler,
    (Ecosystem.NODEJS, "bun"): BunHandler,
    (Ecosystem.PYTHON, "pip"): PipHandler,
    (Ecosystem.PYTHON, "poetry"): PoetryHandler,
    (Ecosystem.PYTHON, "uv"): UvHandler,
    (Ecosystem.PYTHON, "pipenv"): PipenvHandler,
    (Ecosystem.RUST, "cargo"): CargoHandler,
    (Ecosystem.JAVA, "maven"): MavenHandler,
    (Ecosystem.JAVA, "gradle"): GradleHandler,
    (Ecosystem.GO, "go"): GoHandler,
}


class UnsupportedHandlerError(ValueError):
    """Raised when no handler is registered for an ecosystem/package manager."""

    reason = "unsupported"


def get_ecosystem(ecosystem: Ecosystem | str) -> EcosystemSpec:
    try:
        return ECOSYSTEMS[Ecosystem(ecosystem)]
    except (KeyError, ValueError):
        raise UnsupportedHandlerError(f"Unknown ecosystem '{ecosystem}'") from None


def detect_package_manager(ecosystem: Ecosystem | str, project_dir: Path, manifest: str) -> str:
    """Return the package manager for a project rooted at ``project_dir``."""
    return get_ecosystem(ecosystem).detect(project_dir, manifest)


def get_handler(
    ecosystem: Ecosystem | str,
    package_manager: str,
    timeout: float = DEFAULT_TIMEOUT,
    dry_run: bool = False,
) -> Handler:
    """Return a handler for the pair, or raise UnsupportedHandlerError."""
    spec = get_ecosystem(ecosystem)
    factory = HANDLERS.get((spec.ecosystem, package_manager))
    if factory is None:
        known = ", ".join(sorted(pm for eco, pm in HANDLERS if eco is spec.ecosystem))
        raise UnsupportedHandlerError(
            f"Unknown package manager '{package_manager}' for {spec.ecosystem.value}. "
            f"Known: {known}"
        )
    return factory(timeout=timeout, dry_run=dry_run)


def get_known_handlers() -> list[str]:
    """Return sorted ``ecosystem/package-manager`` identifiers."""
    return sorted(f"{eco.value}/{pm}" for eco, pm in HANDLERS)

"""Project discovery across a (possibly monorepo) directory tree."""

from __future__ import annotations

import os
from pathlib import Path
from collections.abc import Iterable

import structlog

from .models import Ecosystem, ProjectDescriptor
from .registry import ECOSYSTEMS, EcosystemSpec

log = structlog.get_logger("repo_maintain.discovery")

EXCLUDES = frozenset(
    {
        "node_modules",
        "vendor",
        ".git",
        "target",
        "build",
        "dist",
        "venv",
        ".venv",
        "__pycache__",
        ".tox",
        ".nox",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".eggs",
    }
)
EXCLUDE_SUFFIXES = (".egg-info",)


def should_skip(name: str, extra: frozenset[str] = frozenset()) -> bool:
    """Return True for directory names that are never descended into."""
    return name in EXCLUDES or name in extra or name.endswith(EXCLUDE_SUFFIXES)


def _select_manifest(spec: EcosystemSpec, filenames: set[str]) -> str | None:
    for manifest in spec.manifests:
        if manifest in filenames:
            return manifest
    return None


def discover_projects(
    root: Path,
    extra_skip_dirs: Iterable[str] = (),
    ecosystems: Iterable[Ecosystem] | None = None,
) -> list[ProjectDescriptor]:
    """Find every project under ``root``.

    One walk, pruning excluded directories before they are entered. Per
    directory and per ecosystem the highest-precedence manifest present makes
    the project (``pyproject.toml`` over ``requirements.txt``, ``pom.xml``
    over Gradle, ``build.gradle.kts`` over ``build.gradle``). Different
    ecosystems in one directory each get their own descriptor.

    Unreadable subdirectories are logged and skipped. The result is sorted by
    ``ecosystem|package-manager|path``.
    """
    root = root.resolve()
    extra = frozenset(extra_skip_dirs)
    if ecosystems is None:
        selected = list(ECOSYSTEMS.values())
    else:
        selected = [ECOSYSTEMS[Ecosystem(e)] for e in ecosystems]

    def on_error(exc: OSError) -> None:
        log.warning("discovery.unreadable", path=exc.filename, error=exc.strerror)

    seen: set[tuple[Ecosystem, Path]] = set()
    found: list[ProjectDescriptor] = []

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames[:] = [d for d in dirnames if not should_skip(d, extra)]
        names = set(filenames)
        project_dir = Path(dirpath)

        for spec in selected:
            manifest = _select_manifest(spec, names)
            if manifest is None:
                continue
            key = (spec.ecosystem, project_dir)
            if key in seen:
                continue
            seen.add(key)

            descriptor = ProjectDescriptor(
                ecosystem=spec.ecosystem,
                package_manager=spec.detect(project_dir, manifest),
                root_path=project_dir,
                manifest=manifest,
            )
            log.debug(
                "discovery.project",
                ecosystem=descriptor.ecosystem.value,
                package_manager=descriptor.package_manager,
                path=str(project_dir),
                manifest=manifest,
            )
            found.append(descriptor)

    return sorted(found, key=lambda d: d.sort_key)

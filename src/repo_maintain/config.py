"""Run configuration loader.

Settings are read from a JSON file and validated against ``SETTINGS_SCHEMA``.
Resolution order:

1. Explicit path argument (``--config``)
2. ``REPO_MAINTAIN_CONFIG`` environment variable
3. ``.repo-maintain.json`` in the target directory
4. Built-in defaults

An explicitly requested file that does not exist is an error; a missing
``.repo-maintain.json`` just means defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .handlers import DEFAULT_TIMEOUT
from .models import Ecosystem

CONFIG_FILENAME = ".repo-maintain.json"
CONFIG_PATH_ENV_VAR = "REPO_MAINTAIN_CONFIG"

SETTINGS_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "include_minor": {"type": "boolean"},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "skip_dirs": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "uniqueItems": True,
        },
        "required_tools": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "uniqueItems": True,
        },
        "disabled_ecosystems": {
            "type": "array",
            "items": {"enum": [e.value for e in Ecosystem]},
            "uniqueItems": True,
        },
    },
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be loaded or is invalid."""


@dataclass(slots=True, frozen=True)
class Settings:
    include_minor: bool = False
    timeout: float = DEFAULT_TIMEOUT
    skip_dirs: tuple[str, ...] = ()
    required_tools: tuple[str, ...] = ()
    disabled_ecosystems: tuple[Ecosystem, ...] = ()
    source: Path | None = None

    @property
    def enabled_ecosystems(self) -> list[Ecosystem]:
        return [e for e in Ecosystem if e not in self.disabled_ecosystems]

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> Settings:
        return cls(
            include_minor=data.get("include_minor", False),
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            skip_dirs=tuple(data.get("skip_dirs", ())),
            required_tools=tuple(data.get("required_tools", ())),
            disabled_ecosystems=tuple(Ecosystem(e) for e in data.get("disabled_ecosystems", ())),
            source=source,
        )

    def with_overrides(
        self, *, include_minor: bool | None = None, timeout: float | None = None
    ) -> Settings:
        """Apply command-line overrides; ``None`` keeps the file value."""
        changes: dict[str, Any] = {}
        if include_minor is not None:
            changes["include_minor"] = include_minor
        if timeout is not None:
            changes["timeout"] = timeout
        return replace(self, **changes) if changes else self


def _format_errors(errors) -> str:
    messages = []
    for error in errors:
        pointer = "/".join(str(p) for p in error.path)
        messages.append(f"- {pointer or '<root>'}: {error.message}")
    return "\n".join(messages)


def validate_settings(data: Any) -> None:
    validator = Draft202012Validator(SETTINGS_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        raise ConfigError("Invalid configuration:\n" + _format_errors(errors))


def _resolve_config_path(path: Path | str | None, target: Path | None) -> tuple[Path | None, bool]:
    """Return ``(path, required)``; ``required`` is False for the implicit file."""
    if path is not None:
        return Path(path), True

    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path), True

    if target is not None:
        return target / CONFIG_FILENAME, False

    return None, False


def load_settings(path: Path | str | None = None, target: Path | None = None) -> Settings:
    """Load and validate settings.

    Raises:
        ConfigError: If the file cannot be read or contains invalid data.
    """
    config_path, required = _resolve_config_path(path, target)
    if config_path is None or (not required and not config_path.is_file()):
        return Settings()

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration file: {exc}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration file: {exc}") from exc

    validate_settings(data)
    return Settings.from_dict(data, source=config_path)

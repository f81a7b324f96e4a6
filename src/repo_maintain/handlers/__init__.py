"""Package-manager handlers, one per (ecosystem, package manager)."""

from .base import (
    DEFAULT_TIMEOUT,
    CommandHandler,
    Handler,
    HandlerError,
    ToolError,
    ToolResult,
    ToolTimeout,
    ToolUnavailable,
    read_project_file,
    run_tool,
    write_project_file,
)
from .go import GoHandler
from .java import GradleHandler, MavenHandler
from .nodejs import BunHandler, NpmHandler, PnpmHandler, YarnHandler
from .python import PipenvHandler, PipHandler, PoetryHandler, UvHandler
from .rust import CargoHandler

__all__ = [
    # Contract and errors
    "DEFAULT_TIMEOUT",
    "CommandHandler",
    "Handler",
    "HandlerError",
    "ToolError",
    "ToolResult",
    "ToolTimeout",
    "ToolUnavailable",
    "read_project_file",
    "run_tool",
    "write_project_file",
    # Node.js
    "BunHandler",
    "NpmHandler",
    "PnpmHandler",
    "YarnHandler",
    # Python
    "PipHandler",
    "PipenvHandler",
    "PoetryHandler",
    "UvHandler",
    # Rust, Java, Go
    "CargoHandler",
    "GoHandler",
    "GradleHandler",
    "MavenHandler",
]

"""repo-maintain core package.

Discovers every project in a directory tree, asks each project's package
manager for outdated dependencies, and applies the patch-level bumps.
"""

__all__ = [
    "core",
    "discovery",
    "policy",
    "semver",
]

"""Lossy semver parsing and update classification.

Version strings come straight from package managers and are often not strict
semver (``v1.2``, ``2.0.0rc1``, ``1.2.3-beta+build``). Parsing never fails:

- a leading ``v`` is dropped
- everything from the first ``-`` or ``+`` is dropped
- the rest is split on ``.``; only the first three components count
- non-digit characters are stripped from each component; a missing or
  entirely non-numeric component is ``0``
"""

from __future__ import annotations

import re

from .models.candidate import UpdateTier

_NON_DIGIT = re.compile(r"\D")
_SUFFIX_MARKERS = re.compile(r"[-+]")


def _component(raw: str) -> int:
    digits = _NON_DIGIT.sub("", raw)
    return int(digits) if digits else 0


def parse_version(version: str | None) -> tuple[int, int, int]:
    """Return ``(major, minor, patch)`` for any input, however malformed."""
    text = (version or "").strip()
    if text.startswith("v"):
        text = text[1:]
    text = _SUFFIX_MARKERS.split(text, 1)[0]

    parts = text.split(".")
    parts += [""] * (3 - len(parts))
    major, minor, patch = (_component(p) for p in parts[:3])
    return major, minor, patch


def classify_update(current: str | None, available: str | None) -> UpdateTier:
    """Classify the jump from ``current`` to ``available``.

    A lower ``available`` patch is reported as ``NONE``; downgrades are not
    flagged separately.
    """
    cur_major, cur_minor, cur_patch = parse_version(current)
    new_major, new_minor, new_patch = parse_version(available)

    if cur_major != new_major:
        return UpdateTier.MAJOR
    if cur_minor != new_minor:
        return UpdateTier.MINOR
    if new_patch > cur_patch:
        return UpdateTier.PATCH
    return UpdateTier.NONE

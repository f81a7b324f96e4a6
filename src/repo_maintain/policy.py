"""Update policy: which discovered bumps are applied automatically."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from .models import DependencyCandidate, UpdateStatus, UpdateTier
from .semver import classify_update

log = structlog.get_logger("repo_maintain.policy")


class UpdateAction(str, Enum):
    APPLY = "apply"
    SKIP_MINOR = "skip-minor"
    SKIP_MAJOR = "skip-major"
    SKIP_NONE = "skip-none"

    def __str__(self) -> str:
        return self.value


_SKIP_STATUS = {
    UpdateAction.SKIP_MINOR: UpdateStatus.SKIPPED_MINOR,
    UpdateAction.SKIP_MAJOR: UpdateStatus.SKIPPED_MAJOR,
    UpdateAction.SKIP_NONE: UpdateStatus.SKIPPED_OTHER,
}


def is_patch_update(current: str, available: str) -> bool:
    """Return True iff the jump from ``current`` to ``available`` is a patch bump."""
    tier = classify_update(current, available)
    log.debug("policy.compare", current=current, available=available, tier=tier.value)
    return tier is UpdateTier.PATCH


def skip_status(action: UpdateAction) -> UpdateStatus:
    """Map a non-apply action to the summary bucket it belongs in."""
    try:
        return _SKIP_STATUS[action]
    except KeyError:
        raise ValueError(f"{action} is not a skip action") from None


@dataclass(frozen=True)
class UpdatePolicy:
    """Patch-only unless ``include_minor`` is set; majors are never applied."""

    include_minor: bool = False

    def evaluate(self, candidate: DependencyCandidate) -> UpdateAction:
        if is_patch_update(candidate.current_version, candidate.available_version):
            return UpdateAction.APPLY

        tier = candidate.tier
        if tier is UpdateTier.MINOR:
            return UpdateAction.APPLY if self.include_minor else UpdateAction.SKIP_MINOR
        if tier is UpdateTier.MAJOR:
            return UpdateAction.SKIP_MAJOR
        return UpdateAction.SKIP_NONE

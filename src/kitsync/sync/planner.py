"""Partition a kit's tracked files into auto-update, review and skip sets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from kitsync.exceptions import ChecksumError, PathSecurityError
from kitsync.manifest.models import FileOwnership, TrackedFile
from kitsync.manifest.reader import read_kit_manifest
from kitsync.ownership import calculate_checksum, classify_ownership, detect_ownership_changes
from kitsync.security.paths import validate_sync_path

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    """Disposition of every tracked file of a kit.

    Each file appears in exactly one list:
    - auto_update: written from upstream without asking
    - needs_review: edited locally; requires hunk review before any write
    - skipped: user-owned, unsafe path, or absent upstream
    """

    auto_update: list[TrackedFile] = field(default_factory=list)
    needs_review: list[TrackedFile] = field(default_factory=list)
    skipped: list[TrackedFile] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.auto_update) + len(self.needs_review) + len(self.skipped)


def create_sync_plan(tracked_files: list[TrackedFile], local_root: Path, upstream_root: Path) -> SyncPlan:
    """Decide, per tracked file, how a sync from *upstream_root* treats it.

    Rules, applied in order:
    1. ``user`` ownership: skipped, no checksum computed
    2. Path fails validation against either root: skipped
    3. Absent upstream: skipped
    4. Absent locally: auto-update (a creation, not an overwrite)
    5. ``ck``: auto-update
    6. ``ck-modified``: hash the local copy and compare with its baseline;
       unchanged goes to auto-update, changed to needs-review

    Every skip is logged as a warning with its reason.
    """
    plan = SyncPlan()

    for tracked in tracked_files:
        if tracked.ownership is FileOwnership.USER:
            logger.warning(f"Skipping {tracked.path}: user-owned")
            plan.skipped.append(tracked)
            continue

        try:
            upstream_path = validate_sync_path(upstream_root, tracked.path)
        except PathSecurityError as e:
            logger.warning(f"Skipping invalid path: {tracked.path} ({e})")
            plan.skipped.append(tracked)
            continue

        if not upstream_path.exists():
            logger.warning(f"Skipping {tracked.path}: not present upstream")
            plan.skipped.append(tracked)
            continue

        try:
            local_path = validate_sync_path(local_root, tracked.path)
        except PathSecurityError as e:
            logger.warning(f"Skipping invalid local path: {tracked.path} ({e})")
            plan.skipped.append(tracked)
            continue

        if not local_path.exists():
            plan.auto_update.append(tracked)
            continue

        if tracked.ownership is FileOwnership.CK:
            plan.auto_update.append(tracked)
            continue

        try:
            current = calculate_checksum(local_path)
        except ChecksumError as e:
            logger.warning(f"Skipping {tracked.path}: {e}")
            plan.skipped.append(tracked)
            continue

        if classify_ownership(current, tracked.checksum, tracked.base_checksum) is FileOwnership.CK:
            plan.auto_update.append(tracked)
        else:
            plan.needs_review.append(tracked)

    return plan


def plan_kit_sync(local_root: Path, kit: str, upstream_root: Path) -> SyncPlan:
    """Plan a sync of one installed kit.

    Reads the kit's tracked files, marks ``ck`` files edited since the last
    sync as ``ck-modified``, then builds the plan. Returns an empty plan when
    the kit is not installed.
    """
    kit_meta = read_kit_manifest(local_root, kit)
    if kit_meta is None or not kit_meta.files:
        logger.warning(f'No tracked files for kit "{kit}" in {local_root}')
        return SyncPlan()

    tracked = detect_ownership_changes(local_root, kit_meta.files)
    return create_sync_plan(tracked, local_root, upstream_root)


__all__ = ["SyncPlan", "create_sync_plan", "plan_kit_sync"]

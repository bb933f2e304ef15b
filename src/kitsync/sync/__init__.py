"""Ownership-aware sync: planning, diffing and applying upstream changes."""

from kitsync.sync.content import LoadedContent, is_binary_file, load_file_content
from kitsync.sync.diff import FileHunk, apply_hunks, build_unified_diff, generate_hunks
from kitsync.sync.planner import SyncPlan, create_sync_plan, plan_kit_sync

__all__ = [
    "FileHunk",
    "generate_hunks",
    "build_unified_diff",
    "apply_hunks",
    "LoadedContent",
    "is_binary_file",
    "load_file_content",
    "SyncPlan",
    "create_sync_plan",
    "plan_kit_sync",
]

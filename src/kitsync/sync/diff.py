"""Line-based hunk generation and selective hunk application.

Content is split on ``"\\n"`` only, so a trailing newline shows up as a
final empty line and ``"\\n".join`` restores the exact input. Hunk
coordinates follow the unified diff convention: 1-based starts, and for a
hunk that removes no lines ``old_start`` is the line *after which* the
insertion happens.
"""

from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass, field

from kitsync.exceptions import DiffApplyError

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class FileHunk:
    """A contiguous block of changes with surrounding context.

    ``lines`` holds the hunk body, each entry prefixed with ``' '``
    (context), ``'-'`` (removed) or ``'+'`` (added).
    """

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[str] = field(default_factory=list)

    def old_text(self) -> list[str]:
        return [line[1:] for line in self.lines if line[:1] in (" ", "-")]

    def new_text(self) -> list[str]:
        return [line[1:] for line in self.lines if line[:1] in (" ", "+")]


def _start(line_start: int, count: int) -> int:
    return line_start + 1 if count else line_start


def _hunk_start_index(start: int, count: int) -> int:
    """0-based index of the first line a hunk touches."""
    return start - 1 if count else start


def generate_hunks(
    current: str,
    new: str,
    label: str = "",
    context_lines: int = 3,
) -> list[FileHunk]:
    """Diff *current* against *new* and return the hunks.

    Args:
        current: Local file content
        new: Upstream file content
        label: File name, used in log messages only
        context_lines: Unchanged lines kept around each change

    Returns:
        Hunks in file order; empty when the contents are identical
    """
    old_seq = current.split("\n")
    new_seq = new.split("\n")
    matcher = difflib.SequenceMatcher(None, old_seq, new_seq, autojunk=False)

    hunks: list[FileHunk] = []
    for group in matcher.get_grouped_opcodes(context_lines):
        if all(tag == "equal" for tag, *_ in group):
            continue

        body: list[str] = []
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                body.extend(" " + line for line in old_seq[i1:i2])
                continue
            if tag in ("replace", "delete"):
                body.extend("-" + line for line in old_seq[i1:i2])
            if tag in ("replace", "insert"):
                body.extend("+" + line for line in new_seq[j1:j2])

        first, last = group[0], group[-1]
        old_count = last[2] - first[1]
        new_count = last[4] - first[3]
        hunks.append(
            FileHunk(
                old_start=_start(first[1], old_count),
                old_lines=old_count,
                new_start=_start(first[3], new_count),
                new_lines=new_count,
                lines=body,
            )
        )

    logger.debug(f"Generated {len(hunks)} hunk(s) for {label or '<content>'}")
    return hunks


def build_unified_diff(hunks: list[FileHunk], label: str = "") -> str:
    """Render hunks as a minimal unified diff."""
    name = label or "file"
    out = [f"--- a/{name}", f"+++ b/{name}"]
    for hunk in hunks:
        out.append(f"@@ -{hunk.old_start},{hunk.old_lines} +{hunk.new_start},{hunk.new_lines} @@")
        out.extend(hunk.lines)
    return "\n".join(out) + "\n"


def parse_unified_diff(diff: str) -> list[FileHunk]:
    """Parse hunks back out of a unified diff.

    Raises:
        ValueError: If a hunk body does not match its header line counts
    """
    rows = diff.split("\n")
    if rows and rows[-1] == "":
        rows.pop()

    hunks: list[FileHunk] = []
    index = 0
    while index < len(rows):
        match = HUNK_HEADER.match(rows[index])
        index += 1
        if not match:
            continue

        old_start, old_count, new_start, new_count = (
            int(match.group(1)),
            int(match.group(2) or 1),
            int(match.group(3)),
            int(match.group(4) or 1),
        )
        body: list[str] = []
        seen_old = seen_new = 0
        while seen_old < old_count or seen_new < new_count:
            if index >= len(rows):
                raise ValueError(f"Truncated hunk at -{old_start},{old_count}")
            row = rows[index]
            prefix = row[:1]
            if prefix == " ":
                seen_old += 1
                seen_new += 1
            elif prefix == "-":
                seen_old += 1
            elif prefix == "+":
                seen_new += 1
            else:
                raise ValueError(f"Malformed hunk line: {row!r}")
            body.append(row)
            index += 1

        if seen_old != old_count or seen_new != new_count:
            raise ValueError(f"Hunk body does not match header -{old_start},{old_count}")
        hunks.append(FileHunk(old_start, old_count, new_start, new_count, body))

    return hunks


def _find_position(lines: list[str], expected: list[str], preferred: int, floor: int) -> int | None:
    """Locate *expected* in *lines*, searching outward from *preferred*."""
    size = len(expected)
    limit = len(lines) - size
    if limit < floor:
        return None

    preferred = min(max(preferred, floor), limit)
    for distance in range(0, max(preferred - floor, limit - preferred) + 1):
        for candidate in (preferred - distance, preferred + distance):
            if floor <= candidate <= limit and lines[candidate:candidate + size] == expected:
                return candidate
    return None


def _apply_patch(content: str, diff: str) -> str | None:
    """Apply a unified diff, verifying context; None if any hunk does not fit."""
    try:
        hunks = parse_unified_diff(diff)
    except ValueError as e:
        logger.debug(f"Rejected patch: {e}")
        return None

    result = content.split("\n")
    offset = 0
    floor = 0
    for hunk in sorted(hunks, key=lambda h: h.old_start):
        expected = hunk.old_text()
        replacement = hunk.new_text()
        preferred = _hunk_start_index(hunk.old_start, hunk.old_lines) + offset
        position = _find_position(result, expected, preferred, floor)
        if position is None:
            return None
        result[position:position + len(expected)] = replacement
        offset = position - _hunk_start_index(hunk.old_start, hunk.old_lines) + len(replacement) - len(expected)
        floor = position + len(replacement)

    return "\n".join(result)


def _apply_manually(content: str, hunks: list[FileHunk], label: str) -> tuple[str, int]:
    """Splice hunks bottom-up without checking context.

    Returns the new content and how many hunks were skipped.
    """
    lines = content.split("\n")
    skipped = 0

    for hunk in sorted(hunks, key=lambda h: h.old_start, reverse=True):
        start = _hunk_start_index(hunk.old_start, hunk.old_lines)
        if start < 0 or start > len(lines):
            logger.warning(
                f"Hunk start {hunk.old_start} out of bounds in {label} (file has {len(lines)} lines)"
            )
            skipped += 1
            continue

        delete_count = 0
        replacement: list[str] = []
        for line in hunk.lines:
            if not line:
                continue
            prefix, text = line[0], line[1:]
            if prefix == " ":
                delete_count += 1
                replacement.append(text)
            elif prefix == "-":
                delete_count += 1
            elif prefix == "+":
                replacement.append(text)

        if start + delete_count > len(lines):
            logger.warning(
                f"Hunk would delete past end of {label} "
                f"(start: {start}, delete: {delete_count}, lines: {len(lines)})"
            )
            skipped += 1
            continue

        lines[start:start + delete_count] = replacement

    return "\n".join(lines), skipped


def apply_hunks(content: str, hunks: list[FileHunk], accepted: list[bool], label: str = "") -> str:
    """Apply the accepted subset of *hunks* to *content*.

    The accepted hunks are rendered as a unified diff and applied with
    context verification. If that fails (context drifted), hunks are spliced
    manually from the bottom of the file up; hunks that do not fit are
    logged and skipped.

    Raises:
        DiffApplyError: If no accepted hunk could be applied
    """
    selected = [hunk for index, hunk in enumerate(hunks) if index < len(accepted) and accepted[index]]
    if not selected:
        return content

    name = label or "<content>"
    patched = _apply_patch(content, build_unified_diff(selected, label))
    if patched is not None:
        return patched

    logger.debug(f"Patch did not apply cleanly to {name}, splicing hunks manually")
    merged, skipped = _apply_manually(content, selected, name)
    if skipped == len(selected):
        raise DiffApplyError(skipped, len(selected), label or None)
    if skipped:
        logger.warning(f"Applied {len(selected) - skipped} of {len(selected)} hunk(s) to {name}; {skipped} skipped")
    return merged


__all__ = [
    "FileHunk",
    "generate_hunks",
    "build_unified_diff",
    "parse_unified_diff",
    "apply_hunks",
]

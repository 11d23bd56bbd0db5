"""Line-oriented patch derivation and context-tolerant patch application.

A skill ships the full post-image of every file it modifies. The patch is
derived here as the difference between the base and that post-image, then
applied to whatever the file currently looks like after earlier skills.

Hunks are located by their unchanged context lines, which may have shifted.
Like ``patch(1)``, up to ``MAX_FUZZ`` outer context lines may be ignored, and
a hunk that sits at the start or end of the base with short context must sit
at the start or end of the current content when applied without fuzz. A hunk
that cannot be located is a conflict.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field

from .constants import DEFAULT_CONTEXT_LINES
from .types import MergeResult

MAX_FUZZ = 2

MARKER_CURRENT = "<<<<<<< current"
MARKER_BASE = "||||||| base"
MARKER_SEP = "======="
MARKER_END = ">>>>>>>"


def split_lines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


@dataclass(frozen=True)
class Hunk:
    """One contiguous change between base and post-image, with context."""

    base_start: int
    old_lines: tuple[str, ...]
    new_lines: tuple[str, ...]
    leading: int
    trailing: int
    anchored_start: bool
    anchored_end: bool

    def trimmed(self, fuzz: int, context: int) -> tuple[int, tuple[str, ...], tuple[str, ...]]:
        """Drop up to ``fuzz`` context lines from each full-context side.

        Returns (lines trimmed from the front, old lines, new lines). At least
        one context line is always kept.
        """
        lead = min(fuzz, self.leading - 1) if self.leading >= context else 0
        trail = min(fuzz, self.trailing - 1) if self.trailing >= context else 0
        lead, trail = max(lead, 0), max(trail, 0)
        old_end = len(self.old_lines) - trail
        new_end = len(self.new_lines) - trail
        return lead, self.old_lines[lead:old_end], self.new_lines[lead:new_end]


@dataclass(frozen=True)
class Patch:
    hunks: tuple[Hunk, ...]
    context: int = DEFAULT_CONTEXT_LINES

    @property
    def is_empty(self) -> bool:
        return not self.hunks


@dataclass
class _Conflict:
    """A hunk that could not be placed, occupying the region it expected."""

    ours: list[str]
    hunk: Hunk
    label: str


@dataclass
class PatchOutcome:
    content: str
    failed_hunks: list[Hunk] = field(default_factory=list)
    conflicted: str | None = None

    @property
    def clean(self) -> bool:
        return not self.failed_hunks


def derive_patch(base: str, post_image: str, context: int = DEFAULT_CONTEXT_LINES) -> Patch:
    """Derive the line-oriented patch that turns base into post_image."""
    if base == post_image:
        return Patch(hunks=(), context=context)

    a = split_lines(base)
    b = split_lines(post_image)
    matcher = difflib.SequenceMatcher(a=a, b=b, autojunk=False)

    hunks: list[Hunk] = []
    for group in matcher.get_grouped_opcodes(context):
        first, last = group[0], group[-1]
        i1, i2 = first[1], last[2]
        j1, j2 = first[3], last[4]
        leading = first[2] - first[1] if first[0] == "equal" else 0
        trailing = last[2] - last[1] if last[0] == "equal" else 0
        hunks.append(
            Hunk(
                base_start=i1,
                old_lines=tuple(a[i1:i2]),
                new_lines=tuple(b[j1:j2]),
                leading=leading,
                trailing=trailing,
                anchored_start=i1 == 0 and leading < context,
                anchored_end=i2 == len(a) and trailing < context,
            )
        )

    return Patch(hunks=tuple(hunks), context=context)


def _candidate_positions(expected: int, lo: int, hi: int) -> list[int]:
    """Positions in [lo, hi], nearest to expected first, later before earlier."""
    if lo > hi:
        return []
    expected = min(max(expected, lo), hi)
    positions = [expected]
    for delta in range(1, max(expected - lo, hi - expected) + 1):
        if expected + delta <= hi:
            positions.append(expected + delta)
        if expected - delta >= lo:
            positions.append(expected - delta)
    return positions


def _locate(
    hunk: Hunk,
    lines: list[str | _Conflict],
    expected: int,
    min_pos: int,
    context: int,
) -> tuple[int, int, tuple[str, ...], tuple[str, ...]] | None:
    """Find where a hunk applies. Returns (position, front trim, old, new)."""
    for fuzz in range(MAX_FUZZ + 1):
        lead, old, new = hunk.trimmed(fuzz, context)
        size = len(old)
        # Without any old lines a hunk has nothing to match on, so it must stay anchored
        anchored = fuzz == 0 or size == 0
        lo, hi = min_pos, len(lines) - size

        if anchored and hunk.anchored_start:
            candidates = [0] if lo == 0 else []
        else:
            candidates = _candidate_positions(expected + lead, lo, hi)
        if anchored and hunk.anchored_end:
            candidates = [pos for pos in candidates if pos == hi]

        for pos in candidates:
            if tuple(lines[pos : pos + size]) == old:
                return pos, lead, old, new

    return None


def _ensure_newline(lines: list[str]) -> list[str]:
    if lines and not lines[-1].endswith("\n"):
        return [*lines[:-1], lines[-1] + "\n"]
    return lines


def _render(lines: list[str | _Conflict]) -> str:
    out: list[str] = []
    for item in lines:
        if isinstance(item, str):
            out.append(item)
            continue
        out.append(MARKER_CURRENT + "\n")
        out.extend(_ensure_newline(item.ours))
        out.append(MARKER_BASE + "\n")
        out.extend(_ensure_newline(list(item.hunk.old_lines)))
        out.append(MARKER_SEP + "\n")
        out.extend(_ensure_newline(list(item.hunk.new_lines)))
        out.append(f"{MARKER_END} {item.label}\n")
    return "".join(out)


def _flatten(lines: list[str | _Conflict]) -> str:
    out: list[str] = []
    for item in lines:
        out.extend([item] if isinstance(item, str) else item.ours)
    return "".join(out)


def apply_patch(patch: Patch, current: str, label: str = "skill") -> PatchOutcome:
    """Apply a derived patch to the current content of a file.

    Hunks are applied in order and never overlap each other. When some hunks
    fail, ``content`` holds the current text with only the successful hunks
    applied and ``conflicted`` holds the current text with a conflict block
    (labelled ``label``) where each failed hunk expected to go.
    """
    if patch.is_empty:
        return PatchOutcome(content=current)

    lines: list[str | _Conflict] = list(split_lines(current))
    offset = 0
    min_pos = 0
    failed: list[Hunk] = []

    for hunk in patch.hunks:
        expected = hunk.base_start + offset
        found = _locate(hunk, lines, expected, min_pos, patch.context)

        if found is None:
            failed.append(hunk)
            pos = min(max(expected, min_pos), len(lines))
            end = pos
            while end < len(lines) and end - pos < len(hunk.old_lines) and isinstance(lines[end], str):
                end += 1
            ours = [line for line in lines[pos:end] if isinstance(line, str)]
            lines[pos:end] = [_Conflict(ours=ours, hunk=hunk, label=label)]
            offset = pos + 1 - (hunk.base_start + len(hunk.old_lines))
            min_pos = pos + 1
            continue

        pos, lead, old, new = found
        lines[pos : pos + len(old)] = list(new)
        offset = pos + len(new) - (hunk.base_start + lead + len(old))
        min_pos = pos + len(new)

    if not failed:
        return PatchOutcome(content=_flatten(lines))
    return PatchOutcome(content=_flatten(lines), failed_hunks=failed, conflicted=_render(lines))


def merge_file(
    base: str,
    post_image: str,
    current: str,
    label: str = "skill",
    context: int = DEFAULT_CONTEXT_LINES,
) -> MergeResult:
    """Merge one skill's change to a file into the file's current content.

    The change is the difference between ``base`` and ``post_image``. On a
    conflict ``content`` is the unchanged current content and ``preimage``
    carries the conflicted rendering used as the resolution cache key.
    """
    if base == post_image or current == post_image:
        return MergeResult(clean=True, content=current)
    if current == base:
        return MergeResult(clean=True, content=post_image)

    outcome = apply_patch(derive_patch(base, post_image, context), current, label)
    if outcome.clean:
        return MergeResult(clean=True, content=outcome.content)
    return MergeResult(
        clean=False,
        content=current,
        preimage=outcome.conflicted,
        conflicts=len(outcome.failed_hunks),
    )

"""Coverage profile merging.

A profile is a ``mode: <mode>`` header followed by one line per coverage
block. Profiles sharing a mode merge by keeping a single header and
concatenating the bodies in run order.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from .constants import PROFILE_HEADER_PREFIX
from .errors import ProfileMergeError
from .models import ProfileSummary

logger = logging.getLogger(__name__)

MISSING_MODE_MESSAGE = (
    "error parsing coverage profile: missing coverage mode from coverage profile. "
    "Maybe the file got corrupted while writing?"
)


def profile_header(mode: str) -> str:
    return f"{PROFILE_HEADER_PREFIX}{mode}"


def profile_body(profile: str, mode: str) -> str:
    """Return everything after the ``mode: <mode>`` header, trimmed."""
    header = profile_header(mode)
    loc = profile.find(header)
    if loc == -1:
        raise ProfileMergeError(MISSING_MODE_MESSAGE)
    return profile[loc + len(header):].strip()


def read_profile_mode(profile: str) -> str:
    """Return the mode named on the first non-blank line of ``profile``."""
    for line in profile.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(PROFILE_HEADER_PREFIX):
            mode = stripped[len(PROFILE_HEADER_PREFIX):].strip()
            if mode:
                return mode
        break
    raise ProfileMergeError(MISSING_MODE_MESSAGE)


def merge_profile_texts(profiles: Sequence[str], mode: str) -> str:
    """Merge in-memory profiles that were all recorded with ``mode``."""
    bodies = [profile_body(profile, mode) for profile in profiles]
    return "\n".join([profile_header(mode), *bodies])


def merge_profiles(paths: Sequence[str | Path], mode: str) -> str:
    """Read every profile in ``paths`` and merge them in order."""
    profiles: List[str] = []
    for path in paths:
        try:
            profiles.append(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ProfileMergeError(f"error reading temp coverage profiles: {exc}") from exc
    return merge_profile_texts(profiles, mode)


def write_merged_profile(paths: Sequence[str | Path], mode: str, out_path: str | Path) -> str:
    """Merge ``paths`` into ``out_path`` and return the merged text."""
    merged = merge_profiles(paths, mode)
    try:
        Path(out_path).write_text(merged, encoding="utf-8")
    except OSError as exc:
        raise ProfileMergeError(f"error writing merged coverage profile: {exc}") from exc
    logger.info("Merged %d coverage profile(s) into %s", len(paths), out_path)
    return merged


def summarize_profile(profile: str) -> ProfileSummary:
    """Count statements and covered statements in a profile.

    Block lines end in ``<numStmt> <count>``; a block is covered when its
    count is non-zero. Blocks repeated across merged runs are counted once,
    covered if any run hit them.
    """
    mode = read_profile_mode(profile)
    blocks: dict = {}
    for line in profile_body(profile, mode).splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.rsplit(" ", 2)
        if len(parts) != 3:
            raise ProfileMergeError(f"malformed coverage profile line: {line!r}")
        block, raw_stmts, raw_count = parts
        try:
            stmts, count = int(raw_stmts), int(raw_count)
        except ValueError as exc:
            raise ProfileMergeError(f"malformed coverage profile line: {line!r}") from exc
        seen_stmts, seen_hit = blocks.get(block, (stmts, False))
        blocks[block] = (seen_stmts, seen_hit or count > 0)

    statements = sum(stmts for stmts, _ in blocks.values())
    covered = sum(stmts for stmts, hit in blocks.values() if hit)
    return ProfileSummary(mode=mode, statements=statements, covered=covered)

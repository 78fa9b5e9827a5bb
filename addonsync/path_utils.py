from __future__ import annotations

import re

CANONICAL_SEPARATOR = "\\"
SEPARATOR_PATTERN = re.compile(r"[\\/]+")
DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def normalize_path(raw: str) -> str:
    """Collapse every ``/`` or ``\\`` run into the canonical separator."""

    return SEPARATOR_PATTERN.sub(lambda _: CANONICAL_SEPARATOR, raw)


def split_segments(raw: str) -> list[str]:
    return [segment for segment in SEPARATOR_PATTERN.split(raw) if segment]


def top_level_segment(raw: str) -> str:
    segments = split_segments(raw)
    return segments[0] if segments else ""


def is_unsafe_member(raw: str) -> bool:
    if not raw or raw[0] in "/\\" or DRIVE_PATTERN.match(raw):
        return True
    return any(segment == ".." for segment in split_segments(raw))


def sort_key(path: str) -> tuple[str, str]:
    # ordinal, case-insensitive; exact path breaks ties
    return path.lower(), path

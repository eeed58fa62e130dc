"""
Filename and folder parsing for versioned VFX artifacts.

``shot010_comp_v003.nk`` in ``shots/SHOT_010/comp`` becomes the record
``("shot010_comp", "003", "SHOT_010")``. Versions keep their zero padding;
use :func:`version_sort_key` when ordering them.
"""

import re
from typing import NamedTuple, Optional, Tuple

DEFAULT_VERSION = "1"

VERSION_RE = re.compile(r"v(\d+)$")

SEPARATORS = "_-. "

SHOT_SEGMENT_NAMES = ("shot", "shots")

# Shot codes like BALA_0010 or SQ010_120 anywhere in a path
SHOT_CODE_RE = re.compile(r"([A-Z]{2,}[A-Z0-9]*_\d{3,4})")


class ParsedName(NamedTuple):
    filename: str
    version: str
    shot_name: Optional[str]


def extract_version(stem: str) -> Tuple[str, str]:
    """
    Split a trailing ``v<digits>`` token off a filename stem.

    Returns ``(normalized_stem, version)``. Without a token the stem is
    returned untouched with version ``"1"``. One trailing separator left
    behind by the token is dropped.
    """
    match = VERSION_RE.search(stem)
    if match is None:
        return stem, DEFAULT_VERSION

    normalized = stem[:match.start()]
    if normalized and normalized[-1] in SEPARATORS:
        normalized = normalized[:-1]

    # a bare "v003" keeps its stem as the name
    if not normalized:
        normalized = stem

    return normalized, match.group(1)


def _segments(folder: str):
    return [s for s in re.split(r"[\\/]", folder) if s]


def extract_shot_name(parent_folder: str) -> Optional[str]:
    if not parent_folder:
        return None

    if "shot" in parent_folder.lower():
        segments = _segments(parent_folder)
        for segment, following in zip(segments, segments[1:]):
            if segment.lower() in SHOT_SEGMENT_NAMES:
                return following

    match = SHOT_CODE_RE.search(parent_folder)
    if match:
        return match.group(1)

    return None


def parse_filename(stem: str, parent_folder: str) -> ParsedName:
    filename, version = extract_version(stem)
    return ParsedName(filename, version, extract_shot_name(parent_folder))


def version_sort_key(version: str) -> int:
    try:
        return int(version)
    except (TypeError, ValueError):
        return 0

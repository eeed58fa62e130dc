"""
Include-pattern compilation.

Patterns are globs matched against the whole filename (``*.nk``,
``shot*_comp_v*.nk``). A pattern that carries its own regex anchor, i.e.
starts with ``^`` or ends with ``$``, is taken as a regular expression and
searched as written (``\\.nk$``). Matching never looks at the directory part
of a path.
"""

import logging
import re
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

NUKE_EXTENSION = ".nk"
AFTER_EFFECTS_EXTENSION = ".aep"

# (substring that marks a user pattern as covering the extension, fallback regex)
FALLBACK_PATTERNS = [
    (NUKE_EXTENSION, r"\.nk$"),
    (AFTER_EFFECTS_EXTENSION, r"\.aep$"),
]


def is_regex_pattern(pattern: str) -> bool:
    return pattern.startswith("^") or pattern.endswith("$")


def glob_to_regex(pattern: str) -> str:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "^" + "".join(parts) + "$"


def compile_pattern(pattern: str) -> Optional[re.Pattern]:
    """
    Compile a single include pattern.

    Returns None (after logging a warning) when the pattern is blank or is
    not a valid regular expression.
    """
    pattern = pattern.strip()
    if not pattern:
        return None

    source = pattern if is_regex_pattern(pattern) else glob_to_regex(pattern)

    try:
        return re.compile(source)
    except re.error as e:
        logger.warning("Invalid include pattern %r skipped: %s", pattern, e)
        return None


def compile_patterns(patterns: Optional[Iterable[str]]) -> List[re.Pattern]:
    """
    Compile user include patterns and append the built-in fallbacks.

    A fallback for an extension is only added when none of the user
    patterns mention that extension, so the result is never empty.
    """
    patterns = [p for p in (patterns or []) if p and p.strip()]
    matchers: List[re.Pattern] = []

    for pattern in patterns:
        compiled = compile_pattern(pattern)
        if compiled is not None:
            logger.debug("Added include pattern: %s", compiled.pattern)
            matchers.append(compiled)

    for extension, fallback in FALLBACK_PATTERNS:
        if not any(extension in p for p in patterns):
            logger.debug("Adding default pattern for %s files", extension)
            matchers.append(re.compile(fallback))

    logger.info("Using %d file patterns", len(matchers))
    return matchers


def matches_any(filename: str, matchers: Iterable[re.Pattern]) -> bool:
    return any(m.search(filename) for m in matchers)


def split_pattern_list(value: Optional[str]) -> List[str]:
    """Split the comma-separated form stored in the settings table."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]

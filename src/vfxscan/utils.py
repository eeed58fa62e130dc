import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pathspec import GitIgnoreSpec

logger = logging.getLogger(__name__)


def makedir_exist_ok(path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def read_ignore_lines(ignore_file: Path) -> list:
    try:
        return Path(ignore_file).read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read ignore file %s, skipping it: %s", ignore_file, e)
        return []


def build_ignore_spec(
    ignore_file: Optional[Path] = None,
    patterns: Optional[Iterable[str]] = None,
) -> Optional[GitIgnoreSpec]:
    lines = []
    if ignore_file is not None:
        lines.extend(read_ignore_lines(ignore_file))
    if patterns:
        lines.extend(p.strip() for p in patterns if p and p.strip())
    if not lines:
        return None
    return GitIgnoreSpec.from_lines(lines)


def utc_from_timestamp(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

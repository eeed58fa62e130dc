"""
Directory classification for project scans.

Decides which folders under a project root are worth walking and which
folders met during a walk are render output to be skipped.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_SCAN_DIRS = [
    "project",
    "projects",
    "comp",
    "animation",
    "anim",
    "05_comp",
    "04_animation",
]

PROJECT_DIR_NAMES = ("project", "projects")
SHOT_PROJECT_DIR_NAME = "project"
RENDER_DIR_NAMES = ("render", "renders")
WHOLE_ROOT_NAMES = (".", "*")

RENDER_EXTENSION = ".exr"
MAX_RENDER_FILES = 1


# =====================================================
# Entry helpers
# =====================================================

def list_dir(path: Union[str, Path]) -> List[os.DirEntry]:
    """
    Return the entries of ``path``.

    An unreadable directory is logged and reported as empty.
    """
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        logger.warning("Failed to read directory %s: %s", path, e)
        return []


def entry_is_dir(entry: os.DirEntry, follow_symlinks: bool = True) -> bool:
    try:
        return entry.is_dir(follow_symlinks=follow_symlinks)
    except OSError:
        return False


def entry_is_file(entry: os.DirEntry) -> bool:
    try:
        return entry.is_file()
    except OSError:
        return False


# =====================================================
# Skip policy
# =====================================================

def is_render_dir_name(name: str) -> bool:
    return name.lower() in RENDER_DIR_NAMES


def count_render_files(entries: Iterable[os.DirEntry], limit: Optional[int] = None) -> int:
    count = 0
    for entry in entries:
        if entry.name.lower().endswith(RENDER_EXTENSION) and entry_is_file(entry):
            count += 1
            if limit is not None and count >= limit:
                break
    return count


def is_render_output(entries: Iterable[os.DirEntry]) -> bool:
    """True when a directory holds more than one .exr frame."""
    limit = MAX_RENDER_FILES + 1
    return count_render_files(entries, limit=limit) >= limit


# =====================================================
# Target discovery
# =====================================================

def is_shot_folder_name(name: str) -> bool:
    return "_" in name and any(c.isdigit() for c in name)


def normalize_scan_dirs(scan_dir_names: Optional[Iterable[str]]) -> List[str]:
    names = [n.strip().lower() for n in (scan_dir_names or []) if n and n.strip()]
    return names or list(DEFAULT_SCAN_DIRS)


def scans_whole_root(scan_dir_names: Optional[Iterable[str]]) -> bool:
    return any(n.strip() in WHOLE_ROOT_NAMES for n in (scan_dir_names or []) if n)


def find_target_dirs(
    root: Union[str, Path],
    scan_dir_names: Optional[Iterable[str]] = None,
) -> List[Path]:
    """
    Find the folders under ``root`` that should be walked.

    Parameters
    ----------
    root : str | pathlib.Path
        Project root directory.
    scan_dir_names : iterable of str, optional
        Target folder names, compared case-insensitively. Empty means
        :data:`DEFAULT_SCAN_DIRS`; ``"."`` or ``"*"`` means the whole root.

    Returns
    -------
    list of pathlib.Path
        Root-level folders named like a target (or ``project``/``projects``),
        followed by target folders (or ``project``) directly inside
        shot-like root folders such as ``SHOT_0010``. May be empty, in which
        case the caller falls back to walking the whole root.
    """
    root = Path(root)

    if scans_whole_root(scan_dir_names):
        logger.info("Scanning entire project directory: %s", root)
        return [root]

    targets = set(normalize_scan_dirs(scan_dir_names))
    logger.debug("Looking for target folders %s in %s", sorted(targets), root)

    found: List[Path] = []
    shot_folders: List[Path] = []

    for entry in list_dir(root):
        if not entry_is_dir(entry):
            continue

        name = entry.name.lower()
        if name in targets or name in PROJECT_DIR_NAMES:
            logger.info("Found target folder at root level: %s", entry.path)
            found.append(Path(entry.path))

        if is_shot_folder_name(name):
            shot_folders.append(Path(entry.path))

    for shot in shot_folders:
        logger.debug("Found potential shot folder: %s", shot)
        for entry in list_dir(shot):
            if not entry_is_dir(entry):
                continue
            name = entry.name.lower()
            if name in targets or name == SHOT_PROJECT_DIR_NAME:
                logger.info("Found target subfolder in shot: %s", entry.path)
                found.append(Path(entry.path))

    # a shot folder such as 05_comp can itself be a target; keep only the
    # outermost folder so nothing is walked twice
    unique = list(dict.fromkeys(found))
    return [
        path for path in unique
        if not any(other != path and other in path.parents for other in unique)
    ]

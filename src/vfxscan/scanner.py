import csv
import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .classifier import (
    entry_is_dir,
    entry_is_file,
    find_target_dirs,
    is_render_dir_name,
    is_render_output,
    list_dir,
)
from .errors import InvalidRoot
from .models import ScannedFile
from .patterns import compile_patterns, matches_any
from .utils import build_ignore_spec, makedir_exist_ok, utc_from_timestamp, utcnow
from .versioning import parse_filename, version_sort_key

logger = logging.getLogger(__name__)

PROJECT_IGNORE_NAME = ".vfxignore"


class Scanner:
    """
    Versioned-artifact scanner for a single VFX project tree.

    The scanner locates the folders worth walking (``comp``, ``anim``,
    ``SHOT_0010/project`` and so on), walks them depth-first, and emits one
    :class:`~vfxscan.models.ScannedFile` per file whose name matches the
    include patterns. Each record carries the normalized base name, the
    version digits and the shot inferred from the folder path.

    Key features
    ------------
    - Target folder discovery with a whole-root fallback
    - Render output folders (``render/``, multi-frame ``.exr``) are never
      entered
    - Optional gitignore-style exclusion (settings patterns and
      ``.vfxignore``)
    - Export to JSON-compatible dict, JSON or CSV

    Scanning only reads the filesystem. Persisting the result is the job of
    :class:`~vfxscan.reconciler.Reconciler`.
    """

    DEFAULT_IGNORE_PATH = resources.files("vfxscan").joinpath("default.vfxignore")

    def __init__(
            self,
            root: Union[str, Path],
            include_patterns: Optional[Iterable[str]] = None,
            scan_dirs: Optional[Iterable[str]] = None,
            exclude_patterns: Optional[Iterable[str]] = None,
            ignore_file: Optional[Union[str, Path]] = None,
            project_id: Optional[int] = None,
    ):
        """
        Create a new Scanner instance.

        Parameters
        ----------
        root : str | pathlib.Path
            Project root directory.
        include_patterns : iterable of str, optional
            Filename globs (or anchored regexes). The ``.nk`` and ``.aep``
            fallbacks are added when not covered.
        scan_dirs : iterable of str, optional
            Target folder names to look for under the root.
        exclude_patterns : iterable of str, optional
            Gitignore-style patterns, relative to the root, for files and
            folders to leave out.
        ignore_file : str | pathlib.Path, optional
            Gitignore-style file. Defaults to ``<root>/.vfxignore`` when it
            exists, otherwise the packaged ``default.vfxignore``.
        project_id : int, optional
            Owning project, copied onto every record.
        """
        self.root = Path(root).expanduser().resolve()
        self.include_patterns = list(include_patterns or [])
        self.scan_dirs = list(scan_dirs or [])
        self.exclude_patterns = list(exclude_patterns or [])
        self.project_id = project_id

        if ignore_file is not None:
            self.ignore_file = Path(ignore_file).expanduser().resolve()
        elif (self.root / PROJECT_IGNORE_NAME).is_file():
            self.ignore_file = self.root / PROJECT_IGNORE_NAME
        else:
            self.ignore_file = Path(self.DEFAULT_IGNORE_PATH)

        self._ignore_spec: Optional[Any] = None
        self._matchers: list = []
        self._files: List[ScannedFile] = []
        self._created_at = None

    # --------
    # public
    # --------

    def scan(self) -> List[ScannedFile]:
        """
        Scan the project tree and return the matching files.

        Returns
        -------
        list of ScannedFile
            One entry per matching file. Several versions of the same base
            name are all returned; order is not guaranteed.

        Raises
        ------
        InvalidRoot
            If the root does not exist or is not a directory.
        """
        if not self.root.is_dir():
            logger.error("Project path does not exist or is not a directory: %s", self.root)
            raise InvalidRoot(self.root)

        logger.info("Scanning project at: %s", self.root)

        self._files.clear()
        self._created_at = utcnow()
        self._matchers = compile_patterns(self.include_patterns)
        self._ignore_spec = build_ignore_spec(
            self.ignore_file if self.ignore_file.is_file() else None,
            self.exclude_patterns,
        )

        targets = find_target_dirs(self.root, self.scan_dirs)
        if not targets:
            logger.warning(
                "No project folders found in %s, scanning root directory as "
                "fallback. This is less efficient.",
                self.root,
            )
            targets = [self.root]

        for target in targets:
            logger.info("Scanning project folder: %s", target)
            self._walk(target, is_target=True)

        logger.info("Found %d files in %s", len(self._files), self.root)
        return list(self._files)

    def to_dict(self) -> dict:
        return {
            "root": str(self.root),
            "project_id": self.project_id,
            "schema": [
                {"name": name, "description": desc}
                for name, desc in ScannedFile.SCHEMA
            ],
            "files": [f.to_row() for f in self._files],
        }

    def to_json(
            self,
            output: Optional[Union[str, Path]] = None,
            *,
            indent: int = 2,
            ensure_ascii: bool = False,
    ) -> Path:
        """
        Export the scan result as JSON.

        If ``output`` is None, write ``<root name>.json`` in the current
        working directory. Raises RuntimeError if called before scan().
        """
        if not self._files:
            raise RuntimeError("No scan results available. Call scan() first.")

        path = (
            self._default_output_path(".json")
            if output is None
            else Path(output)
        )

        makedir_exist_ok(path)

        with path.open("w", encoding="utf-8") as f:
            json.dump(
                self.to_dict(),
                f,
                indent=indent,
                ensure_ascii=ensure_ascii,
            )
        return path

    def to_csv(
            self,
            output: Optional[Union[str, Path]] = None,
            *,
            include_schema_comment: bool = True,
    ) -> Path:
        """
        Write the scan result to a CSV file.

        If ``output`` is None, write ``<root name>.csv`` in the current
        working directory. With ``include_schema_comment`` the column
        descriptions are prepended as ``#`` lines. Raises RuntimeError if
        called before scan().
        """
        if not self._files:
            raise RuntimeError("No scan results available. Call scan() first.")

        path = (
            self._default_output_path(".csv")
            if output is None
            else Path(output)
        )

        makedir_exist_ok(path)

        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)

            if include_schema_comment:
                for name, desc in ScannedFile.SCHEMA:
                    f.write(f"# {name}: {desc}\n")

            writer.writerow([name for name, _ in ScannedFile.SCHEMA])
            writer.writerows(f_.to_row() for f_ in self._files)
        return path

    # ----------------
    # internal logic
    # ----------------

    def _default_output_path(self, suffix: str) -> Path:
        name = self.root.name or "root"
        return Path.cwd() / f"{name}{suffix}"

    def _is_ignored(self, path: Path, is_dir: bool) -> bool:
        if self._ignore_spec is None:
            return False
        try:
            rel = path.relative_to(self.root).as_posix()
        except ValueError:
            return False
        if is_dir:
            rel += "/"
        return bool(self._ignore_spec.match_file(rel))

    def _walk(self, path: Path, is_target: bool = False) -> None:
        if not is_target and is_render_dir_name(path.name):
            logger.info("Skipping render directory: %s", path)
            return

        entries = list_dir(path)

        if is_render_output(entries):
            logger.info("Skipping directory with multiple EXR files: %s", path)
            return

        logger.debug("Scanning directory: %s", path)

        for entry in entries:
            entry_path = Path(entry.path)

            # symlinked folders are not followed
            if entry_is_dir(entry, follow_symlinks=False):
                if self._is_ignored(entry_path, is_dir=True):
                    logger.debug("Ignoring directory: %s", entry_path)
                    continue
                self._walk(entry_path)
            elif entry_is_file(entry):
                self._visit_file(entry)

    def _visit_file(self, entry: os.DirEntry) -> None:
        if not matches_any(entry.name, self._matchers):
            logger.debug("File %s did not match any patterns", entry.name)
            return

        path = Path(entry.path)
        if self._is_ignored(path, is_dir=False):
            logger.debug("Ignoring file: %s", path)
            return

        record = self._build_record(entry, path)
        if record is not None:
            logger.debug(
                "Adding file: %s (version: %s) (%s)",
                record.filename, record.version, record.file_type,
            )
            self._files.append(record)

    def _build_record(self, entry: os.DirEntry, path: Path) -> Optional[ScannedFile]:
        try:
            relative = path.relative_to(self.root)
        except ValueError as e:
            logger.warning("Failed to get relative path for %s: %s", path, e)
            return None

        try:
            stat = entry.stat()
        except OSError as e:
            logger.warning("Failed to get metadata for %s: %s", path, e)
            return None

        parent = relative.parent.as_posix()
        parent_folder = "" if parent == "." else parent

        parsed = parse_filename(path.stem, parent_folder)

        return ScannedFile(
            project_id=self.project_id,
            filename=parsed.filename,
            version=parsed.version,
            file_type=path.suffix[1:].lower() or "unknown",
            absolute_path=str(path),
            relative_path=relative.as_posix(),
            parent_folder=parent_folder,
            shot_name=parsed.shot_name,
            last_modified=utc_from_timestamp(stat.st_mtime),
            created_at=self._created_at,
        )


def scan_directory(
        project_id: Optional[int],
        project_root: Union[str, Path],
        include_patterns: Optional[Iterable[str]] = None,
        scan_dir_names: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
) -> List[ScannedFile]:
    """Scan ``project_root`` without persisting anything."""
    scanner = Scanner(
        project_root,
        include_patterns=include_patterns,
        scan_dirs=scan_dir_names,
        exclude_patterns=exclude_patterns,
        project_id=project_id,
    )
    return scanner.scan()


def group_by_filename(files: Iterable[ScannedFile]) -> Dict[str, List[ScannedFile]]:
    """Group records by base name, newest version first within each group."""
    groups: Dict[str, List[ScannedFile]] = {}
    for f in files:
        groups.setdefault(f.filename, []).append(f)
    for name in groups:
        groups[name].sort(key=lambda f: version_sort_key(f.version), reverse=True)
    return dict(sorted(groups.items()))

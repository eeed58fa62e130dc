import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .errors import PersistError
from .models import ScannedFile
from .reconciler import Reconciler
from .scanner import Scanner

logger = logging.getLogger(__name__)


class ScanService:
    """
    Runs Scanner + Reconciler for a project, one scan per project at a time.

    ``store`` provides the project, file and settings interfaces (see
    :class:`~vfxscan.store.SQLiteStore`). A manual scan and a watcher
    triggered scan of the same project queue on the same lock; scans of
    different projects run independently.
    """

    def __init__(self, store, ignore_file: Optional[Union[str, Path]] = None):
        self.store = store
        self.reconciler = Reconciler(store)
        self.ignore_file = ignore_file
        # one lock per project id seen; bounded by the number of projects
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _project_lock(self, project_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = self._locks[project_id] = threading.Lock()
            return lock

    def scan(
        self,
        project_id: int,
        project_root: Union[str, Path],
        include_patterns: Optional[Iterable[str]] = None,
        scan_dir_names: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
    ) -> List[ScannedFile]:
        """
        Scan ``project_root`` and persist the result for ``project_id``.

        Raises InvalidRoot before anything is written, UnknownProject or
        PersistError if the replace fails; in every failure case the
        previously stored file list is left as it was.
        """
        with self._project_lock(project_id):
            start = time.time()

            scanner = Scanner(
                project_root,
                include_patterns=include_patterns,
                scan_dirs=scan_dir_names,
                exclude_patterns=exclude_patterns,
                ignore_file=self.ignore_file,
                project_id=project_id,
            )
            files = scanner.scan()
            self.reconciler.replace_files(project_id, files)

            logger.info(
                "Scan of project %s completed in %.3f seconds", project_id, time.time() - start
            )
            return files

    def rescan(
        self,
        project_id: int,
        project_root: Union[str, Path],
        scan_dir_names: Optional[Iterable[str]] = None,
    ) -> List[ScannedFile]:
        """Scan with the stored default settings; explicit scan dirs win."""
        try:
            settings = self.store.get_default_scan_settings()
        except sqlite3.Error as e:
            raise PersistError(f"Failed to load scan settings: {e}") from e
        scan_dirs = list(scan_dir_names or []) or settings.scan_dirs
        return self.scan(
            project_id,
            project_root,
            include_patterns=settings.include_patterns,
            scan_dir_names=scan_dirs,
            exclude_patterns=settings.exclude_patterns,
        )

"""
SQLite mirror of projects, scanned files and scan settings.

Only the narrow slice of the launcher database the scan engine needs lives
here. Every call opens its own connection, so a store can be shared between
the caller and watcher threads.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .models import ScannedFile, ScanSettings
from .patterns import split_pattern_list
from .utils import utcnow

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    client TEXT,
    path TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_files (
    id INTEGER PRIMARY KEY,
    project_id INTEGER NOT NULL,
    filename TEXT NOT NULL,
    version TEXT NOT NULL,
    file_type TEXT NOT NULL,
    path TEXT NOT NULL,
    relative_path TEXT NOT NULL,
    parent_folder TEXT,
    shot_name TEXT,
    last_modified TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_project_files_project
    ON project_files(project_id);

CREATE TABLE IF NOT EXISTS settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    nuke_executable_path TEXT,
    ae_executable_path TEXT,
    default_scan_subdirs TEXT,
    default_include_patterns TEXT,
    default_exclude_patterns TEXT
);
"""

DEFAULT_SCAN_SUBDIRS = "nuke,ae"
DEFAULT_INCLUDE_PATTERNS = "*.nk,*.aep"
DEFAULT_EXCLUDE_PATTERNS = ""

INSERT_FILE_SQL = """
    INSERT INTO project_files (
        project_id, filename, version, file_type, path, relative_path,
        parent_folder, shot_name, last_modified, created_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class SQLiteStore:

    def __init__(self, db_path: Union[str, Path], timeout: float = 5.0):
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout

    @contextmanager
    def connection(self):
        """Open a connection with foreign keys, busy timeout and WAL enabled."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self.timeout * 1000)}")
        conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield conn
        finally:
            conn.close()

    # =====================================================
    # Schema
    # =====================================================

    def init_schema(self) -> None:
        with self.connection() as conn:
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR IGNORE INTO settings "
                "(id, default_scan_subdirs, default_include_patterns, default_exclude_patterns) "
                "VALUES (1, ?, ?, ?)",
                (DEFAULT_SCAN_SUBDIRS, DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS),
            )
            conn.commit()
        logger.debug("Database schema ready at %s", self.db_path)

    # =====================================================
    # Projects
    # =====================================================

    def add_project(self, name: str, path: Union[str, Path], client: Optional[str] = None) -> int:
        now = utcnow().isoformat()
        with self.connection() as conn:
            cursor = conn.execute(
                "INSERT INTO projects (name, client, path, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (name, client, str(path), now, now),
            )
            conn.commit()
            return cursor.lastrowid

    def project_exists(self, project_id: int) -> bool:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT EXISTS(SELECT 1 FROM projects WHERE id = ?)",
                (project_id,),
            ).fetchone()
        return bool(row[0])

    def project_root(self, project_id: int) -> Optional[str]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT path FROM projects WHERE id = ?",
                (project_id,),
            ).fetchone()
        return row["path"] if row else None

    # =====================================================
    # Files
    # =====================================================

    def replace_all(self, project_id: int, files: Iterable[ScannedFile]) -> int:
        """
        Swap the project's file rows for ``files`` in one transaction.

        Runs the delete even when ``files`` is empty. Any error rolls the
        whole transaction back and propagates.
        """
        rows = [
            (
                project_id,
                f.filename,
                f.version,
                f.file_type,
                f.absolute_path,
                f.relative_path,
                f.parent_folder,
                f.shot_name,
                f.last_modified.isoformat(),
                f.created_at.isoformat(),
            )
            for f in files
        ]

        with self.connection() as conn:
            with conn:
                conn.execute(
                    "DELETE FROM project_files WHERE project_id = ?",
                    (project_id,),
                )
                conn.executemany(INSERT_FILE_SQL, rows)
        return len(rows)

    def get_project_files(self, project_id: int) -> List[ScannedFile]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT project_id, filename, version, file_type, path, relative_path, "
                "parent_folder, shot_name, last_modified, created_at "
                "FROM project_files WHERE project_id = ? "
                "ORDER BY filename ASC, CAST(version AS INTEGER) DESC, relative_path ASC",
                (project_id,),
            ).fetchall()

        return [
            ScannedFile(
                project_id=row["project_id"],
                filename=row["filename"],
                version=row["version"],
                file_type=row["file_type"],
                absolute_path=row["path"],
                relative_path=row["relative_path"],
                parent_folder=row["parent_folder"] or "",
                shot_name=row["shot_name"],
                last_modified=datetime.fromisoformat(row["last_modified"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    # =====================================================
    # Settings
    # =====================================================

    def get_default_scan_settings(self) -> ScanSettings:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT default_scan_subdirs, default_include_patterns, default_exclude_patterns "
                "FROM settings WHERE id = 1"
            ).fetchone()

        if row is None:
            return ScanSettings(
                include_patterns=split_pattern_list(DEFAULT_INCLUDE_PATTERNS),
                scan_dirs=split_pattern_list(DEFAULT_SCAN_SUBDIRS),
            )

        return ScanSettings(
            include_patterns=split_pattern_list(row["default_include_patterns"]),
            exclude_patterns=split_pattern_list(row["default_exclude_patterns"]),
            scan_dirs=split_pattern_list(row["default_scan_subdirs"]),
        )

    def save_scan_settings(self, settings: ScanSettings) -> None:
        with self.connection() as conn:
            conn.execute(
                "UPDATE settings SET default_scan_subdirs = ?, default_include_patterns = ?, "
                "default_exclude_patterns = ? WHERE id = 1",
                (
                    ",".join(settings.scan_dirs),
                    ",".join(settings.include_patterns),
                    ",".join(settings.exclude_patterns),
                ),
            )
            conn.commit()

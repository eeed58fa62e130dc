from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class ScannedFile:
    """
    One versioned artifact found by a scan.

    Instances only live for a single scan; they are either dropped or
    written verbatim to the ``project_files`` table.
    """

    SCHEMA = [
        ("project_id", "Owning project ID"),
        ("filename", "Base name without version token and extension"),
        ("version", "Version digits from the trailing v<digits> token"),
        ("file_type", "Lowercased file extension"),
        ("absolute_path", "Absolute path on disk"),
        ("relative_path", "Path relative to the project root"),
        ("parent_folder", "Directory part of relative_path"),
        ("shot_name", "Inferred shot identifier, or null"),
        ("last_modified", "File modification time (UTC, ISO 8601)"),
        ("created_at", "Time the record was produced (UTC, ISO 8601)"),
    ]

    project_id: Optional[int]
    filename: str
    version: str
    file_type: str
    absolute_path: str
    relative_path: str
    parent_folder: str
    shot_name: Optional[str]
    last_modified: datetime
    created_at: datetime

    def to_row(self) -> list:
        return [
            self.project_id,
            self.filename,
            self.version,
            self.file_type,
            self.absolute_path,
            self.relative_path,
            self.parent_folder,
            self.shot_name,
            self.last_modified.isoformat(),
            self.created_at.isoformat(),
        ]

    def to_dict(self) -> dict:
        return {name: value for (name, _), value in zip(self.SCHEMA, self.to_row())}


@dataclass
class ScanSettings:
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    scan_dirs: List[str] = field(default_factory=list)


@dataclass
class WatchStatus:
    project_id: int
    path: str
    is_watching: bool = True

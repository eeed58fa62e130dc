import sqlite3
import threading
import time

import pytest

from vfxscan.errors import InvalidRoot, PersistError
from vfxscan.models import ScanSettings
from vfxscan.service import ScanService


class RecordingStore:
    """In-memory stand-in for the project/file/settings store."""

    def __init__(self, settings=None, delay=0.0):
        self.settings = settings or ScanSettings()
        self.delay = delay
        self.files = {}
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def project_exists(self, project_id):
        return True

    def replace_all(self, project_id, files):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        self.files[project_id] = list(files)
        with self._lock:
            self.active -= 1

    def get_default_scan_settings(self):
        return self.settings


def test_scans_of_one_project_do_not_overlap(tmp_path, make_file):
    make_file(tmp_path / "comp" / "bg_v001.nk")
    store = RecordingStore(delay=0.05)
    service = ScanService(store)

    threads = [
        threading.Thread(target=service.scan, args=(1, tmp_path, [], ["comp"]))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.max_active == 1
    assert len(store.files[1]) == 1


def test_rescan_uses_stored_settings(tmp_path, make_file):
    make_file(tmp_path / "anim" / "walk_v002.ma")
    make_file(tmp_path / "anim" / "old" / "walk_v001.ma")
    store = RecordingStore(
        settings=ScanSettings(
            include_patterns=["*.ma"],
            exclude_patterns=["old/"],
            scan_dirs=["anim"],
        )
    )

    files = ScanService(store).rescan(3, tmp_path)

    assert [f.relative_path for f in files] == ["anim/walk_v002.ma"]
    assert store.files[3] == files


def test_explicit_scan_dirs_override_settings(tmp_path, make_file):
    make_file(tmp_path / "comp" / "bg_v001.nk")
    make_file(tmp_path / "anim" / "walk_v001.nk")
    store = RecordingStore(settings=ScanSettings(scan_dirs=["anim"]))

    files = ScanService(store).rescan(1, tmp_path, ["comp"])

    assert [f.relative_path for f in files] == ["comp/bg_v001.nk"]


def test_invalid_root_persists_nothing(tmp_path):
    store = RecordingStore()

    with pytest.raises(InvalidRoot):
        ScanService(store).scan(1, tmp_path / "missing", [], [])

    assert store.files == {}


def test_settings_read_failure_is_persist_error(tmp_path, make_file):
    class LockedStore(RecordingStore):
        def get_default_scan_settings(self):
            raise sqlite3.OperationalError("database is locked")

    make_file(tmp_path / "comp" / "bg_v001.nk")
    store = LockedStore()

    with pytest.raises(PersistError):
        ScanService(store).rescan(1, tmp_path)

    assert store.files == {}

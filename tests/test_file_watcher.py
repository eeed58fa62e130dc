import sqlite3
import threading
import time

import pytest
from watchfiles import Change

from vfxscan.errors import PersistError
from vfxscan.file_watcher import WatcherRegistry
from vfxscan.service import ScanService
from vfxscan.store import SQLiteStore


# =====================================================
# Helpers
# =====================================================

class LockedOnceStore(SQLiteStore):
    """Real store whose first settings read fails like a locked database."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.settings_calls = 0
        self.replaced = threading.Event()

    def get_default_scan_settings(self):
        self.settings_calls += 1
        if self.settings_calls == 1:
            raise sqlite3.OperationalError("database is locked")
        return super().get_default_scan_settings()

    def replace_all(self, project_id, files):
        count = super().replace_all(project_id, files)
        self.replaced.set()
        return count


class FakeService:
    def __init__(self, fail_first=False):
        self.calls = []
        self.fail_first = fail_first
        self._cond = threading.Condition()

    def rescan(self, project_id, project_root, scan_dir_names=None):
        with self._cond:
            self.calls.append((project_id, project_root, scan_dir_names))
            self._cond.notify_all()
            if self.fail_first and len(self.calls) == 1:
                raise PersistError("database is locked")
        return []

    def wait_for_calls(self, n, timeout=5.0):
        with self._cond:
            return self._cond.wait_for(lambda: len(self.calls) >= n, timeout)


def fake_watch_factory(batches, seen_paths=None):
    def fake_watch(*paths, stop_event=None, **kwargs):
        if seen_paths is not None:
            seen_paths.extend(paths)
        for batch in batches:
            if stop_event.is_set():
                return
            yield batch
        stop_event.wait(5)

    return fake_watch


@pytest.fixture
def project_root(tmp_path):
    (tmp_path / "comp").mkdir()
    (tmp_path / "misc").mkdir()
    return tmp_path


# =====================================================
# LISTENER
# =====================================================

def test_change_triggers_rescan(monkeypatch, project_root):
    batch = {(Change.added, str(project_root / "comp" / "bg_v002.nk"))}
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([batch]))
    service = FakeService()
    registry = WatcherRegistry(service, debounce_seconds=0)

    assert registry.start_watching(1, project_root, ["comp"])
    assert service.wait_for_calls(1)

    registry.stop_all(timeout=5)
    assert service.calls[0] == (1, project_root.resolve(), ["comp"])


def test_listener_rearms_after_each_batch(monkeypatch, project_root):
    batches = [
        {(Change.modified, str(project_root / "comp" / "bg_v001.nk"))},
        {(Change.deleted, str(project_root / "comp" / "bg_v001.nk"))},
    ]
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory(batches))
    service = FakeService()
    registry = WatcherRegistry(service, debounce_seconds=0)

    registry.start_watching(1, project_root, ["comp"])

    assert service.wait_for_calls(2)
    registry.stop_all(timeout=5)


def test_changes_inside_render_folders_do_not_trigger(monkeypatch, project_root):
    batches = [
        {(Change.added, str(project_root.resolve() / "comp" / "render" / "bg.0001.exr"))},
        {(Change.added, str(project_root / "comp" / "bg_v003.nk"))},
    ]
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory(batches))
    service = FakeService()
    registry = WatcherRegistry(service, debounce_seconds=0)

    registry.start_watching(1, project_root, ["comp"])
    assert service.wait_for_calls(1)
    time.sleep(0.1)
    registry.stop_all(timeout=5)

    assert len(service.calls) == 1


def test_failed_rescan_keeps_listening(monkeypatch, project_root):
    batch = {(Change.added, str(project_root / "comp" / "a_v001.nk"))}
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([batch, batch]))
    service = FakeService(fail_first=True)
    registry = WatcherRegistry(service, debounce_seconds=0)

    registry.start_watching(1, project_root, ["comp"])

    assert service.wait_for_calls(2)
    registry.stop_all(timeout=5)


def test_locked_settings_store_keeps_listening(monkeypatch, tmp_path, make_file):
    root = tmp_path / "show"
    make_file(root / "comp" / "bg_v001.nk")
    store = LockedOnceStore(tmp_path / "vfx.db")
    store.init_schema()
    project_id = store.add_project("Show", root)

    batch = {(Change.added, str(root.resolve() / "comp" / "bg_v001.nk"))}
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([batch, batch]))
    registry = WatcherRegistry(ScanService(store), debounce_seconds=0)

    registry.start_watching(project_id, root, ["comp"])
    thread = registry._registrations[project_id].thread

    assert store.replaced.wait(5)
    assert store.settings_calls == 2
    assert thread.is_alive()
    registry.stop_all(timeout=5)

    assert len(store.get_project_files(project_id)) == 1


def test_second_frame_in_target_folder_drops_stale_rows(monkeypatch, tmp_path, make_file):
    root = tmp_path / "show"
    comp = root / "comp"
    make_file(comp / "bg_v001.nk")
    make_file(comp / "bg.0001.exr")
    store = SQLiteStore(tmp_path / "vfx.db")
    store.init_schema()
    project_id = store.add_project("Show", root)
    service = ScanService(store)
    service.rescan(project_id, root, ["comp"])
    assert len(store.get_project_files(project_id)) == 1

    make_file(comp / "bg.0002.exr")
    batch = {(Change.added, str(comp.resolve() / "bg.0002.exr"))}
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([batch]))
    calls = []
    rescanned = threading.Event()

    def recording_rescan(*args, **kwargs):
        calls.append(args)
        try:
            return ScanService.rescan(service, *args, **kwargs)
        finally:
            rescanned.set()

    monkeypatch.setattr(service, "rescan", recording_rescan)
    registry = WatcherRegistry(service, debounce_seconds=0)

    registry.start_watching(project_id, root, ["comp"])
    assert rescanned.wait(5)
    registry.stop_all(timeout=5)

    assert len(calls) == 1
    assert store.get_project_files(project_id) == []


def test_only_target_directories_are_watched(monkeypatch, project_root):
    seen = []
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([], seen))
    registry = WatcherRegistry(FakeService())

    registry.start_watching(1, project_root, ["comp", "missing"])
    registry.stop_all(timeout=5)

    assert seen == [project_root.resolve() / "comp"]


# =====================================================
# REGISTRATION TABLE
# =====================================================

def test_start_is_idempotent(monkeypatch, project_root):
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([]))
    registry = WatcherRegistry(FakeService())

    assert registry.start_watching(1, project_root, ["comp"])
    first = registry._registrations[1]
    assert registry.start_watching(1, project_root, ["comp"])

    assert registry._registrations[1] is first
    assert len(registry.list_watched_projects()) == 1
    registry.stop_all(timeout=5)


def test_stop_watching(monkeypatch, project_root):
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([]))
    registry = WatcherRegistry(FakeService())
    registry.start_watching(1, project_root, ["comp"])
    thread = registry._registrations[1].thread

    assert registry.stop_watching(1)
    assert not registry.stop_watching(1)
    assert not registry.is_watching(1)
    assert registry.list_watched_projects() == []

    thread.join(5)
    assert not thread.is_alive()


def test_list_watched_projects(monkeypatch, tmp_path):
    monkeypatch.setattr("vfxscan.file_watcher.watch", fake_watch_factory([]))
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    registry = WatcherRegistry(FakeService())

    registry.start_watching(1, a)
    registry.start_watching(2, b)
    status = {s.project_id: s.path for s in registry.list_watched_projects()}
    registry.stop_all(timeout=5)

    assert status == {1: str(a.resolve()), 2: str(b.resolve())}


def test_missing_root_registers_without_listener(tmp_path):
    registry = WatcherRegistry(FakeService())

    assert registry.start_watching(5, tmp_path / "gone", ["comp"])

    assert registry.is_watching(5)
    assert registry._registrations[5].thread is None
    assert registry.stop_watching(5)

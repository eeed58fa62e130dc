import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from watchfiles import watch, Change

from .classifier import find_target_dirs, is_render_dir_name
from .errors import VfxScanError
from .models import WatchStatus

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_DEBOUNCE_SECONDS = 2.0

TRIGGER_CHANGES = (Change.added, Change.modified, Change.deleted)


class WatchRegistration:
    """Live watch state for one project."""

    def __init__(
        self,
        project_id: int,
        root: Path,
        directories: List[Path],
        scan_dir_names: List[str],
    ) -> None:
        self.project_id = project_id
        self.root = root
        self.directories = directories
        self.scan_dir_names = scan_dir_names
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None


class WatcherRegistry:
    """
    Keeps at most one filesystem watch per project and rescans on change.

    Each registration gets its own daemon thread listening to
    ``watchfiles``. When a batch of added/modified/deleted events arrives
    the listener waits ``debounce_seconds`` to let the burst settle, then
    calls ``service.rescan(project_id, root, scan_dir_names)`` and goes
    back to listening. The registration table is guarded by one lock.

    ``service`` is normally a :class:`~vfxscan.service.ScanService`, which
    re-reads include patterns from the settings store on every rescan.
    """

    def __init__(
        self,
        service,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.service = service
        self.debounce_seconds = float(debounce_seconds)
        self._registrations: Dict[int, WatchRegistration] = {}
        self._lock = threading.Lock()

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------

    def start_watching(
        self,
        project_id: int,
        project_root: PathLike,
        scan_dir_names: Optional[Iterable[str]] = None,
    ) -> bool:
        with self._lock:
            if project_id in self._registrations:
                return True

            root = Path(project_root).expanduser().resolve()
            names = list(scan_dir_names or [])
            directories = self._watch_directories(root, names)

            registration = WatchRegistration(project_id, root, directories, names)
            self._registrations[project_id] = registration

            if not directories:
                logger.warning(
                    "Project %s registered but no directory under %s can be watched",
                    project_id, root,
                )
                return True

            registration.thread = threading.Thread(
                target=self._listen,
                args=(registration,),
                name=f"vfxscan-watch-{project_id}",
                daemon=True,
            )
            registration.thread.start()

        logger.info(
            "Watching project %s: %s",
            project_id, ", ".join(str(d) for d in directories),
        )
        return True

    def stop_watching(self, project_id: int) -> bool:
        with self._lock:
            registration = self._registrations.pop(project_id, None)

        if registration is None:
            return False

        # an in-flight rescan finishes; no new one is started
        registration.stop_event.set()
        logger.info("Stopped watching project %s", project_id)
        return True

    def stop_all(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            registrations = list(self._registrations.values())
            self._registrations.clear()

        for registration in registrations:
            registration.stop_event.set()

        for registration in registrations:
            if registration.thread is not None:
                registration.thread.join(timeout)

    def is_watching(self, project_id: int) -> bool:
        with self._lock:
            return project_id in self._registrations

    def list_watched_projects(self) -> List[WatchStatus]:
        with self._lock:
            return [
                WatchStatus(project_id=pid, path=str(reg.root))
                for pid, reg in self._registrations.items()
            ]

    # ---------------------------------------------------------
    # Subscription
    # ---------------------------------------------------------

    def _watch_directories(self, root: Path, scan_dir_names: List[str]) -> List[Path]:
        if not root.is_dir():
            logger.warning("Cannot watch missing project directory: %s", root)
            return []

        candidates = find_target_dirs(root, scan_dir_names) or [root]

        directories = []
        for path in candidates:
            if os.access(path, os.R_OK | os.X_OK):
                directories.append(path)
            else:
                logger.warning("Cannot subscribe to changes in %s: permission denied", path)
        return directories

    # ---------------------------------------------------------
    # Listener
    # ---------------------------------------------------------

    @staticmethod
    def _should_trigger(changes: Set[Tuple[Change, str]], root: Path) -> bool:
        for change, path_str in changes:
            if change not in TRIGGER_CHANGES:
                continue
            # render folders are never walked, so nothing under them counts
            if _under_render_dir(Path(path_str), root):
                continue
            return True
        return False

    def _listen(self, registration: WatchRegistration) -> None:
        stop_event = registration.stop_event

        try:
            for changes in watch(*registration.directories, stop_event=stop_event):
                if stop_event.is_set():
                    break

                if not self._should_trigger(changes, registration.root):
                    continue

                logger.info(
                    "Change detected in project %s (%d events)",
                    registration.project_id, len(changes),
                )
                for change, path in changes:
                    logger.debug("  - %s : %s", change.name, path)

                if stop_event.wait(self.debounce_seconds):
                    break

                self._rescan(registration)
        except OSError as e:
            logger.error(
                "Watch error for project %s: %s", registration.project_id, e
            )

        logger.debug("Listener for project %s exited", registration.project_id)

    def _rescan(self, registration: WatchRegistration) -> None:
        try:
            files = self.service.rescan(
                registration.project_id,
                registration.root,
                registration.scan_dir_names,
            )
        except VfxScanError as e:
            logger.error(
                "Error rescanning project %s: %s", registration.project_id, e
            )
            return
        except Exception:
            logger.exception(
                "Unexpected error rescanning project %s", registration.project_id
            )
            return

        logger.info(
            "Rescanned project %s: %d files", registration.project_id, len(files)
        )


def _under_render_dir(path: Path, root: Path) -> bool:
    try:
        parts = path.relative_to(root).parent.parts
    except ValueError:
        return False
    return any(is_render_dir_name(part) for part in parts)

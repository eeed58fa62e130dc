from . import commands
from .errors import VfxScanError, ScanError, InvalidRoot, PersistError, UnknownProject
from .models import ScannedFile, ScanSettings, WatchStatus
from .scanner import Scanner, scan_directory, group_by_filename
from .reconciler import Reconciler
from .store import SQLiteStore
from .service import ScanService
from .file_watcher import WatcherRegistry

import argparse
import time
from pathlib import Path

from ..config import load_config
from ..errors import VfxScanError
from ..file_watcher import WatcherRegistry
from ..log_config import setup_logging
from ..scanner import Scanner, group_by_filename
from ..service import ScanService
from ..store import SQLiteStore


# =====================================================
# Helpers
# =====================================================

def open_store(args):
    config = load_config(getattr(args, "config", None))
    setup_logging(getattr(args, "log_level", None) or config.log_level, config.log_file)

    store = SQLiteStore(getattr(args, "db", None) or config.database_path)
    store.init_schema()
    return config, store


def resolve_project_root(store, project_id: int) -> Path:
    root = store.project_root(project_id)
    if root is None:
        raise SystemExit(f"Error: project {project_id} does not exist")
    return Path(root)


def wait_for_interrupt():
    while True:
        time.sleep(1.0)


# =====================================================
# Scan Command
# =====================================================

def cmd_scan(args):
    setup_logging(args.log_level or "WARNING")

    scanner = Scanner(
        args.root,
        include_patterns=args.include,
        scan_dirs=args.scan_dir,
        exclude_patterns=args.exclude,
        ignore_file=args.ignore_file,
    )

    try:
        files = scanner.scan()
    except VfxScanError as e:
        raise SystemExit(f"Error: {e}")

    if not files:
        print("No files found.")
        return

    if args.format == "csv":
        path = scanner.to_csv(args.output)
    else:
        path = scanner.to_json(args.output)

    print(f"Found {len(files)} files")
    print(f"Wrote results to: {path}")


# =====================================================
# Project Commands
# =====================================================

def cmd_add_project(args):
    _, store = open_store(args)

    root = Path(args.path).expanduser().resolve()
    if not root.is_dir():
        raise SystemExit(f"Error: path does not exist: {root}")

    project_id = store.add_project(args.name, root, client=args.client)
    print(f"Added project {project_id}: {args.name} ({root})")


def cmd_sync(args):
    _, store = open_store(args)
    root = resolve_project_root(store, args.project_id)

    service = ScanService(store)
    try:
        files = service.rescan(args.project_id, root, args.scan_dir)
    except VfxScanError as e:
        raise SystemExit(f"Error: {e}")

    print(f"Stored {len(files)} files for project {args.project_id}")


def cmd_files(args):
    _, store = open_store(args)

    if not store.project_exists(args.project_id):
        raise SystemExit(f"Error: project {args.project_id} does not exist")

    files = store.get_project_files(args.project_id)
    if not files:
        print("No files stored for this project.")
        return

    for filename, versions in group_by_filename(files).items():
        latest = versions[0]
        shot = f"  [{latest.shot_name}]" if latest.shot_name else ""
        print(f"{filename} ({latest.file_type}){shot}")
        for f in versions:
            print(f"    v{f.version}  {f.last_modified:%Y-%m-%d %H:%M}  {f.relative_path}")

    print(f"Total files: {len(files)}")


# =====================================================
# Watch Command
# =====================================================

def cmd_watch(args):
    config, store = open_store(args)
    root = resolve_project_root(store, args.project_id)

    service = ScanService(store)

    print("=" * 60)
    print("Watching project:", root)
    print("=" * 60)

    print("\nRunning initial scan...\n")
    try:
        files = service.rescan(args.project_id, root, args.scan_dir)
    except VfxScanError as e:
        raise SystemExit(f"Error: {e}")
    print(f"Initial scan complete: {len(files)} files.")

    debounce = args.debounce if args.debounce is not None else config.debounce_seconds
    registry = WatcherRegistry(service, debounce_seconds=debounce)
    registry.start_watching(args.project_id, root, args.scan_dir)

    print("Press Ctrl+C to stop.\n")

    try:
        wait_for_interrupt()
    except KeyboardInterrupt:
        registry.stop_all(timeout=5.0)
        print("\nWatcher stopped.")


# =====================================================
# CLI
# =====================================================

def add_store_arguments(parser):
    parser.add_argument("--db", help="SQLite database path (default from config)")
    parser.add_argument("--config", help="Path to a vfxscan.toml config file")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG or INFO")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="vfxscan")
    sub = parser.add_subparsers(dest="command", required=True)

    # ----------------------
    # scan
    # ----------------------
    scan = sub.add_parser("scan", help="Scan a project tree and export the files found")
    scan.add_argument("root", help="Project root directory")
    scan.add_argument("--include", action="append", default=[], help="Include pattern (repeatable)")
    scan.add_argument("--scan-dir", action="append", default=[], help="Target folder name (repeatable)")
    scan.add_argument("--exclude", action="append", default=[], help="Gitignore-style exclude pattern (repeatable)")
    scan.add_argument("--ignore-file")
    scan.add_argument("-o", "--output")
    scan.add_argument("--format", choices=["csv", "json"], default="csv")
    scan.add_argument("--log-level")
    scan.set_defaults(func=cmd_scan)

    # ----------------------
    # add-project
    # ----------------------
    add = sub.add_parser("add-project", help="Register a project root")
    add.add_argument("name")
    add.add_argument("path")
    add.add_argument("--client")
    add_store_arguments(add)
    add.set_defaults(func=cmd_add_project)

    # ----------------------
    # sync
    # ----------------------
    sync = sub.add_parser("sync", help="Scan a registered project and store the result")
    sync.add_argument("project_id", type=int)
    sync.add_argument("--scan-dir", action="append", default=[])
    add_store_arguments(sync)
    sync.set_defaults(func=cmd_sync)

    # ----------------------
    # files
    # ----------------------
    files = sub.add_parser("files", help="List stored files of a project")
    files.add_argument("project_id", type=int)
    add_store_arguments(files)
    files.set_defaults(func=cmd_files)

    # ----------------------
    # watch
    # ----------------------
    watch = sub.add_parser("watch", help="Sync a project and rescan on change")
    watch.add_argument("project_id", type=int)
    watch.add_argument("--scan-dir", action="append", default=[])
    watch.add_argument("--debounce", type=float)
    add_store_arguments(watch)
    watch.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

"""Application entry point: wires services and runs the command line front end.

Usage:
    python main.py [--data-dir DIR] [--save-dir DIR] <command> ...

Examples:
    python main.py config --save-dir "~/Saves" --limit 50
    python main.py backup            # back up every slot that changed
    python main.py backup 0 2        # back up slots 0 and 2
    python main.py list --slot 0
    python main.py restore "Game 1 - 25-Jan-2024 09-00-00 AM"
    python main.py lock "Game 1 - 25-Jan-2024 09-00-00 AM"
    python main.py note "Game 1 - 25-Jan-2024 09-00-00 AM" "before the boss"
    python main.py prune 0 1 --all
    python main.py watch
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

from loguru import logger

from savekeeper.config import Config, get_config
from savekeeper.context import AppContext
from savekeeper.core.backup import BackupManager
from savekeeper.core.service import SnapshotService
from savekeeper.core.watcher import FileWatcher
from savekeeper.errors import BackupError
from savekeeper.logger import setup_logger
from savekeeper.utils import format_flags, format_size


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    backup_manager = BackupManager(config)
    watcher = FileWatcher(
        debounce=config.debounce_seconds,
        poll_interval=config.poll_interval,
        initial_delay=config.initial_scan_delay,
    )
    service = SnapshotService(config, backup_manager, watcher)

    return AppContext(
        config=config,
        backup_manager=backup_manager,
        watcher=watcher,
        service=service,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savekeeper",
        description="Deduplicated, timestamped backups of gamesave_N.sav files.",
    )
    parser.add_argument("--data-dir", type=Path, help="Directory holding config.json and logs")
    parser.add_argument("--save-dir", type=Path, help="Save directory (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug console output")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("config", help="Show or change configuration")
    p.add_argument("--limit", type=int, help="Max unlocked backups per game (0 = unlimited)")

    p = sub.add_parser("list", help="List backups, newest first")
    p.add_argument("--slot", type=int, help="Only this zero-based slot")
    p.add_argument("--hash", action="store_true", help="Include content hashes")
    p.add_argument("--json", action="store_true", help="Print JSON")

    p = sub.add_parser("backup", help="Back up slots now")
    p.add_argument("slots", nargs="*", type=int, help="Zero-based slots (default: all)")

    p = sub.add_parser("restore", help="Restore a backup into the save directory")
    p.add_argument("backup", help="Backup folder name or path")
    p.add_argument("--target", type=Path, help="Restore into this directory instead")

    for name, help_text in (("lock", "Protect a backup from deletion"), ("unlock", "Remove protection")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("backup", help="Backup folder name or path")

    p = sub.add_parser("note", help="Set or clear a backup note")
    p.add_argument("backup", help="Backup folder name")
    p.add_argument("text", nargs="?", help="Note text (omit to clear)")

    p = sub.add_parser("delete", help="Delete one backup")
    p.add_argument("backup", help="Backup folder name or path")

    p = sub.add_parser("prune", help="Delete backups of the given slots")
    p.add_argument("slots", nargs="+", type=int, help="Zero-based slots")
    p.add_argument("--all", action="store_true", help="Also delete the newest backup")
    p.add_argument("--include-locked", action="store_true", help="Also delete locked backups")

    sub.add_parser("watch", help="Watch the save directory and back up changes")
    return parser


def _print_backups(backups: list, as_json: bool) -> None:
    if as_json:
        print(json.dumps([b.to_dict() for b in backups], ensure_ascii=False, indent=2))
        return
    for b in backups:
        note = f"  # {b.note}" if b.note else ""
        print(f"[{format_flags(b.locked, bool(b.note))}] {b.filename}  {format_size(b.size)}{note}")


def _watch(ctx: AppContext) -> int:
    if not ctx.config.watcher_enabled:
        logger.warning("Watcher is disabled in the configuration (watcher.enabled)")
        return 1

    def on_batch(save_dir: Path, created: list[Path]) -> None:
        for path in created:
            print(f"Backed up {path.name}")

    ctx.service.start_watcher(on_batch)
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        ctx.service.stop_watcher()
    return 0


def run(args: argparse.Namespace, ctx: AppContext) -> int:
    service = ctx.service
    config = ctx.config

    if args.command == "config":
        with config.batch_update():
            if args.save_dir:
                config.save_path = args.save_dir.expanduser()
            if args.limit is not None:
                config.max_backups_per_game = args.limit
        print(f"save_path: {config.save_path or '(not set)'}")
        print(f"max_backups_per_game: {config.max_backups_per_game}")
        print(f"config file: {config.config_path}")
        return 0

    if args.command == "list":
        _print_backups(service.list(slot=args.slot, include_hash=args.hash), args.json)
    elif args.command == "backup":
        created = service.create(args.slots) if args.slots else service.backup_all()
        for path in created:
            print(f"Backed up {path.name}")
        if not created:
            print("Nothing to back up")
    elif args.command == "restore":
        result = service.restore(args.backup, args.target)
        print(f"Restored {', '.join(result.restored_files)}")
    elif args.command in ("lock", "unlock"):
        service.toggle_lock(args.backup, args.command == "lock")
    elif args.command == "note":
        service.set_note(args.backup, args.text)
    elif args.command == "delete":
        service.delete(args.backup)
    elif args.command == "prune":
        count = service.delete_batch(args.slots, keep_newest=not args.all, include_locked=args.include_locked)
        print(f"Deleted {count} backups")
    elif args.command == "watch":
        return _watch(ctx)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    config = Config(args.data_dir) if args.data_dir else get_config()
    setup_logger(config.log_dir, verbose=args.verbose)

    if args.save_dir and args.command != "config":
        config.override("save_path", str(args.save_dir.expanduser()))

    ctx = create_context(config)
    try:
        return run(args, ctx)
    except (BackupError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
File watcher using Watchdog.

Monitors BACKUP_INBOX for new or modified .json backup files and restores
them through the backup importer. Uses Observer with PollingObserver fallback
for cross-platform compatibility (especially Windows/Docker mounts).
"""
from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from buildconsole.core.config import settings
from buildconsole.etl.importer import import_file

ARCHIVE_DIRNAME = "imported"


def import_and_archive(path: str | Path) -> None:
    """Restore one backup, then move it aside so a restart does not replay it."""
    path = Path(path)
    log = import_file(path)
    archive = path.parent / ARCHIVE_DIRNAME
    archive.mkdir(exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    target = archive / f"{path.stem}.{stamp}.{log.status}{path.suffix}"
    path.replace(target)
    logger.info(f"Archived {path.name} → {target}")


class BackupFileHandler(FileSystemEventHandler):
    """Handles file system events for JSON backups in the inbox directory."""

    def __init__(self, settle_seconds: float = 0.5) -> None:
        super().__init__()
        # Debounce: a copy-in-progress fires several events for one file
        self._processing: set[str] = set()
        self._lock = threading.Lock()
        self._settle_seconds = settle_seconds

    def _should_process(self, path: str) -> bool:
        p = Path(path)
        return p.suffix.lower() == ".json" and p.is_file()

    def _process(self, path: str) -> None:
        with self._lock:
            if path in self._processing:
                return
            self._processing.add(path)

        try:
            # Let the writer finish before reading
            time.sleep(self._settle_seconds)
            logger.info(f"Watcher detected: {path}")
            import_and_archive(path)
        except Exception as exc:
            logger.error(f"Watcher import error for {path}: {exc}")
        finally:
            with self._lock:
                self._processing.discard(path)

    def _dispatch(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._should_process(event.src_path):
            threading.Thread(
                target=self._process, args=(event.src_path,), daemon=True
            ).start()

    def on_created(self, event: FileSystemEvent) -> None:
        self._dispatch(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._dispatch(event)


class InboxWatcher:
    """Manages the Watchdog observer lifecycle."""

    def __init__(self, inbox_path: str | None = None) -> None:
        self.inbox = Path(inbox_path or settings.BACKUP_INBOX)
        self.inbox.mkdir(parents=True, exist_ok=True)
        self._observer: Observer | None = None

    @property
    def active(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        handler = BackupFileHandler()

        # Try inotify/kqueue first; fall back to polling (works on Windows + Docker)
        try:
            self._observer = Observer()
            self._observer.schedule(handler, str(self.inbox), recursive=False)
            self._observer.start()
            logger.info(f"Backup watcher started (inotify/kqueue) → {self.inbox}")
        except OSError:
            logger.warning("Native watcher unavailable, falling back to polling")
            self._observer = PollingObserver(timeout=settings.WATCHER_POLL_INTERVAL)
            self._observer.schedule(handler, str(self.inbox), recursive=False)
            self._observer.start()
            logger.info(
                f"Backup watcher started (polling, {settings.WATCHER_POLL_INTERVAL}s) → {self.inbox}"
            )

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Backup watcher stopped")

    def scan_existing(self) -> None:
        """Restore any backups already sitting in the inbox at startup."""
        backups = sorted(self.inbox.glob("*.json"))
        if backups:
            logger.info(f"Processing {len(backups)} existing backup file(s) in inbox")
            for f in backups:
                try:
                    import_and_archive(f)
                except Exception as exc:
                    logger.error(f"Failed to import {f.name}: {exc}")
        else:
            logger.info("No existing backup files in inbox")


# Module-level singleton
_watcher: InboxWatcher | None = None


def get_watcher() -> InboxWatcher:
    global _watcher
    if _watcher is None:
        _watcher = InboxWatcher()
    return _watcher


def start_watcher() -> None:
    w = get_watcher()
    w.scan_existing()
    w.start()


def stop_watcher() -> None:
    w = get_watcher()
    w.stop()

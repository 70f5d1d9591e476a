"""
Outbound write journal.

Callers apply their change to local state first, then hand the store write to
the journal and move on. A single worker thread drains the queue in
submission order, retrying each operation with exponential backoff. The
outcome is tracked per path so a failed write is visible instead of lost.
"""
from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from buildconsole.core.errors import StoreError
from buildconsole.models.document import utcnow
from buildconsole.store.base import RemoteStore, normalize_path

PENDING = "pending"
SYNCED = "synced"
FAILED = "failed"


@dataclass
class WriteOp:
    kind: str  # "write" | "patch" | "delete"
    path: str
    value: Any = None
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass
class SyncState:
    path: str
    status: str
    attempts: int = 0
    last_error: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)


class WriteJournal:
    """FIFO write-through queue with retry/backoff and per-path status."""

    def __init__(
        self,
        store: RemoteStore,
        retries: int = 3,
        backoff: float = 0.5,
        synchronous: bool = False,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.retries = retries
        self.backoff = backoff
        self.synchronous = synchronous
        self._sleep = sleeper
        self._queue: "queue.Queue[Optional[WriteOp]]" = queue.Queue()
        self._states: dict[str, SyncState] = {}
        self._states_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    # ── Submission ────────────────────────────────────────────────────────────

    def write(self, path: str, value: Any) -> None:
        self.submit(WriteOp("write", normalize_path(path), value))

    def patch(self, path: str, partial: dict) -> None:
        self.submit(WriteOp("patch", normalize_path(path), partial))

    def delete(self, path: str) -> None:
        self.submit(WriteOp("delete", normalize_path(path)))

    def submit(self, op: WriteOp) -> None:
        self._set_state(op.path, PENDING)
        if self.synchronous:
            self._execute(op)
            return
        self._ensure_worker()
        self._queue.put(op)

    # ── Worker ────────────────────────────────────────────────────────────────

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._run, name="write-journal", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            op = self._queue.get()
            try:
                if op is None:
                    return
                self._execute(op)
            finally:
                self._queue.task_done()

    def _execute(self, op: WriteOp) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                self._apply(op)
            except StoreError as exc:
                if attempt > self.retries:
                    logger.error(f"journal: {op.kind} {op.path} failed after {attempt} attempts: {exc}")
                    self._set_state(op.path, FAILED, attempts=attempt, error=str(exc))
                    return
                delay = max(0.0, self.backoff * (2 ** (attempt - 1)))
                logger.warning(
                    f"journal: retrying {op.kind} {op.path} in {delay:.2f}s "
                    f"({attempt}/{self.retries}) after error: {exc}"
                )
                if delay:
                    self._sleep(delay)
                continue
            self._set_state(op.path, SYNCED, attempts=attempt)
            return

    def _apply(self, op: WriteOp) -> None:
        if op.kind == "write":
            self.store.write(op.path, op.value)
        elif op.kind == "patch":
            self.store.patch(op.path, op.value)
        elif op.kind == "delete":
            self.store.delete(op.path)
        else:
            raise ValueError(f"Unknown journal operation: {op.kind}")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted write has been attempted."""
        if self.synchronous or self._worker is None:
            return True
        if timeout is None:
            self._queue.join()
            return True
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def stop(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            self._queue.put(None)
            self._worker.join()
        self._worker = None

    # ── Status ────────────────────────────────────────────────────────────────

    def _set_state(self, path: str, status: str, attempts: int = 0, error: Optional[str] = None) -> None:
        with self._states_lock:
            self._states[path] = SyncState(path, status, attempts, error)

    def status(self, path: str) -> Optional[SyncState]:
        with self._states_lock:
            return self._states.get(normalize_path(path))

    def states(self) -> list[SyncState]:
        with self._states_lock:
            return list(self._states.values())

    def failures(self) -> list[SyncState]:
        return [s for s in self.states() if s.status == FAILED]

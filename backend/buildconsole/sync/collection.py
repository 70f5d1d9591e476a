"""
Incremental collection sync.

Keeps an insertion-ordered, identity-keyed map of one remote collection by
applying child added/changed/removed deltas, and hands the full snapshot to a
callback after every applied delta. Only the changed child crosses the store
boundary; the collection is never re-read as a whole.
"""
from __future__ import annotations

import copy
from typing import Any, Callable, Optional

from loguru import logger

from buildconsole.store.base import ErrorCallback, Unsubscribe


class CollectionSynchronizer:
    """Identity-keyed view of one collection, fed by child deltas."""

    def __init__(
        self,
        on_snapshot: Callable[[list[dict]], None],
        on_error: ErrorCallback = None,
    ) -> None:
        self._entities: dict[str, dict] = {}
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._unsubscribe: Optional[Unsubscribe] = None
        self._active = False
        self.path: Optional[str] = None

    @staticmethod
    def resolve_id(key: str, value: Any) -> str:
        """Prefer the id embedded in the value, fall back to the container key."""
        if isinstance(value, dict) and value.get("id"):
            return str(value["id"])
        return str(key)

    def attach(self, store, path: str) -> Unsubscribe:
        self.path = path
        self._active = True
        self._unsubscribe = store.listen_children(
            path,
            self.on_child_added,
            self.on_child_changed,
            self.on_child_removed,
            self.on_transport_error,
        )
        return self.detach

    def detach(self) -> None:
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def snapshot(self) -> list[dict]:
        return [copy.deepcopy(v) for v in self._entities.values()]

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._entities

    # ── Delta handlers ────────────────────────────────────────────────────────

    def on_child_added(self, key: str, value: Any) -> None:
        self._upsert(key, value)

    def on_child_changed(self, key: str, value: Any) -> None:
        self._upsert(key, value)

    def on_child_removed(self, key: str, value: Any) -> None:
        if not self._active:
            return
        entity_id = self.resolve_id(key, value)
        if entity_id in self._entities:
            del self._entities[entity_id]
            self._emit()

    def on_transport_error(self, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error(f"sync {self.path}: transport error: {exc}")

    def _upsert(self, key: str, value: Any) -> None:
        if not self._active or not value:
            return
        if not isinstance(value, dict):
            logger.warning(f"sync {self.path}: ignoring non-object child {key!r}")
            return
        entity_id = self.resolve_id(key, value)
        self._entities[entity_id] = {**value, "id": entity_id}
        self._emit()

    def _emit(self) -> None:
        self._on_snapshot(self.snapshot())

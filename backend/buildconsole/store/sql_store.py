"""
Document store on SQLModel/SQLite with in-process change notification.

Write semantics follow a realtime key-value tree:
  - write(path, value) replaces the subtree at ``path``; ``None`` deletes it.
  - If an ancestor of ``path`` is itself a stored row, the value is set inside
    that row's JSON instead of creating a new row.
  - patch() shallow-merges into an object; delete() removes the subtree.

After every committed mutation the store re-reads each subscribed path related
to the mutated one and dispatches the difference: whole-value callbacks for
``read`` subscribers, child added/changed/removed callbacks for
``listen_children`` subscribers.
"""
from __future__ import annotations

import copy
import itertools
import json
import threading
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from buildconsole.core.errors import StoreError
from buildconsole.models.document import StoreNode, utcnow
from buildconsole.store.base import (
    ChildCallback,
    ErrorCallback,
    RemoteStore,
    Unsubscribe,
    ValueCallback,
    is_related,
    normalize_path,
)


class _ValueListener:
    def __init__(self, path: str, on_value: ValueCallback, on_error: ErrorCallback):
        self.path = path
        self.on_value = on_value
        self.on_error = on_error


class _ChildListener:
    def __init__(
        self,
        path: str,
        on_added: ChildCallback,
        on_changed: ChildCallback,
        on_removed: ChildCallback,
        on_error: ErrorCallback,
    ):
        self.path = path
        self.on_added = on_added
        self.on_changed = on_changed
        self.on_removed = on_removed
        self.on_error = on_error


def _report(on_error: ErrorCallback, exc: Exception) -> None:
    if on_error is not None:
        on_error(exc)
    else:
        logger.error(f"store: unhandled transport error: {exc}")


def _children(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if isinstance(value, list):
        # Array-like collections arrive keyed "0", "1", …
        return {str(i): v for i, v in enumerate(value) if v is not None}
    return {}


def _set_nested(tree: dict, parts: list[str], value: Any) -> None:
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value


class SqlDocumentStore(RemoteStore):
    """RemoteStore backed by the ``store_nodes`` table."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._value_listeners: dict[int, _ValueListener] = {}
        self._child_listeners: dict[int, _ChildListener] = {}

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, path: str) -> Any:
        path = normalize_path(path)
        try:
            with Session(self._engine) as session:
                return self._load(session, path)
        except SQLAlchemyError as exc:
            raise StoreError(path, f"read failed: {exc}") from exc

    def _load(self, session: Session, path: str) -> Any:
        row = session.get(StoreNode, path)
        if row is not None:
            return json.loads(row.value)

        ancestor = self._find_ancestor(session, path)
        if ancestor is not None:
            node: Any = json.loads(ancestor.value)
            for part in path[len(ancestor.path) + 1:].split("/"):
                if not isinstance(node, dict) or part not in node:
                    return None
                node = node[part]
            return node

        rows = session.exec(
            select(StoreNode)
            .where(col(StoreNode.path).startswith(path + "/", autoescape=True))
            .order_by(StoreNode.path)
        ).all()
        if not rows:
            return None
        tree: dict = {}
        for r in rows:
            _set_nested(tree, r.path[len(path) + 1:].split("/"), json.loads(r.value))
        return tree

    def _find_ancestor(self, session: Session, path: str) -> Optional[StoreNode]:
        parts = path.split("/")
        for end in range(len(parts) - 1, 0, -1):
            row = session.get(StoreNode, "/".join(parts[:end]))
            if row is not None:
                return row
        return None

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def read(self, path: str, on_value: ValueCallback, on_error: ErrorCallback = None) -> Unsubscribe:
        path = normalize_path(path)
        listener = _ValueListener(path, on_value, on_error)
        with self._lock:
            listener_id = next(self._ids)
            self._value_listeners[listener_id] = listener
            try:
                value = self.get(path)
            except StoreError as exc:
                _report(on_error, exc)
            else:
                on_value(value)

        def unsubscribe() -> None:
            with self._lock:
                self._value_listeners.pop(listener_id, None)

        return unsubscribe

    def listen_children(
        self,
        path: str,
        on_added: ChildCallback,
        on_changed: ChildCallback,
        on_removed: ChildCallback,
        on_error: ErrorCallback = None,
    ) -> Unsubscribe:
        path = normalize_path(path)
        listener = _ChildListener(path, on_added, on_changed, on_removed, on_error)
        with self._lock:
            listener_id = next(self._ids)
            self._child_listeners[listener_id] = listener
            try:
                existing = _children(self.get(path))
            except StoreError as exc:
                _report(on_error, exc)
            else:
                for key, value in existing.items():
                    on_added(key, copy.deepcopy(value))

        def unsubscribe() -> None:
            with self._lock:
                self._child_listeners.pop(listener_id, None)

        return unsubscribe

    # ── Mutations ─────────────────────────────────────────────────────────────

    def write(self, path: str, value: Any) -> None:
        path = normalize_path(path)
        if value is None or value == {}:
            self.delete(path)
            return
        self._mutate(path, "write", lambda session: self._apply_write(session, path, value))

    def patch(self, path: str, partial: dict) -> None:
        path = normalize_path(path)

        def apply(session: Session) -> None:
            current = self._load(session, path)
            merged = dict(current) if isinstance(current, dict) else {}
            for key, v in partial.items():
                if v is None:
                    merged.pop(key, None)
                else:
                    merged[key] = v
            self._apply_write(session, path, merged or None)

        self._mutate(path, "patch", apply)

    def delete(self, path: str) -> None:
        path = normalize_path(path)
        self._mutate(path, "delete", lambda session: self._apply_write(session, path, None))

    def _apply_write(self, session: Session, path: str, value: Any) -> None:
        ancestor = self._find_ancestor(session, path)
        if ancestor is not None:
            tree = json.loads(ancestor.value)
            if not isinstance(tree, dict):
                tree = {}
            _set_nested(tree, path[len(ancestor.path) + 1:].split("/"), value)
            ancestor.value = json.dumps(tree)
            ancestor.updated_at = utcnow()
            session.add(ancestor)
            return

        existing = session.get(StoreNode, path)
        if existing is not None:
            session.delete(existing)
        for row in session.exec(
            select(StoreNode).where(col(StoreNode.path).startswith(path + "/", autoescape=True))
        ).all():
            session.delete(row)
        session.flush()
        if value is not None:
            session.add(StoreNode(path=path, value=json.dumps(value)))

    def _mutate(self, path: str, op: str, apply: Callable[[Session], None]) -> None:
        with self._lock:
            watched = self._watched_paths(path)
            before = self._snapshot(watched)
            try:
                with Session(self._engine) as session:
                    apply(session)
                    session.commit()
            except SQLAlchemyError as exc:
                logger.error(f"store: {op} {path} failed: {exc}")
                raise StoreError(path, f"{op} failed: {exc}") from exc
            logger.debug(f"store: {op} {path}")
            self._dispatch(before)

    # ── Change dispatch ───────────────────────────────────────────────────────

    def _watched_paths(self, path: str) -> set[str]:
        paths = {l.path for l in self._value_listeners.values() if is_related(l.path, path)}
        paths.update(l.path for l in self._child_listeners.values() if is_related(l.path, path))
        return paths

    def _snapshot(self, paths: set[str]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for p in paths:
            try:
                values[p] = self.get(p)
            except StoreError:
                values[p] = None
        return values

    def _dispatch(self, before: dict[str, Any]) -> None:
        after: dict[str, Any] = {}
        for p in before:
            try:
                after[p] = self.get(p)
            except StoreError as exc:
                self._fail_listeners(p, exc)

        for listener in list(self._value_listeners.values()):
            if listener.path in after and before[listener.path] != after[listener.path]:
                listener.on_value(copy.deepcopy(after[listener.path]))

        for listener in list(self._child_listeners.values()):
            if listener.path not in after:
                continue
            old = _children(before[listener.path])
            new = _children(after[listener.path])
            for key, value in old.items():
                if key not in new:
                    listener.on_removed(key, copy.deepcopy(value))
            for key, value in new.items():
                if key not in old:
                    listener.on_added(key, copy.deepcopy(value))
                elif old[key] != value:
                    listener.on_changed(key, copy.deepcopy(value))

    def _fail_listeners(self, path: str, exc: StoreError) -> None:
        for listener in list(self._value_listeners.values()):
            if listener.path == path:
                _report(listener.on_error, exc)
        for listener in list(self._child_listeners.values()):
            if listener.path == path:
                _report(listener.on_error, exc)

"""
Storage contract required of any document backend.

Paths are slash-separated keys into a JSON tree. The tenant's data lives under
``users/{tenant}``:

  users/{tenant}/items/{itemId}        → Item
  users/{tenant}/estimates/{estId}     → Estimate
  users/{tenant}/customers/{custId}    → Customer
  users/{tenant}/followups/{fuId}      → FollowUp
  users/{tenant}/info                  → company info object
  users/{tenant}/logo                  → base64 data URL string
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

ITEMS = "items"
ESTIMATES = "estimates"
CUSTOMERS = "customers"
FOLLOWUPS = "followups"
INFO = "info"
LOGO = "logo"

ValueCallback = Callable[[Any], None]
ChildCallback = Callable[[str, Any], None]  # (key, value)
ErrorCallback = Optional[Callable[[Exception], None]]
Unsubscribe = Callable[[], None]


def normalize_path(path: str) -> str:
    return "/".join(part for part in path.split("/") if part)


def join_path(*parts: str) -> str:
    return normalize_path("/".join(str(p) for p in parts))


def tenant_path(tenant: str, *parts: str) -> str:
    """Build ``users/{tenant}/...``."""
    return join_path("users", tenant, *parts)


def is_related(a: str, b: str) -> bool:
    """True when one path equals, contains or lies inside the other."""
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


class RemoteStore(ABC):
    """Networked-style key-value tree: get/set/update/delete plus subscriptions."""

    @abstractmethod
    def get(self, path: str) -> Any:
        """One-shot read of the value at ``path`` (``None`` when absent)."""

    @abstractmethod
    def read(self, path: str, on_value: ValueCallback, on_error: ErrorCallback = None) -> Unsubscribe:
        """Subscribe to whole-value changes at ``path``; fires once immediately."""

    @abstractmethod
    def listen_children(
        self,
        path: str,
        on_added: ChildCallback,
        on_changed: ChildCallback,
        on_removed: ChildCallback,
        on_error: ErrorCallback = None,
    ) -> Unsubscribe:
        """Subscribe to per-child deltas; existing children arrive as additions."""

    @abstractmethod
    def write(self, path: str, value: Any) -> None:
        """Replace the value at ``path`` entirely."""

    @abstractmethod
    def patch(self, path: str, partial: dict) -> None:
        """Shallow-merge ``partial`` into the object at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the value at ``path``."""

    def read_collection(
        self, path: str, on_snapshot: Callable[[list[dict]], None], on_error: ErrorCallback = None
    ) -> Unsubscribe:
        """Subscribe to a collection through child deltas, receiving full snapshots."""
        from buildconsole.sync.collection import CollectionSynchronizer

        synchronizer = CollectionSynchronizer(on_snapshot, on_error)
        return synchronizer.attach(self, path)

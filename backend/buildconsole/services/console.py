"""
BusinessConsole: local view state kept in step with the document store.

Each collection is mirrored through a CollectionSynchronizer; every snapshot
replaces the local view. User operations update the local view first and
then hand the store write to the WriteJournal without waiting for it, so a
remote echo of the same value simply overwrites the optimistic entry.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime
from functools import partial
from typing import Any, Callable, Generic, Optional, Type, TypeVar

from loguru import logger
from pydantic import ValidationError

from buildconsole.core.config import settings
from buildconsole.core.errors import NotFoundError
from buildconsole.schemas.entities import (
    CompanyInfo,
    Customer,
    Document,
    Estimate,
    EstimateStatus,
    FollowUp,
    Item,
)
from buildconsole.schemas.requests import EstimateDraft, FollowUpIn
from buildconsole.services import followups as followup_rules
from buildconsole.services import lifecycle
from buildconsole.services.lifecycle import iso_timestamp, millis
from buildconsole.services.reconciliation import items_to_provision, reconcile_customer
from buildconsole.store.base import (
    CUSTOMERS,
    ESTIMATES,
    FOLLOWUPS,
    INFO,
    ITEMS,
    LOGO,
    RemoteStore,
    Unsubscribe,
    tenant_path,
)
from buildconsole.sync.journal import SYNCED, SyncState, WriteJournal

D = TypeVar("D", bound=Document)

# Unsaved revision drafts kept in memory; the oldest are dropped first
MAX_PENDING_DRAFTS = 50


class LocalView(Generic[D]):
    """
    Ordered, id-keyed local copy of one collection.

    ``unsynced`` returns the ids whose local writes have not reached the store
    yet (pending or failed). A snapshot never overrides those entries: the
    local value, or its absence after a local delete, stands until the write
    syncs.
    """

    def __init__(
        self,
        name: str,
        model: Type[D],
        sort_key: Optional[Callable[[D], Any]] = None,
        reverse: bool = False,
        unsynced: Optional[Callable[[], set[str]]] = None,
    ) -> None:
        self.name = name
        self.model = model
        self._unsynced = unsynced or set
        self._sort_key = sort_key
        self._reverse = reverse
        self._entities: dict[str, D] = {}
        self._lock = threading.Lock()

    def replace(self, snapshot: list[dict]) -> None:
        entities: dict[str, D] = {}
        for raw in snapshot:
            try:
                entity = self.model.model_validate(raw)
            except ValidationError as exc:
                logger.warning(f"{self.name}: skipping invalid document {raw.get('id')!r}: {exc}")
                continue
            entities[entity.id] = entity
        with self._lock:
            for entity_id in self._unsynced():
                local = self._entities.get(entity_id)
                if local is None:
                    entities.pop(entity_id, None)
                else:
                    entities[entity_id] = local
            self._entities = entities

    def put(self, entity: D) -> None:
        with self._lock:
            self._entities[entity.id] = entity

    def remove(self, entity_id: str) -> bool:
        with self._lock:
            return self._entities.pop(entity_id, None) is not None

    def get(self, entity_id: str) -> Optional[D]:
        with self._lock:
            return self._entities.get(entity_id)

    def require(self, entity_id: str) -> D:
        entity = self.get(entity_id)
        if entity is None:
            raise NotFoundError(self.name, entity_id)
        return entity

    def list(self) -> list[D]:
        with self._lock:
            entities = list(self._entities.values())
        if self._sort_key is not None:
            entities.sort(key=self._sort_key, reverse=self._reverse)
        return entities

    def __len__(self) -> int:
        return len(self._entities)


class BusinessConsole:
    """The single operator's items, estimates, customers and follow-ups."""

    def __init__(self, store: RemoteStore, journal: WriteJournal, tenant: str) -> None:
        self.store = store
        self.journal = journal
        self.tenant = tenant
        self.items: LocalView[Item] = LocalView(
            ITEMS, Item, unsynced=partial(self._unsynced_ids, ITEMS)
        )
        self.estimates: LocalView[Estimate] = LocalView(
            ESTIMATES,
            Estimate,
            sort_key=lambda e: e.created_at,
            reverse=True,
            unsynced=partial(self._unsynced_ids, ESTIMATES),
        )
        self.customers: LocalView[Customer] = LocalView(
            CUSTOMERS, Customer, unsynced=partial(self._unsynced_ids, CUSTOMERS)
        )
        self.followups: LocalView[FollowUp] = LocalView(
            FOLLOWUPS, FollowUp, unsynced=partial(self._unsynced_ids, FOLLOWUPS)
        )
        self.company_info = CompanyInfo()
        self.logo: Optional[str] = None
        self.sync_errors: list[str] = []
        self._drafts: OrderedDict[str, Estimate] = OrderedDict()
        self._unsubscribers: list[Unsubscribe] = []

    def path(self, *parts: str) -> str:
        return tenant_path(self.tenant, *parts)

    def _unsynced_ids(self, collection: str) -> set[str]:
        """Ids in ``collection`` whose last journal write is pending or failed."""
        prefix = self.path(collection) + "/"
        ids = set()
        for state in self.journal.states():
            if state.status == SYNCED or not state.path.startswith(prefix):
                continue
            entity_id = state.path[len(prefix):]
            if "/" not in entity_id:
                ids.add(entity_id)
        return ids

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def start(self) -> None:
        if self._unsubscribers:
            return
        for view in (self.items, self.estimates, self.customers, self.followups):
            self._unsubscribers.append(
                self.store.read_collection(
                    self.path(view.name), view.replace, partial(self._on_sync_error, view.name)
                )
            )
        self._unsubscribers.append(
            self.store.read(self.path(INFO), self._on_info, partial(self._on_sync_error, INFO))
        )
        self._unsubscribers.append(
            self.store.read(self.path(LOGO), self._on_logo, partial(self._on_sync_error, LOGO))
        )
        logger.info(f"Console subscribed for tenant {self.tenant}")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_info(self, value: Any) -> None:
        if not value:
            return
        try:
            self.company_info = CompanyInfo.model_validate(value)
        except ValidationError as exc:
            logger.warning(f"info: ignoring invalid company info: {exc}")

    def _on_logo(self, value: Any) -> None:
        if value:
            self.logo = value

    def _on_sync_error(self, name: str, exc: Exception) -> None:
        logger.error(f"sync {name}: {exc}")
        self.sync_errors.append(f"{name}: {exc}")

    # ── Catalog ───────────────────────────────────────────────────────────────

    def add_item(self, item: Item) -> Item:
        self.items.put(item)
        self.journal.write(self.path(ITEMS, item.id), item.to_store())
        return item

    def update_item(self, item: Item) -> Item:
        self.items.require(item.id)
        self.items.put(item)
        self.journal.patch(self.path(ITEMS, item.id), item.to_patch())
        return item

    def delete_item(self, item_id: str) -> bool:
        removed = self.items.remove(item_id)
        self.journal.delete(self.path(ITEMS, item_id))
        return removed

    # ── Estimates ─────────────────────────────────────────────────────────────

    def save_estimate(self, draft: EstimateDraft, now: Optional[datetime] = None) -> Estimate:
        """
        Persist a submitted estimate form.

        Customer and catalog reconciliation are queued ahead of the estimate
        write on the same journal, so they reach the store first.
        """
        stored = self.estimates.get(draft.id) if draft.id else None
        existing = stored or (self._drafts.pop(draft.id, None) if draft.id else None)
        if existing is None and draft.parent_id:
            existing = self._revision_from_draft(draft, now)
        estimate = lifecycle.build_estimate(
            draft, existing, now=now, number_prefix=settings.ESTIMATE_NUMBER_PREFIX
        )

        change = reconcile_customer(estimate, self.customers.list(), now)
        if change is not None:
            if change.created:
                self.add_customer(change.customer)
            else:
                self.update_customer(change.customer)

        for item in items_to_provision(estimate, self.items.list()):
            logger.info(f"Adding '{item.name}' to the catalog from estimate {estimate.estimate_number}")
            self.add_item(item)

        self.estimates.put(estimate)
        if stored is not None:
            self.journal.patch(self.path(ESTIMATES, estimate.id), estimate.to_patch())
        else:
            self.journal.write(self.path(ESTIMATES, estimate.id), estimate.to_store())
        logger.info(
            f"Saved estimate {estimate.estimate_number} v{estimate.version} "
            f"total={estimate.total_amount:.2f}"
        )
        return estimate

    def delete_estimate(self, estimate_id: str) -> bool:
        removed = self.estimates.remove(estimate_id)
        self.journal.delete(self.path(ESTIMATES, estimate_id))
        return removed

    def update_estimate_status(self, estimate_id: str, status: EstimateStatus) -> Estimate:
        updated = lifecycle.set_status(self.estimates.require(estimate_id), status)
        self.estimates.put(updated)
        self.journal.patch(self.path(ESTIMATES, estimate_id), {"status": updated.status.value})
        return updated

    def revise_estimate(self, estimate_id: str, now: Optional[datetime] = None) -> Estimate:
        """Draft a revision; it is only persisted when saved with ``save_estimate``."""
        draft = lifecycle.revise(self.estimates.require(estimate_id), now=now)
        self._drafts[draft.id] = draft
        while len(self._drafts) > MAX_PENDING_DRAFTS:
            self._drafts.popitem(last=False)
        return draft

    def _revision_from_draft(self, draft: EstimateDraft, now: Optional[datetime]) -> Estimate:
        """
        Rebuild a revision whose in-memory draft is gone (restart or eviction).

        The submitted ``parentId`` must name a known estimate. The submitted
        version is kept unless that version is already saved in the chain.
        """
        parent = self.estimates.require(draft.parent_id)
        root = self.estimates.get(parent.parent_id) if parent.parent_id else None
        root = root or parent
        chain = self.revision_chain(root.id)
        saved = {e.version for e in chain}
        version = draft.version
        if not version or version < 2 or version in saved:
            version = max(saved) + 1
        revision = lifecycle.revise(root, now=now, new_id=draft.id, version=version)
        if draft.estimate_number and draft.estimate_number != revision.estimate_number:
            logger.warning(
                f"Revision draft number {draft.estimate_number} does not match "
                f"{revision.estimate_number}; using the latter"
            )
        return revision

    def revision_chain(self, estimate_id: str) -> list[Estimate]:
        """The original estimate and all its saved revisions, oldest version first."""
        estimate = self.estimates.require(estimate_id)
        root = estimate.parent_id or estimate.id
        chain = [e for e in self.estimates.list() if e.id == root or e.parent_id == root]
        return sorted(chain, key=lambda e: e.version)

    # ── Customers ─────────────────────────────────────────────────────────────

    def add_customer(self, customer: Customer) -> Customer:
        self.customers.put(customer)
        self.journal.write(self.path(CUSTOMERS, customer.id), customer.to_store())
        return customer

    def update_customer(self, customer: Customer) -> Customer:
        self.customers.put(customer)
        self.journal.patch(self.path(CUSTOMERS, customer.id), customer.to_patch())
        return customer

    def delete_customer(self, customer_id: str) -> bool:
        removed = self.customers.remove(customer_id)
        self.journal.delete(self.path(CUSTOMERS, customer_id))
        return removed

    def search_customers(self, term: str) -> list[Customer]:
        needle = term.lower()
        return [c for c in self.customers.list() if needle in c.name.lower() or term in c.phone]

    # ── Follow-ups ────────────────────────────────────────────────────────────

    def add_followup(self, data: FollowUpIn, now: Optional[datetime] = None) -> FollowUp:
        customer = self.customers.require(data.customer_id)
        followup = FollowUp(
            **data.model_dump(),
            id=f"FLW-{millis(now)}",
            customer_name=customer.name,
            created_at=iso_timestamp(now),
        )
        self.followups.put(followup)
        self.journal.write(self.path(FOLLOWUPS, followup.id), followup.to_store())
        return followup

    def update_followup(self, followup: FollowUp) -> FollowUp:
        self.followups.put(followup)
        self.journal.patch(self.path(FOLLOWUPS, followup.id), followup.to_patch())
        return followup

    def toggle_followup(self, followup_id: str) -> FollowUp:
        followup = self.followups.require(followup_id)
        return self.update_followup(
            followup.model_copy(update={"status": followup_rules.toggled_status(followup.status)})
        )

    def delete_followup(self, followup_id: str) -> bool:
        removed = self.followups.remove(followup_id)
        self.journal.delete(self.path(FOLLOWUPS, followup_id))
        return removed

    # ── Company profile ───────────────────────────────────────────────────────

    def update_company_info(self, info: CompanyInfo) -> CompanyInfo:
        self.company_info = info
        self.journal.write(self.path(INFO), info.to_store())
        return info

    def set_logo(self, data_url: str) -> None:
        self.logo = data_url
        self.journal.write(self.path(LOGO), data_url)

    def remove_logo(self) -> None:
        self.logo = None
        self.journal.delete(self.path(LOGO))

    # ── Export / status ───────────────────────────────────────────────────────

    def export_all(self, now: Optional[datetime] = None) -> dict:
        """Full JSON-serializable dump of the tenant's data."""
        return {
            ITEMS: [i.to_store() for i in self.items.list()],
            ESTIMATES: [e.to_store() for e in self.estimates.list()],
            CUSTOMERS: [c.to_store() for c in self.customers.list()],
            FOLLOWUPS: [f.to_store() for f in self.followups.list()],
            LOGO: self.logo,
            INFO: self.company_info.to_store(),
            "exportedAt": iso_timestamp(now),
        }

    def sync_status(self) -> list[SyncState]:
        return self.journal.states()


# Module-level singleton
_console: Optional[BusinessConsole] = None


def get_console() -> BusinessConsole:
    global _console
    if _console is None:
        from buildconsole.core.database import engine
        from buildconsole.store.sql_store import SqlDocumentStore

        store = SqlDocumentStore(engine)
        journal = WriteJournal(
            store, retries=settings.WRITE_RETRIES, backoff=settings.WRITE_BACKOFF_SECONDS
        )
        _console = BusinessConsole(store, journal, settings.TENANT_ID)
    return _console


def start_console() -> BusinessConsole:
    console = get_console()
    console.start()
    return console


def stop_console() -> None:
    if _console is not None:
        _console.journal.flush(timeout=10)
        _console.stop()
        _console.journal.stop()

"""
Backup importer: restores a JSON export into the document store.

Accepted layout is the one produced by the export endpoint:

    {"items": [...], "estimates": [...], "customers": [...], "followups": [...],
     "info": {...}, "logo": "data:image/png;base64,...", "exportedAt": "..."}

Collections may also be maps keyed by id (the raw store shape). Every entity
is validated against its model; invalid ones are skipped with a warning.
Entities are written at their own id, so importing the same file twice
overwrites rather than duplicates.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError
from sqlmodel import Session

from buildconsole.core.config import settings
from buildconsole.core.errors import StoreError
from buildconsole.models.audit import ImportLog
from buildconsole.models.document import utcnow
from buildconsole.schemas.entities import CompanyInfo, Customer, Estimate, FollowUp, Item
from buildconsole.store.base import (
    CUSTOMERS,
    ESTIMATES,
    FOLLOWUPS,
    INFO,
    ITEMS,
    LOGO,
    RemoteStore,
    tenant_path,
)

_MODELS = {
    ITEMS: Item,
    ESTIMATES: Estimate,
    CUSTOMERS: Customer,
    FOLLOWUPS: FollowUp,
}


def _entries(value: Any) -> list[dict]:
    if isinstance(value, dict):
        return [{**v, "id": v.get("id") or k} for k, v in value.items() if isinstance(v, dict)]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, dict)]
    return []


def restore_backup(data: dict, store: RemoteStore, tenant: str) -> tuple[dict[str, int], list[str]]:
    """Write every valid entity of a backup document; returns (counts, warnings)."""
    if not isinstance(data, dict):
        raise ValueError("Backup must be a JSON object")

    counts = {name: 0 for name in _MODELS}
    warnings: list[str] = []

    for name, model in _MODELS.items():
        for raw in _entries(data.get(name)):
            try:
                entity = model.model_validate(raw)
            except ValidationError as exc:
                warnings.append(f"{name}: skipped {raw.get('id')!r} ({exc.error_count()} invalid field(s))")
                continue
            store.write(tenant_path(tenant, name, entity.id), entity.to_store())
            counts[name] += 1

    if data.get(INFO):
        try:
            info = CompanyInfo.model_validate(data[INFO])
        except ValidationError:
            warnings.append("info: skipped invalid company info")
        else:
            store.write(tenant_path(tenant, INFO), info.to_store())

    logo = data.get(LOGO)
    if isinstance(logo, str) and logo.startswith("data:image/"):
        store.write(tenant_path(tenant, LOGO), logo)
    elif logo:
        warnings.append("logo: skipped value that is not an image data URL")

    return counts, warnings


def import_file(
    file_path: str | Path,
    store: Optional[RemoteStore] = None,
    tenant: Optional[str] = None,
    bind=None,
) -> ImportLog:
    """
    Import one backup file and record the attempt.

    1. Read and decode JSON.
    2. Validate and write entities.
    3. Return the persisted ImportLog record.
    """
    if store is None:
        from buildconsole.services.console import get_console

        store = get_console().store
    if bind is None:
        from buildconsole.core.database import engine as bind
    tenant = tenant or settings.TENANT_ID

    file_path = Path(file_path)
    log = ImportLog(
        file_path=str(file_path),
        file_name=file_path.name,
        status="error",
        started_at=utcnow(),
    )

    warnings: list[str] = []
    try:
        raw = file_path.read_text(encoding="utf-8-sig")
        logger.info(f"Importing backup {file_path.name} ({len(raw):,} chars)")
        counts, warnings = restore_backup(json.loads(raw), store, tenant)

        log.items_imported = counts[ITEMS]
        log.estimates_imported = counts[ESTIMATES]
        log.customers_imported = counts[CUSTOMERS]
        log.followups_imported = counts[FOLLOWUPS]
        log.status = "success" if not warnings else "partial"
        logger.info(
            f"{file_path.name}: {counts[ITEMS]} items, {counts[ESTIMATES]} estimates, "
            f"{counts[CUSTOMERS]} customers, {counts[FOLLOWUPS]} follow-ups restored"
        )

    except (OSError, ValueError, StoreError) as exc:
        log.status = "error"
        log.error_message = str(exc)
        logger.error(f"Import failed for {file_path.name}: {exc}")

    finally:
        log.warnings = json.dumps(warnings[:100]) if warnings else None
        log.finished_at = utcnow()

        # Persist log
        with Session(bind) as session:
            session.add(log)
            session.commit()
            session.refresh(log)

    return log

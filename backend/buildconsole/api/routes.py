"""
General REST API routes for the console backend.

Endpoints:
  GET    /api/health
  GET    /api/settings
  GET    /api/sync-status
  GET    /api/company/info
  PUT    /api/company/info
  GET    /api/company/logo
  PUT    /api/company/logo
  DELETE /api/company/logo
  GET    /api/analytics
  GET    /api/backup/export
  POST   /api/backup/import
  GET    /api/backup/import-logs
"""
from __future__ import annotations

import base64
import binascii
import json
import tempfile
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from buildconsole.core.config import settings
from buildconsole.core.database import get_session
from buildconsole.etl.importer import import_file
from buildconsole.etl.watcher import get_watcher
from buildconsole.models.audit import ImportLog
from buildconsole.schemas.entities import CompanyInfo
from buildconsole.schemas.responses import (
    HealthResponse,
    ImportLogRead,
    ImportResponse,
    SettingsRead,
    SyncStateRead,
    SyncStatusResponse,
)
from buildconsole.services.analytics import BusinessStats, business_stats
from buildconsole.services.console import BusinessConsole, get_console
from buildconsole.sync.journal import FAILED, PENDING

router = APIRouter(prefix="/api")


class LogoIn(BaseModel):
    data_url: str

    @field_validator("data_url")
    @classmethod
    def image_data_url(cls, v: str) -> str:
        header, sep, payload = v.partition(",")
        if not sep or not header.startswith("data:image/") or not header.endswith(";base64"):
            raise ValueError("logo must be a base64 image data URL")
        try:
            size = len(base64.b64decode(payload, validate=True))
        except (binascii.Error, ValueError):
            raise ValueError("logo payload is not valid base64")
        if size > settings.MAX_LOGO_BYTES:
            raise ValueError(f"logo must be under {settings.MAX_LOGO_BYTES // (1024 * 1024)}MB")
        return v


# ── Health ────────────────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
def health(session: Session = Depends(get_session)):
    try:
        session.exec(select(ImportLog).limit(1))
        db_status = "ok"
    except SQLAlchemyError as e:
        db_status = f"error: {e}"
    return HealthResponse(
        status="ok",
        db=db_status,
        tenant=settings.TENANT_ID,
        inbox=settings.BACKUP_INBOX,
    )


@router.get("/settings", response_model=SettingsRead)
def get_settings():
    w = get_watcher()
    return SettingsRead(
        tenant=settings.TENANT_ID,
        inbox_path=str(w.inbox),
        watcher_active=w.active,
        db_path=settings.DATABASE_URL,
        write_retries=settings.WRITE_RETRIES,
    )


@router.get("/sync-status", response_model=SyncStatusResponse)
def sync_status(
    only_failed: bool = Query(default=False),
    console: BusinessConsole = Depends(get_console),
):
    """Outcome of every write handed to the journal, per store path."""
    states = console.sync_status()
    entries = [s for s in states if s.status == FAILED] if only_failed else states
    return SyncStatusResponse(
        pending=sum(1 for s in states if s.status == PENDING),
        failed=sum(1 for s in states if s.status == FAILED),
        entries=[SyncStateRead.model_validate(s, from_attributes=True) for s in entries],
        subscription_errors=list(console.sync_errors),
    )


# ── Company profile ───────────────────────────────────────────────────────────


@router.get("/company/info", response_model=CompanyInfo)
def get_company_info(console: BusinessConsole = Depends(get_console)):
    return console.company_info


@router.put("/company/info", response_model=CompanyInfo)
def update_company_info(body: CompanyInfo, console: BusinessConsole = Depends(get_console)):
    return console.update_company_info(body)


@router.get("/company/logo")
def get_logo(console: BusinessConsole = Depends(get_console)) -> dict:
    return {"data_url": console.logo}


@router.put("/company/logo")
def set_logo(body: LogoIn, console: BusinessConsole = Depends(get_console)) -> dict:
    console.set_logo(body.data_url)
    logger.info("Company logo updated")
    return {"status": "ok"}


@router.delete("/company/logo")
def remove_logo(console: BusinessConsole = Depends(get_console)) -> dict:
    console.remove_logo()
    return {"status": "deleted"}


# ── Analytics ─────────────────────────────────────────────────────────────────


@router.get("/analytics", response_model=BusinessStats)
def analytics(
    start: Optional[date] = Query(default=None, description="Include estimates created on/after"),
    end: Optional[date] = Query(default=None, description="Include estimates created on/before"),
    console: BusinessConsole = Depends(get_console),
):
    """Counts, values, conversion rate and monthly trend of estimates."""
    return business_stats(console.estimates.list(), start, end)


# ── Backup ────────────────────────────────────────────────────────────────────


@router.get("/backup/export")
def export_backup(console: BusinessConsole = Depends(get_console)):
    """Full JSON export of the tenant's data as a download."""
    data = console.export_all()
    filename = f"pixar_cloud_backup_{data['exportedAt'][:10]}.json"
    return JSONResponse(
        content=data,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/backup/import", response_model=ImportResponse)
async def import_backup(
    file: Optional[UploadFile] = File(default=None),
    path: Optional[str] = Query(default=None, description="Absolute path to a backup on the server"),
    console: BusinessConsole = Depends(get_console),
):
    """
    Restore a JSON backup.
    Either upload a file via multipart, or provide a server-side path.
    """
    if file is not None:
        suffix = Path(file.filename or "upload.json").suffix
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
            tmp.write(await file.read())
            tmp_path = tmp.name
        log = import_file(tmp_path, store=console.store, tenant=console.tenant)
        Path(tmp_path).unlink(missing_ok=True)
    elif path:
        if not Path(path).exists():
            raise HTTPException(status_code=404, detail=f"File not found: {path}")
        log = import_file(path, store=console.store, tenant=console.tenant)
    else:
        raise HTTPException(
            status_code=400, detail="Provide either a file upload or a path parameter"
        )

    warnings = json.loads(log.warnings) if log.warnings else None
    return ImportResponse(
        id=log.id,
        file_name=log.file_name,
        status=log.status,
        items_imported=log.items_imported,
        estimates_imported=log.estimates_imported,
        customers_imported=log.customers_imported,
        followups_imported=log.followups_imported,
        error_message=log.error_message,
        warnings=warnings,
        started_at=log.started_at,
        finished_at=log.finished_at,
    )


@router.get("/backup/import-logs", response_model=list[ImportLogRead])
def list_import_logs(
    limit: int = Query(default=50, ge=1, le=200),
    session: Session = Depends(get_session),
):
    stmt = (
        select(ImportLog)
        .order_by(col(ImportLog.started_at).desc())
        .limit(limit)
    )
    return session.exec(stmt).all()

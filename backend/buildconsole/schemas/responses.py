"""Pydantic response schemas for API endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from buildconsole.schemas.entities import Document, EstimateLineItem, FollowUp, TaxMode


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"
    tenant: str
    inbox: str


class SyncStateRead(BaseModel):
    path: str
    status: str  # "pending", "synced", "failed"
    attempts: int
    last_error: Optional[str]
    updated_at: datetime

    class Config:
        from_attributes = True


class SyncStatusResponse(BaseModel):
    pending: int
    failed: int
    entries: list[SyncStateRead]
    subscription_errors: list[str]


class PricingResponse(Document):
    items: list[EstimateLineItem]
    sub_total: float
    auto_gst: float
    gst_extra: float  # effective tax
    gst_calculation_mode: TaxMode
    gst_breakdown: dict[str, float]
    discount: float
    total_amount: float


class AgendaEntry(FollowUp):
    customer_phone: Optional[str] = None
    whatsapp_url: Optional[str] = None


class AgendaResponse(BaseModel):
    upcoming: list[AgendaEntry]
    completed: list[AgendaEntry]
    due: list[AgendaEntry]


class DeleteResponse(BaseModel):
    status: str
    id: str


class ImportResponse(BaseModel):
    id: int
    file_name: str
    status: str
    items_imported: int
    estimates_imported: int
    customers_imported: int
    followups_imported: int
    error_message: Optional[str]
    warnings: Optional[list[str]]
    started_at: datetime
    finished_at: Optional[datetime]


class ImportLogRead(BaseModel):
    id: int
    file_name: str
    status: str
    items_imported: int
    estimates_imported: int
    customers_imported: int
    followups_imported: int
    error_message: Optional[str]
    started_at: datetime
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True


class SettingsRead(BaseModel):
    tenant: str
    inbox_path: str
    watcher_active: bool
    db_path: str
    write_retries: int

"""
Customer and follow-up API routes.

Endpoints:
  GET    /api/customers                      – all customers, optional ?q= search
  GET    /api/customers/{id}                 – one customer
  POST   /api/customers                      – add a customer
  PUT    /api/customers/{id}                 – edit a customer
  DELETE /api/customers/{id}?confirm=true    – delete permanently
  GET    /api/followups                      – all follow-ups in schedule order
  GET    /api/followups/agenda               – upcoming / completed / due lists
  POST   /api/followups                      – schedule a follow-up
  PUT    /api/followups/{id}                 – edit a follow-up
  POST   /api/followups/{id}/toggle          – Pending <-> Completed
  DELETE /api/followups/{id}?confirm=true    – delete permanently
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from buildconsole.api.estimate_routes import require_confirmation
from buildconsole.core.errors import NotFoundError
from buildconsole.schemas.entities import Customer, FollowUp
from buildconsole.schemas.requests import CustomerIn, FollowUpIn
from buildconsole.schemas.responses import AgendaEntry, AgendaResponse, DeleteResponse
from buildconsole.services import followups as followup_rules
from buildconsole.services.console import BusinessConsole, get_console
from buildconsole.services.lifecycle import iso_timestamp, millis

customer_router = APIRouter(prefix="/api/customers", tags=["customers"])
followup_router = APIRouter(prefix="/api/followups", tags=["followups"])


# ── Customers ─────────────────────────────────────────────────────────────────


@customer_router.get("", response_model=list[Customer])
def list_customers(
    q: Optional[str] = Query(default=None, description="Name or phone fragment"),
    console: BusinessConsole = Depends(get_console),
):
    if q:
        return console.search_customers(q)
    return sorted(console.customers.list(), key=lambda c: c.name.lower())


@customer_router.get("/{customer_id}", response_model=Customer)
def get_customer(customer_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return console.customers.require(customer_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@customer_router.post("", response_model=Customer, status_code=201)
def create_customer(body: CustomerIn, console: BusinessConsole = Depends(get_console)):
    customer = Customer(
        id=f"CUST-{millis()}",
        created_at=iso_timestamp(),
        **body.model_dump(),
    )
    return console.add_customer(customer)


@customer_router.put("/{customer_id}", response_model=Customer)
def update_customer(
    customer_id: str,
    body: CustomerIn,
    console: BusinessConsole = Depends(get_console),
):
    try:
        existing = console.customers.require(customer_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return console.update_customer(existing.model_copy(update=body.model_dump()))


@customer_router.delete("/{customer_id}", response_model=DeleteResponse)
def delete_customer(
    customer_id: str,
    confirm: bool = Query(default=False),
    console: BusinessConsole = Depends(get_console),
):
    require_confirmation(confirm)
    try:
        console.customers.require(customer_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    console.delete_customer(customer_id)
    return DeleteResponse(status="deleted", id=customer_id)


# ── Follow-ups ────────────────────────────────────────────────────────────────


def _agenda_entry(followup: FollowUp, console: BusinessConsole) -> AgendaEntry:
    customer = console.customers.get(followup.customer_id)
    phone = customer.phone if customer else None
    return AgendaEntry(
        **followup.model_dump(),
        customer_phone=phone,
        whatsapp_url=followup_rules.whatsapp_link(phone),
    )


@followup_router.get("", response_model=list[FollowUp])
def list_followups(console: BusinessConsole = Depends(get_console)):
    return followup_rules.agenda(console.followups.list())


@followup_router.get("/agenda", response_model=AgendaResponse)
def followup_agenda(console: BusinessConsole = Depends(get_console)):
    """Follow-ups split for the agenda screen, each with a WhatsApp link."""
    followups = console.followups.list()
    return AgendaResponse(
        upcoming=[_agenda_entry(f, console) for f in followup_rules.upcoming(followups)],
        completed=[_agenda_entry(f, console) for f in followup_rules.completed(followups)],
        due=[_agenda_entry(f, console) for f in followup_rules.due(followups)],
    )


@followup_router.post("", response_model=FollowUp, status_code=201)
def create_followup(body: FollowUpIn, console: BusinessConsole = Depends(get_console)):
    try:
        return console.add_followup(body)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@followup_router.put("/{followup_id}", response_model=FollowUp)
def update_followup(
    followup_id: str,
    body: FollowUpIn,
    console: BusinessConsole = Depends(get_console),
):
    try:
        existing = console.followups.require(followup_id)
        customer = console.customers.require(body.customer_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    updated = existing.model_copy(update={**body.model_dump(), "customer_name": customer.name})
    return console.update_followup(updated)


@followup_router.post("/{followup_id}/toggle", response_model=FollowUp)
def toggle_followup(followup_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return console.toggle_followup(followup_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@followup_router.delete("/{followup_id}", response_model=DeleteResponse)
def delete_followup(
    followup_id: str,
    confirm: bool = Query(default=False),
    console: BusinessConsole = Depends(get_console),
):
    require_confirmation(confirm)
    try:
        console.followups.require(followup_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    console.delete_followup(followup_id)
    return DeleteResponse(status="deleted", id=followup_id)

"""
Estimate API routes.

Endpoints:
  GET    /api/estimates                      – all estimates, newest first
  GET    /api/estimates/{id}                 – one estimate
  GET    /api/estimates/{id}/revisions       – original + saved revisions
  POST   /api/estimates                      – save (create, edit, or save a revision draft)
  POST   /api/estimates/pricing              – price a form without saving
  POST   /api/estimates/autofill             – fill customer fields from a known phone
  POST   /api/estimates/{id}/revise          – draft the next revision (not persisted)
  PUT    /api/estimates/{id}/status          – set Pending / Converted / Rejected
  DELETE /api/estimates/{id}?confirm=true    – delete permanently
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from buildconsole.core.errors import NotFoundError
from buildconsole.schemas.entities import Estimate, EstimateStatus
from buildconsole.schemas.requests import (
    CustomerLookup,
    EstimateDraft,
    PricingRequest,
    StatusUpdate,
)
from buildconsole.schemas.responses import DeleteResponse, PricingResponse
from buildconsole.services import pricing
from buildconsole.services.console import BusinessConsole, get_console
from buildconsole.services.reconciliation import autofill_from_customer

estimate_router = APIRouter(prefix="/api/estimates", tags=["estimates"])


def require_confirmation(confirm: bool) -> None:
    """Irreversible deletes need an explicit ?confirm=true."""
    if not confirm:
        raise HTTPException(
            status_code=409, detail="Deletion is permanent; repeat the request with confirm=true"
        )


@estimate_router.get("", response_model=list[Estimate])
def list_estimates(
    status: Optional[EstimateStatus] = Query(default=None),
    console: BusinessConsole = Depends(get_console),
):
    estimates = console.estimates.list()
    if status is not None:
        estimates = [e for e in estimates if e.status == status]
    return estimates


@estimate_router.post("/pricing", response_model=PricingResponse)
def price_estimate(body: PricingRequest):
    """Recompute every line and the totals exactly as a save would."""
    lines = [pricing.recompute_line(line) for line in body.items]
    summary = pricing.price(
        lines,
        tax_mode=body.gst_calculation_mode,
        manual_tax=body.gst_extra,
        discount_value=body.discount_value,
        discount_type=body.discount_type,
    )
    return PricingResponse(
        items=lines,
        sub_total=summary.subtotal,
        auto_gst=summary.auto_tax,
        gst_extra=summary.effective_tax,
        gst_calculation_mode=summary.tax_mode,
        gst_breakdown={f"{rate:g}": amount for rate, amount in summary.tax_breakdown.items()},
        discount=summary.discount_amount,
        total_amount=summary.grand_total,
    )


@estimate_router.post("/autofill", response_model=CustomerLookup)
def autofill(body: CustomerLookup, console: BusinessConsole = Depends(get_console)):
    return autofill_from_customer(body, console.customers.list())


@estimate_router.post("", response_model=Estimate)
def save_estimate(body: EstimateDraft, console: BusinessConsole = Depends(get_console)):
    try:
        return console.save_estimate(body)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@estimate_router.get("/{estimate_id}", response_model=Estimate)
def get_estimate(estimate_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return console.estimates.require(estimate_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@estimate_router.get("/{estimate_id}/revisions", response_model=list[Estimate])
def list_revisions(estimate_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return console.revision_chain(estimate_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@estimate_router.post("/{estimate_id}/revise", response_model=Estimate)
def revise_estimate(estimate_id: str, console: BusinessConsole = Depends(get_console)):
    """
    Return the next revision, unsaved. POST it back (edited or not) to
    /api/estimates to persist it under its new id.
    """
    try:
        return console.revise_estimate(estimate_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@estimate_router.put("/{estimate_id}/status", response_model=Estimate)
def update_status(
    estimate_id: str,
    body: StatusUpdate,
    console: BusinessConsole = Depends(get_console),
):
    try:
        return console.update_estimate_status(estimate_id, body.status)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@estimate_router.delete("/{estimate_id}", response_model=DeleteResponse)
def delete_estimate(
    estimate_id: str,
    confirm: bool = Query(default=False),
    console: BusinessConsole = Depends(get_console),
):
    require_confirmation(confirm)
    try:
        console.estimates.require(estimate_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    console.delete_estimate(estimate_id)
    return DeleteResponse(status="deleted", id=estimate_id)

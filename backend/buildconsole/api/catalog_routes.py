"""
Catalog (items & services) API routes.

Endpoints:
  GET    /api/items                      – whole catalog, optional name search
  GET    /api/items/options              – standard units and GST rates for the item form
  GET    /api/items/{id}                 – one item
  GET    /api/items/{id}/line            – the item as a priced estimate line
  POST   /api/items                      – add an item
  PUT    /api/items/{id}                 – replace an item's fields
  DELETE /api/items/{id}?confirm=true    – delete permanently
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from buildconsole.api.estimate_routes import require_confirmation
from buildconsole.core.errors import NotFoundError
from buildconsole.schemas.entities import (
    GST_RATES,
    STANDARD_UNITS,
    EstimateLineItem,
    Item,
    ItemType,
)
from buildconsole.schemas.requests import ItemIn
from buildconsole.schemas.responses import DeleteResponse
from buildconsole.services import pricing
from buildconsole.services.console import BusinessConsole, get_console
from buildconsole.services.lifecycle import generate_id

catalog_router = APIRouter(prefix="/api/items", tags=["catalog"])


@catalog_router.get("", response_model=list[Item])
def list_items(
    q: Optional[str] = Query(default=None, description="Case-insensitive name search"),
    type: Optional[ItemType] = Query(default=None),
    console: BusinessConsole = Depends(get_console),
):
    items = sorted(console.items.list(), key=lambda i: i.name.lower())
    if q:
        items = [i for i in items if q.lower() in i.name.lower()]
    if type is not None:
        items = [i for i in items if i.type == type]
    return items


@catalog_router.get("/options")
def item_options() -> dict:
    return {"units": list(STANDARD_UNITS), "gst_rates": list(GST_RATES)}


@catalog_router.get("/{item_id}", response_model=Item)
def get_item(item_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return console.items.require(item_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@catalog_router.get("/{item_id}/line", response_model=EstimateLineItem)
def item_as_line(item_id: str, console: BusinessConsole = Depends(get_console)):
    try:
        return pricing.line_from_item(console.items.require(item_id))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@catalog_router.post("", response_model=Item, status_code=201)
def create_item(body: ItemIn, console: BusinessConsole = Depends(get_console)):
    item = Item(id=generate_id("item"), **body.model_dump())
    return console.add_item(item)


@catalog_router.put("/{item_id}", response_model=Item)
def update_item(item_id: str, body: ItemIn, console: BusinessConsole = Depends(get_console)):
    try:
        return console.update_item(Item(id=item_id, **body.model_dump()))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@catalog_router.delete("/{item_id}", response_model=DeleteResponse)
def delete_item(
    item_id: str,
    confirm: bool = Query(default=False),
    console: BusinessConsole = Depends(get_console),
):
    require_confirmation(confirm)
    try:
        console.items.require(item_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    console.delete_item(item_id)
    return DeleteResponse(status="deleted", id=item_id)

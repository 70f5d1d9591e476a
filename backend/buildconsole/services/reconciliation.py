"""
Side effects of saving an estimate on the customer list and the catalog.

Customers are matched by exact phone number. Catalog items are matched by
case-insensitive name; unknown line names become new catalog items. Both
functions only decide what to write; the console applies the result.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from buildconsole.schemas.entities import Customer, Estimate, Item, ItemType
from buildconsole.schemas.requests import CustomerLookup, EstimateDraft
from buildconsole.services.lifecycle import iso_timestamp, millis


@dataclass(frozen=True)
class CustomerChange:
    customer: Customer
    created: bool


def find_by_phone(customers: Iterable[Customer], phone: str) -> Optional[Customer]:
    return next((c for c in customers if c.phone == phone), None)


def reconcile_customer(
    estimate: Estimate,
    customers: Iterable[Customer],
    now: Optional[datetime] = None,
) -> Optional[CustomerChange]:
    """
    Upsert the estimate's customer.

    Returns ``None`` when the matching customer already carries the same
    name, address and site address, so a re-save causes no customer write.
    """
    existing = find_by_phone(customers, estimate.phone_number)
    if existing is not None:
        if (
            existing.name == estimate.customer_name
            and existing.address == estimate.current_address
            and existing.site_address == estimate.site_address
        ):
            return None
        updated = existing.model_copy(
            update={
                "name": estimate.customer_name,
                "address": estimate.current_address,
                "site_address": estimate.site_address,
                "email": estimate.email or existing.email,
            }
        )
        return CustomerChange(updated, created=False)

    customer = Customer(
        id=f"CUST-{millis(now)}",
        name=estimate.customer_name,
        phone=estimate.phone_number,
        alt_phone=estimate.alt_mob,
        email=estimate.email,
        address=estimate.current_address,
        site_address=estimate.site_address,
        created_at=iso_timestamp(now),
    )
    return CustomerChange(customer, created=True)


def items_to_provision(estimate: Estimate, catalog: Iterable[Item]) -> list[Item]:
    """Catalog entries for line names that match nothing in the catalog."""
    known = {item.name.lower() for item in catalog}
    provisioned: list[Item] = []
    for line in estimate.items:
        name = line.item_name
        if not name.strip() or name.lower() in known:
            continue
        known.add(name.lower())
        provisioned.append(
            Item(
                id=line.item_id,
                type=ItemType.GOODS,
                name=name,
                unit=line.unit,
                hsn_code="",
                sale_rate=max(line.rate, 0.0),
                gst_rate=line.gst_rate,
            )
        )
    return provisioned


def autofill_from_customer(
    draft: CustomerLookup | EstimateDraft, customers: Iterable[Customer]
) -> CustomerLookup | EstimateDraft:
    """Fill a new estimate's customer fields from a known phone number."""
    if len(draft.phone_number) < 10:
        return draft
    existing = find_by_phone(customers, draft.phone_number)
    if existing is None:
        return draft
    return draft.model_copy(
        update={
            "customer_name": existing.name,
            "email": existing.email or draft.email,
            "alt_mob": existing.alt_phone or draft.alt_mob,
            "current_address": existing.address,
            "site_address": existing.site_address or draft.site_address,
        }
    )

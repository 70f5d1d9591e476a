"""Pydantic request bodies for the API endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from buildconsole.schemas.entities import (
    DEFAULT_TERMS,
    GST_RATES,
    DiscountType,
    Document,
    EstimateLineItem,
    EstimateStatus,
    FollowUpStatus,
    ItemType,
    ProjectScope,
    ProjectType,
    TaxMode,
)


class EstimateDraft(Document):
    """
    The estimate form as submitted. Computed figures (line totals, subtotal,
    tax, discount amount, grand total) are never taken from here; they are
    re-derived at save time.
    """

    id: Optional[str] = None  # set when re-saving an edited estimate or a revision draft
    # Revision identity, echoed back from POST /estimates/{id}/revise
    parent_id: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=1)
    estimate_number: Optional[str] = None
    customer_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    alt_mob: Optional[str] = None
    email: Optional[str] = None
    pan: Optional[str] = None
    profession: Optional[str] = None
    current_address: str = ""
    site_address: str = Field(min_length=1)
    family_member: Optional[str] = None
    project_type: ProjectType = ProjectType.RESIDENTIAL
    scope: ProjectScope = ProjectScope.BOX_CONSTRUCTION
    budget: Optional[str] = None
    completion_time: Optional[str] = None
    salary_income: Optional[str] = None
    items: list[EstimateLineItem] = Field(min_length=1)
    gst_calculation_mode: TaxMode = TaxMode.AUTO
    gst_extra: float = 0.0  # manual-mode tax figure
    discount_value: float = 0.0
    discount_type: DiscountType = DiscountType.AMOUNT
    terms: list[str] = Field(default_factory=lambda: list(DEFAULT_TERMS))

    @field_validator("customer_name", "phone_number", "site_address")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class CustomerLookup(Document):
    """Customer fields of the estimate form, before a known phone fills them."""

    phone_number: str
    customer_name: str = ""
    email: Optional[str] = None
    alt_mob: Optional[str] = None
    current_address: str = ""
    site_address: str = ""


class PricingRequest(Document):
    items: list[EstimateLineItem] = Field(default_factory=list)
    gst_calculation_mode: TaxMode = TaxMode.AUTO
    gst_extra: float = 0.0
    discount_value: float = 0.0
    discount_type: DiscountType = DiscountType.AMOUNT


class ItemIn(Document):
    type: ItemType = ItemType.GOODS
    name: str = Field(min_length=1)
    unit: str = "Sqft"
    hsn_code: str = ""
    sale_rate: float = Field(default=0.0, ge=0)
    gst_rate: int = 18

    @field_validator("gst_rate")
    @classmethod
    def known_gst_rate(cls, v: int) -> int:
        if v not in GST_RATES:
            raise ValueError(f"gst_rate must be one of {GST_RATES}")
        return v


class CustomerIn(Document):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    alt_phone: Optional[str] = None
    email: Optional[str] = None
    address: str = ""
    site_address: Optional[str] = None
    notes: Optional[str] = None


class FollowUpIn(Document):
    customer_id: str = Field(min_length=1)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: str = Field(default="10:00", pattern=r"^\d{2}:\d{2}$")
    reason: str = Field(min_length=1)
    notes: Optional[str] = None
    status: FollowUpStatus = FollowUpStatus.PENDING


class StatusUpdate(BaseModel):
    status: EstimateStatus

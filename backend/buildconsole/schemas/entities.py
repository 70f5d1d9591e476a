"""
Pydantic models for the documents kept in the store.

Field names are snake_case in Python and camelCase on the wire, so a stored
document reads exactly like the JSON the web client writes:

    {"id": "…", "type": "Goods", "name": "Brick Work", "unit": "Sqft",
     "hsnCode": "6901", "saleRate": 120.0, "gstRate": 18}
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GST_RATES = (0, 5, 12, 18, 28)
STANDARD_UNITS = ("Box", "Sqft", "Sqmt", "Kg", "Running Ft")

DEFAULT_TERMS = [
    "Plinth height up to 18inch from road level up, Foundation up to 5ft. from road level down.",
    "Steel size for above estimate will use 8mm, 10mm, 12mm, 14mm, 16mm. Larger sizes will be extra.",
    "Above rate only covers Masonry, Plaster, Foundation RCC, PCC, Slab, Beam Column RCC Work.",
    "Reti(sand), Kapchit(grit), Red Brick as per standard material available in local market.",
    "Inside 1 coat mala Plaster finish, outside 1 coat Plaster.",
    "All internal walls will be partition wall size, outer walls will be 9\" thick as per drawing.",
    "Landscape, Garden, Terrace Garden, Compound Wall, Gate, balcony railings not included in above rate.",
    "Above all item price GST not included, GST charge extra as per item.",
    "Selection of higher range of material selected by Client will be charged extra.",
    "Drinking Water, Regular use water & Electricity should be provided by client.",
    "FINAL BILL WILL BE ON THE BASIS OF ACTUAL MEASUREMENT AND ACTUAL WORK DONE.",
]


class ItemType(str, Enum):
    GOODS = "Goods"
    SERVICE = "Service"


class ProjectType(str, Enum):
    RESIDENTIAL = "Resident"
    COMMERCIAL = "Commercial"
    INDUSTRIAL = "Industry"


class ProjectScope(str, Enum):
    TURNKEY = "New Construction (Turnkey)"
    BOX_CONSTRUCTION = "New Box Construction"
    RENOVATION = "Renovation"
    INTERIOR_DESIGN = "Interior Design"


class EstimateStatus(str, Enum):
    PENDING = "Pending"
    CONVERTED = "Converted"
    REJECTED = "Rejected"


class FollowUpStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TaxMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class DiscountType(str, Enum):
    AMOUNT = "amount"
    PERCENT = "percent"


class Document(BaseModel):
    """Base for every stored document: camelCase aliases, lossless JSON dump."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_patch(self) -> dict:
        # None entries clear the field on the stored object
        return self.model_dump(mode="json", by_alias=True)


class Item(Document):
    id: str
    type: ItemType = ItemType.GOODS
    name: str
    unit: str = "Sqft"
    hsn_code: str = ""
    sale_rate: float = Field(default=0.0, ge=0)
    gst_rate: float = 18


class EstimateLineItem(Document):
    item_id: str
    item_name: str = ""
    lh: str = "-"  # length / height
    wd: str = "-"  # width / depth
    unit: str = ""
    volume: float = 1.0
    rate: float = 0.0
    qty: float = 1.0
    total: float = 0.0
    gst_rate: float = 0.0
    gst_amount: float = 0.0


class Estimate(Document):
    id: str
    estimate_number: str
    date: str
    customer_name: str
    phone_number: str
    alt_mob: Optional[str] = None
    email: Optional[str] = None
    pan: Optional[str] = None
    profession: Optional[str] = None
    current_address: str = ""
    site_address: str = ""
    family_member: Optional[str] = None
    project_type: ProjectType = ProjectType.RESIDENTIAL
    scope: ProjectScope = ProjectScope.BOX_CONSTRUCTION
    budget: Optional[str] = None
    completion_time: Optional[str] = None
    salary_income: Optional[str] = None
    items: list[EstimateLineItem] = Field(default_factory=list)
    sub_total: float = 0.0
    gst_extra: float = 0.0  # effective tax, whichever mode produced it
    gst_calculation_mode: TaxMode = TaxMode.AUTO
    discount: float = 0.0  # resolved absolute discount
    discount_value: float = 0.0
    discount_type: DiscountType = DiscountType.AMOUNT
    total_amount: float = 0.0
    terms: list[str] = Field(default_factory=list)
    status: EstimateStatus = EstimateStatus.PENDING
    parent_id: Optional[str] = None
    version: int = Field(default=1, ge=1)
    created_at: str


class Customer(Document):
    id: str
    name: str
    phone: str
    alt_phone: Optional[str] = None
    email: Optional[str] = None
    address: str = ""
    site_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: str


class FollowUp(Document):
    id: str
    customer_id: str
    customer_name: str
    date: str  # YYYY-MM-DD
    time: str = "10:00"
    reason: str
    status: FollowUpStatus = FollowUpStatus.PENDING
    notes: Optional[str] = None
    created_at: str


class CompanyInfo(Document):
    name: str = "Pixar World Construction Private Limited"
    email: str = "pixarworldconstruction@gmail.com"
    phone: str = "+91 6354753565"
    address: str = "FF-08 Fortune Greens, Vadodara"

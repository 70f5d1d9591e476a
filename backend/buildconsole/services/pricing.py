"""
Estimate pricing: line totals, GST, discount and grand total.

Everything here is a pure function of its inputs. Non-numeric or missing
values count as zero; nothing raises for bad data, and nothing is clamped
(a discount larger than subtotal + tax yields a negative grand total).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from buildconsole.schemas.entities import (
    DiscountType,
    EstimateLineItem,
    Item,
    TaxMode,
)


@dataclass(frozen=True)
class PricingSummary:
    subtotal: float
    auto_tax: float
    effective_tax: float
    discount_amount: float
    grand_total: float
    tax_mode: TaxMode = TaxMode.AUTO
    tax_breakdown: dict[float, float] = field(default_factory=dict)


def _num(value: Any) -> float:
    """Coerce to a finite float; anything else is 0."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def parse_dimension(text: Any) -> Optional[float]:
    """Parse a free-text dimension ("10", "12.5"); ``None`` for "-", blanks and junk."""
    if text is None:
        return None
    try:
        value = float(str(text).strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def recompute_line(line: EstimateLineItem) -> EstimateLineItem:
    """
    Re-derive volume, total and GST amount of one line.

    The volume becomes round(lh × wd, 2) only when both dimensions parse;
    otherwise the line keeps its own volume, so area-based and manually
    quantified rows can share a table.
    """
    volume = _num(line.volume)
    length = parse_dimension(line.lh)
    width = parse_dimension(line.wd)
    if length is not None and width is not None:
        volume = round(length * width, 2)

    total = volume * _num(line.rate) * _num(line.qty)
    gst_amount = total * _num(line.gst_rate) / 100
    return line.model_copy(update={"volume": volume, "total": total, "gst_amount": gst_amount})


def update_line(line: EstimateLineItem, **changes: Any) -> EstimateLineItem:
    """Apply field edits to a line and re-derive its computed fields."""
    return recompute_line(line.model_copy(update=changes))


def line_from_item(item: Item) -> EstimateLineItem:
    """A catalog item dropped into an estimate: no dimensions, one unit of it."""
    return recompute_line(
        EstimateLineItem(
            item_id=item.id,
            item_name=item.name,
            lh="-",
            wd="-",
            unit=item.unit,
            volume=1,
            rate=item.sale_rate,
            qty=1,
            gst_rate=item.gst_rate or 0,
        )
    )


def tax_breakdown(lines: Iterable[EstimateLineItem]) -> dict[float, float]:
    """GST amounts grouped by rate, for display."""
    groups: dict[float, float] = {}
    for line in lines:
        rate = _num(line.gst_rate)
        groups[rate] = groups.get(rate, 0.0) + _num(line.gst_amount)
    return groups


def resolve_discount(subtotal: float, value: Any, discount_type: DiscountType | str) -> float:
    if DiscountType(discount_type) == DiscountType.PERCENT:
        return subtotal * _num(value) / 100
    return _num(value)


def price(
    lines: Iterable[EstimateLineItem],
    tax_mode: TaxMode | str = TaxMode.AUTO,
    manual_tax: Any = 0,
    discount_value: Any = 0,
    discount_type: DiscountType | str = DiscountType.AMOUNT,
) -> PricingSummary:
    """Totals for a set of (already recomputed) lines and the estimate modifiers."""
    lines = list(lines)
    mode = TaxMode(tax_mode)
    subtotal = sum(_num(line.total) for line in lines)
    auto_tax = sum(_num(line.gst_amount) for line in lines)
    effective_tax = auto_tax if mode == TaxMode.AUTO else _num(manual_tax)
    discount_amount = resolve_discount(subtotal, discount_value, discount_type)
    return PricingSummary(
        subtotal=subtotal,
        auto_tax=auto_tax,
        effective_tax=effective_tax,
        discount_amount=discount_amount,
        grand_total=subtotal + effective_tax - discount_amount,
        tax_mode=mode,
        tax_breakdown=tax_breakdown(lines),
    )

"""
Estimate lifecycle: identity, numbering, status changes and revisions.

Status is permissive: Pending, Converted and Rejected are all
reachable from one another by explicit user action, and none is terminal.

A revision is a new estimate, not an edit of the old one:

    EST-123456   (v1, id=a)          ─┐
    EST-123456-R2 (v2, parentId=a)    ├─ every revision points at the original
    EST-123456-R3 (v3, parentId=a)   ─┘
"""
from __future__ import annotations

import random
import re
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from buildconsole.schemas.entities import Estimate, EstimateStatus
from buildconsole.schemas.requests import EstimateDraft
from buildconsole.services import pricing

_REVISION_SUFFIX_RE = re.compile(r"-R\d+$")
_BASE36 = string.digits + string.ascii_lowercase


def _base36(n: int) -> str:
    if n <= 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(now: Optional[datetime] = None) -> str:
    now = now or _utcnow()
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def millis(now: Optional[datetime] = None) -> int:
    return int((now or _utcnow()).timestamp() * 1000)


def generate_id(prefix: str = "id") -> str:
    """uuid4 (os.urandom backed); time+random composite where no CSPRNG exists."""
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        rand = "".join(random.choices(_BASE36, k=13))
        return f"{prefix}-{rand}-{_base36(int(time.time() * 1000))}"


def new_estimate_number(now: Optional[datetime] = None, prefix: str = "EST") -> str:
    """``EST-`` plus the last six digits of the millisecond timestamp."""
    return f"{prefix}-{str(millis(now))[-6:]}"


def set_status(estimate: Estimate, status: EstimateStatus | str) -> Estimate:
    return estimate.model_copy(update={"status": EstimateStatus(status)})


def revise(
    estimate: Estimate,
    now: Optional[datetime] = None,
    new_id: Optional[str] = None,
    version: Optional[int] = None,
) -> Estimate:
    """
    Draft the next revision of ``estimate``.

    The draft is not persisted; the caller lets the user edit it and saves it
    through the normal save path. ``version`` overrides the default of one
    past the estimate's own version.
    """
    version = version or (estimate.version or 1) + 1
    base_number = _REVISION_SUFFIX_RE.sub("", estimate.estimate_number)
    return estimate.model_copy(
        deep=True,
        update={
            "id": new_id or generate_id("est"),
            "estimate_number": f"{base_number}-R{version}",
            "version": version,
            "parent_id": estimate.parent_id or estimate.id,
            "status": EstimateStatus.PENDING,
            "created_at": iso_timestamp(now),
        },
    )


def build_estimate(
    draft: EstimateDraft,
    existing: Optional[Estimate] = None,
    now: Optional[datetime] = None,
    number_prefix: str = "EST",
) -> Estimate:
    """
    Assemble the estimate to persist from a submitted form.

    Lines and totals are always re-derived here. When ``existing`` is given
    (an edit, or a revision draft) its identity, number, date, status, chain
    and version are kept; otherwise a fresh Pending v1 estimate is created.
    """
    now = now or _utcnow()
    lines = [pricing.recompute_line(line) for line in draft.items]
    summary = pricing.price(
        lines,
        tax_mode=draft.gst_calculation_mode,
        manual_tax=draft.gst_extra,
        discount_value=draft.discount_value,
        discount_type=draft.discount_type,
    )

    fields = draft.model_dump(exclude={"id", "items", "gst_extra"})
    fields.update(
        items=lines,
        sub_total=summary.subtotal,
        gst_extra=summary.effective_tax,
        discount=summary.discount_amount,
        total_amount=summary.grand_total,
    )

    if existing is not None:
        fields.update(
            id=existing.id,
            estimate_number=existing.estimate_number,
            date=existing.date,
            status=existing.status,
            parent_id=existing.parent_id,
            version=existing.version or 1,
            created_at=existing.created_at,
        )
    else:
        fields.update(
            id=draft.id or generate_id("est"),
            estimate_number=new_estimate_number(now, number_prefix),
            date=now.strftime("%d/%m/%Y"),
            status=EstimateStatus.PENDING,
            parent_id=None,
            version=1,
            created_at=iso_timestamp(now),
        )
    return Estimate(**fields)

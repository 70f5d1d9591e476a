"""Business analytics over the estimate list."""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from dateutil import parser as date_parser
from loguru import logger
from pydantic import BaseModel

from buildconsole.schemas.entities import Estimate, EstimateStatus

# Monthly trend keeps this many most-recent buckets
TREND_MONTHS = 6


class MonthlyPoint(BaseModel):
    name: str  # "Jan 2026"
    estimates: int
    business: int
    value: float


class StatusSlice(BaseModel):
    name: str
    value: int


class BusinessStats(BaseModel):
    total: int
    converted: int
    pending: int
    rejected: int
    total_value: float
    business_value: float
    conversion_rate: float
    monthly: list[MonthlyPoint]
    status_breakdown: list[StatusSlice]


def _created(estimate: Estimate) -> Optional[datetime]:
    try:
        parsed = date_parser.isoparse(estimate.created_at)
    except (ValueError, TypeError):
        logger.warning(f"analytics: unparseable createdAt on {estimate.id}: {estimate.created_at!r}")
        return None
    return parsed.replace(tzinfo=None)


def filter_by_range(
    estimates: Iterable[Estimate],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Estimate]:
    """Keep estimates created within [start, end] (inclusive days; open ends allowed)."""
    result = []
    for e in estimates:
        created = _created(e)
        if created is None:
            continue
        if start and created.date() < start:
            continue
        if end and created.date() > end:
            continue
        result.append(e)
    return result


def business_stats(
    estimates: Iterable[Estimate],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> BusinessStats:
    selected = filter_by_range(estimates, start, end)
    total = len(selected)
    converted = [e for e in selected if e.status == EstimateStatus.CONVERTED]
    pending = sum(1 for e in selected if e.status == EstimateStatus.PENDING)
    rejected = sum(1 for e in selected if e.status == EstimateStatus.REJECTED)

    buckets: dict[tuple[int, int], MonthlyPoint] = {}
    for e in selected:
        created = _created(e)
        key = (created.year, created.month)
        point = buckets.get(key)
        if point is None:
            point = MonthlyPoint(name=created.strftime("%b %Y"), estimates=0, business=0, value=0.0)
            buckets[key] = point
        point.estimates += 1
        point.value += e.total_amount
        if e.status == EstimateStatus.CONVERTED:
            point.business += 1
    monthly = [buckets[k] for k in sorted(buckets)][-TREND_MONTHS:]

    return BusinessStats(
        total=total,
        converted=len(converted),
        pending=pending,
        rejected=rejected,
        total_value=sum(e.total_amount for e in selected),
        business_value=sum(e.total_amount for e in converted),
        conversion_rate=(len(converted) / total * 100) if total else 0.0,
        monthly=monthly,
        status_breakdown=[
            StatusSlice(name=EstimateStatus.CONVERTED.value, value=len(converted)),
            StatusSlice(name=EstimateStatus.PENDING.value, value=pending),
            StatusSlice(name=EstimateStatus.REJECTED.value, value=rejected),
        ],
    )

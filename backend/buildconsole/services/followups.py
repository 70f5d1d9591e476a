"""Follow-up agenda helpers."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Optional

from buildconsole.schemas.entities import FollowUp, FollowUpStatus

_NON_DIGITS_RE = re.compile(r"\D")


def scheduled_at(followup: FollowUp) -> datetime:
    """Date + time of a follow-up; unparseable values sort last."""
    try:
        return datetime.strptime(f"{followup.date} {followup.time}", "%Y-%m-%d %H:%M")
    except ValueError:
        return datetime.max


def agenda(followups: Iterable[FollowUp]) -> list[FollowUp]:
    return sorted(followups, key=scheduled_at)


def upcoming(followups: Iterable[FollowUp]) -> list[FollowUp]:
    return [f for f in agenda(followups) if f.status == FollowUpStatus.PENDING]


def completed(followups: Iterable[FollowUp]) -> list[FollowUp]:
    return [f for f in agenda(followups) if f.status == FollowUpStatus.COMPLETED]


def due(followups: Iterable[FollowUp], now: Optional[datetime] = None) -> list[FollowUp]:
    """Pending follow-ups whose scheduled time has arrived."""
    now = now or datetime.now()
    return [f for f in upcoming(followups) if scheduled_at(f) <= now]


def toggled_status(status: FollowUpStatus) -> FollowUpStatus:
    # Cancelled reopens as Pending too
    if status == FollowUpStatus.PENDING:
        return FollowUpStatus.COMPLETED
    return FollowUpStatus.PENDING


def whatsapp_link(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = _NON_DIGITS_RE.sub("", phone)
    return f"https://wa.me/{digits}" if digits else None

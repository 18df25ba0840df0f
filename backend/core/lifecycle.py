"""
Derived patch state: when a patch must come off, whether a reminder is due,
and whether stock is running low.

Everything here is pure. Callers pass ``now`` explicitly so the same inputs
always give the same answer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Tuple

LOW_INVENTORY_THRESHOLD = 3

PATCH_REMINDER = "patch-reminder"
INVENTORY_OUT = "inventory-out"
INVENTORY_LOW = "inventory-low"


@dataclass(frozen=True)
class ActivePatch:
    application: Any
    patch_type: Optional[Any]
    applied_at: datetime
    change_at: datetime
    time_remaining: timedelta
    is_expired: bool

    @property
    def id(self):
        return self.application.id

    @property
    def patch_type_name(self) -> str:
        return getattr(self.patch_type, "name", None) or ""

    def to_dict(self) -> dict:
        return {
            "id": self.application.id,
            "patch_type_id": self.application.patch_type_id,
            "patch_type_name": self.patch_type_name or None,
            "location": self.application.location,
            "notes": self.application.notes,
            "applied_at": self.applied_at,
            "change_at": self.change_at,
            "time_remaining_seconds": self.time_remaining.total_seconds(),
            "is_expired": self.is_expired,
        }


@dataclass(frozen=True)
class InventoryAlert:
    patch_type_id: str
    count: int
    is_low: bool
    is_out: bool
    patch_type: Optional[Any] = None

    @property
    def needs_attention(self) -> bool:
        return self.is_low or self.is_out


def change_time(applied_at: datetime, duration_hours: float) -> datetime:
    return applied_at + timedelta(hours=duration_hours)


def compute_active_patch(application, patch_type, now: datetime, applied_at: Optional[datetime] = None) -> ActivePatch:
    """
    Derive the change time and remaining time for one application.

    An application whose type has been lost is treated as a zero-hour patch,
    so it shows up as already expired instead of disappearing.
    """
    applied_at = applied_at if applied_at is not None else application.applied_at
    duration = float(getattr(patch_type, "duration_hours", 0) or 0)
    change_at = change_time(applied_at, duration)
    remaining = change_at - now
    return ActivePatch(
        application=application,
        patch_type=patch_type,
        applied_at=applied_at,
        change_at=change_at,
        time_remaining=remaining,
        is_expired=remaining <= timedelta(0),
    )


def sort_active_patches(patches: Iterable[ActivePatch]) -> List[ActivePatch]:
    # sorted() is stable: equal change times keep their incoming order
    return sorted(patches, key=lambda p: p.change_at)


def is_notification_due(active_patch: ActivePatch, notify_before_hours: float, now: datetime) -> bool:
    if active_patch.is_expired:
        return False
    remaining = active_patch.change_at - now
    return timedelta(0) < remaining <= timedelta(hours=notify_before_hours)


def hours_until(change_at: datetime, now: datetime) -> int:
    return math.ceil((change_at - now) / timedelta(hours=1))


def days_hours_from_now(target: datetime, now: datetime) -> Tuple[int, int]:
    """Whole days and leftover whole hours until ``target`` (floored, may be negative)."""
    total_hours = (target - now) / timedelta(hours=1)
    # fmod keeps the sign of total_hours, so overdue patches read as negative days and hours
    return math.floor(total_hours / 24), math.floor(math.fmod(total_hours, 24))


def notification_tag(kind: str, subject_id) -> str:
    return f"{kind}-{subject_id}"


def low_inventory_alert(entry, threshold: int = LOW_INVENTORY_THRESHOLD, patch_type=None) -> InventoryAlert:
    count = int(entry.count or 0)
    return InventoryAlert(
        patch_type_id=entry.patch_type_id,
        count=count,
        is_low=0 < count <= threshold,
        is_out=count == 0,
        patch_type=patch_type,
    )

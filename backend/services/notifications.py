"""
Reminder notifications.

A scan looks at the active patches and the inventory, builds every
notification whose condition currently holds, and hands them to the
NotificationService. The service delivers each (channel, tag) pair once and
forgets a tag as soon as its condition stops holding, so the same alert can
fire again later (for example after a restock runs low a second time).

Browser notifications land in an in-memory outbox that clients poll. Email
is handed off to the log; there is no mail transport.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterable, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.lifecycle import (
    INVENTORY_LOW,
    INVENTORY_OUT,
    PATCH_REMINDER,
    ActivePatch,
    InventoryAlert,
    hours_until,
    is_notification_due,
    notification_tag,
)
from db.database import utc_now
from services.patch_store import PatchStore
from services.preferences import get_preferences

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/favicon.svg"
CHANNEL_BROWSER = "browser"
CHANNEL_EMAIL = "email"
SCAN_JOB_ID = "due-notifications"


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    tag: str
    channel: str = CHANNEL_BROWSER
    icon: str = DEFAULT_ICON
    recipient: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> Tuple[str, str]:
        return self.channel, self.tag

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "body": self.body,
            "tag": self.tag,
            "channel": self.channel,
            "icon": self.icon,
            "recipient": self.recipient,
            "created_at": self.created_at,
        }


def _browser_allowed(prefs) -> bool:
    return bool(prefs.enable_browser_notifications) and prefs.browser_permission == "granted"


def _email_allowed(prefs) -> bool:
    return bool(prefs.enable_email_notifications) and bool((prefs.email_address or "").strip())


def build_due_notifications(
    active_patches: Iterable[ActivePatch],
    alerts: Iterable[InventoryAlert],
    prefs,
    now: datetime,
) -> List[Notification]:
    """Every notification whose condition holds at ``now``, honouring the channel preferences."""
    out: List[Notification] = []
    browser = _browser_allowed(prefs)
    email = _email_allowed(prefs)

    for patch in active_patches:
        if not is_notification_due(patch, prefs.notify_before_hours, now):
            continue
        body = (
            f"Your {patch.patch_type_name} patch will need to be changed "
            f"in approximately {hours_until(patch.change_at, now)} hours."
        )
        tag = notification_tag(PATCH_REMINDER, patch.id)
        if browser:
            out.append(Notification(title="Time to change your patch soon", body=body, tag=tag, created_at=now))
        if email:
            out.append(
                Notification(
                    title="Estrogen Patch Change Reminder",
                    body=body,
                    tag=tag,
                    channel=CHANNEL_EMAIL,
                    recipient=prefs.email_address.strip(),
                    created_at=now,
                )
            )

    if not browser:
        return out

    for alert in alerts:
        name = getattr(alert.patch_type, "name", None) or alert.patch_type_id
        if alert.is_out:
            out.append(
                Notification(
                    title="Out of patches!",
                    body=f"You're out of {name} patches. Please refill your prescription soon.",
                    tag=notification_tag(INVENTORY_OUT, alert.patch_type_id),
                    created_at=now,
                )
            )
        elif alert.is_low:
            out.append(
                Notification(
                    title="Low patch inventory",
                    body=(
                        f"You only have {alert.count} {name} patches left. "
                        "Consider refilling your prescription soon."
                    ),
                    tag=notification_tag(INVENTORY_LOW, alert.patch_type_id),
                    created_at=now,
                )
            )
    return out


class NotificationService:
    """
    Process-wide reminder state: delivered tags, the outbox and the scan job.

    Built once in the app lifespan and shared through ``app.state``.
    """

    def __init__(
        self,
        session_maker,
        *,
        interval_seconds: int = 60,
        low_inventory_threshold: int = 3,
        outbox_size: int = 200,
    ):
        self._session_maker = session_maker
        self.interval_seconds = interval_seconds
        self.low_inventory_threshold = low_inventory_threshold
        self.outbox: Deque[Notification] = deque(maxlen=outbox_size)
        self._delivered: Set[Tuple[str, str]] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def deliver(self, due: Iterable[Notification]) -> List[Notification]:
        """Send what is new, release tags that are no longer due. Returns what was sent."""
        due = list(due)
        current = {n.key for n in due}
        self._delivered &= current

        sent = []
        for n in due:
            if n.key in self._delivered:
                continue
            self._delivered.add(n.key)
            if n.channel == CHANNEL_EMAIL:
                self.send_email_notification(n)
            else:
                self.send_browser_notification(n)
            sent.append(n)
        return sent

    def send_browser_notification(self, notification: Notification) -> None:
        self.outbox.append(notification)
        logger.info("Notification [%s] %s", notification.tag, notification.title)

    def send_email_notification(self, notification: Notification) -> None:
        self.outbox.append(notification)
        logger.info(
            "Email notification to %s: %s | %s",
            notification.recipient,
            notification.title,
            notification.body,
        )

    def pending(self, since: Optional[datetime] = None) -> List[Notification]:
        if since is None:
            return list(self.outbox)
        return [n for n in self.outbox if n.created_at > since]

    async def check_for_due_notifications(self, now: Optional[datetime] = None) -> List[Notification]:
        now = now or utc_now()
        async with self._session_maker() as db:
            store = PatchStore(db)
            prefs = await get_preferences(db)
            patches = await store.active_patches(now)
            alerts = await store.low_inventory_alerts(self.low_inventory_threshold)
            due = build_due_notifications(patches, alerts, prefs, now)
        sent = self.deliver(due)
        logger.debug("Notification scan: %d due, %d sent", len(due), len(sent))
        return sent

    async def _scan_job(self) -> None:
        try:
            await self.check_for_due_notifications()
        except Exception:
            # keep the schedule alive; the next tick retries
            logger.exception("Notification scan failed")

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._scan_job,
            IntervalTrigger(seconds=self.interval_seconds),
            id=SCAN_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=utc_now(),
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Notification scan scheduled every %ss", self.interval_seconds)

    def stop(self) -> None:
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Notification scan stopped")

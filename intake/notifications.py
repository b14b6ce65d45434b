"""
Intake - Notification Queue

Transient user-facing messages. Auto-hiding notifications expire after their
duration; the rest persist until dismissed. Nothing is merged or
deduplicated, and iteration follows insertion order.

Expiry is enforced two ways: when an event loop is running, a timer removes
the notification proactively; independently, every read prunes entries whose
deadline has passed on the queue's clock.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from intake.operations import new_id

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 5000


class NotificationKind(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


@dataclass(frozen=True)
class Notification:
    """A user-facing message. ``duration`` is in milliseconds."""

    id: str
    kind: NotificationKind
    title: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    auto_hide: bool = True
    duration: int | None = None
    expires_at: float | None = None  # on the queue's clock


class NotificationQueue:
    """Ordered collection of live notifications."""

    def __init__(
        self,
        default_duration: int = DEFAULT_DURATION_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_duration = default_duration
        self._clock = clock
        self._items: dict[str, Notification] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def push(
        self,
        kind: NotificationKind | str,
        title: str,
        message: str,
        auto_hide: bool = True,
        duration: int | None = None,
    ) -> Notification:
        """
        Add a notification.

        Args:
            kind: error, warning, info or success
            title: Short heading
            message: Body text
            auto_hide: Remove automatically after ``duration``
            duration: Milliseconds before removal. Missing or non-positive
                values use the queue's default duration; ignored when
                ``auto_hide`` is False.

        Returns:
            The stored Notification
        """
        if auto_hide:
            if duration is None or duration <= 0:
                duration = self.default_duration
            expires_at = self._clock() + duration / 1000
        else:
            duration = None
            expires_at = None

        notification = Notification(
            id=new_id(),
            kind=NotificationKind(kind),
            title=title,
            message=message,
            auto_hide=auto_hide,
            duration=duration,
            expires_at=expires_at,
        )
        self._items[notification.id] = notification

        if auto_hide:
            self._schedule_removal(notification)

        logger.debug("Notification %s [%s] %s", notification.id, notification.kind.value, title)
        return notification

    def _schedule_removal(self, notification: Notification) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop; expiry is handled by pruning on read
        self._timers[notification.id] = loop.call_later(
            (notification.duration or 0) / 1000, self.dismiss, notification.id
        )

    def dismiss(self, notification_id: str) -> bool:
        """Remove a notification now. Returns False if it was already gone."""
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        return self._items.pop(notification_id, None) is not None

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._items.clear()

    def prune_expired(self) -> list[Notification]:
        """Drop every auto-hide notification whose deadline has passed."""
        now = self._clock()
        expired = [
            n for n in self._items.values()
            if n.expires_at is not None and n.expires_at <= now
        ]
        for notification in expired:
            self.dismiss(notification.id)
        return expired

    @property
    def notifications(self) -> tuple[Notification, ...]:
        """Live notifications, in insertion order."""
        self.prune_expired()
        return tuple(self._items.values())

    def get(self, notification_id: str) -> Notification | None:
        self.prune_expired()
        return self._items.get(notification_id)

    def __iter__(self) -> Iterator[Notification]:
        return iter(self.notifications)

    def __len__(self) -> int:
        return len(self.notifications)

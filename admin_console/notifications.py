from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .config import DEFAULT_TOAST_SECONDS, dlog


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class NotificationItem:
    id: str
    level: NotificationLevel
    message: str
    created_at: float = field(default_factory=time.time)


Listener = Callable[[NotificationItem], None]


def _new_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


class NotificationBus:
    """In-process publish/subscribe channel for transient status messages."""

    def __init__(self, display_seconds: float = DEFAULT_TOAST_SECONDS) -> None:
        self.display_seconds = display_seconds
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns the matching unsubscribe handle."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def publish(self, level: NotificationLevel | str, message: str) -> NotificationItem:
        item = NotificationItem(id=_new_id(), level=NotificationLevel(level), message=message)
        dlog("console_notification", {"id": item.id, "level": item.level.value, "message": message})
        # Listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception as e:
                dlog("console_notification_listener_error", str(e))
        return item

    def success(self, message: str) -> NotificationItem:
        return self.publish(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> NotificationItem:
        return self.publish(NotificationLevel.ERROR, message)

    def info(self, message: str) -> NotificationItem:
        return self.publish(NotificationLevel.INFO, message)


class NotificationFeed:
    """Display list fed by a bus; each item expires on its own timer.

    Must be created while an event loop is running.
    """

    def __init__(self, bus: NotificationBus, display_seconds: Optional[float] = None) -> None:
        self._loop = asyncio.get_running_loop()
        self.display_seconds = bus.display_seconds if display_seconds is None else display_seconds
        self._items: List[NotificationItem] = []
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._unsubscribe: Optional[Callable[[], None]] = bus.subscribe(self._on_item)

    @property
    def items(self) -> List[NotificationItem]:
        return list(self._items)

    def _on_item(self, item: NotificationItem) -> None:
        self._items.append(item)
        self._timers[item.id] = self._loop.call_later(self.display_seconds, self._expire, item.id)

    def _expire(self, item_id: str) -> None:
        self._timers.pop(item_id, None)
        self._items = [i for i in self._items if i.id != item_id]

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._items = []

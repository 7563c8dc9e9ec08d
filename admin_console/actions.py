from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set, Union

from .errors import RequestError, ValidationError
from .config import dlog
from .notifications import NotificationBus


@dataclass(frozen=True)
class Outcome:
    """Result of one console action, as seen by the caller."""

    ok: bool
    value: Any = None
    error: Optional[str] = None
    skipped: bool = False


SuccessMessage = Union[str, Callable[[Any], str], None]


class ActionRunner:
    """Runs console actions as validate/mutate, then reload, then exactly one notification.

    An action key that is still in flight is not started a second time.
    """

    def __init__(self, bus: NotificationBus) -> None:
        self.bus = bus
        self._pending: Set[str] = set()

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def run(
        self,
        key: str,
        action: Callable[[], Awaitable[Any]],
        *,
        reload: Optional[Callable[[], Awaitable[Any]]] = None,
        success: SuccessMessage = None,
        failure: str = "Request failed",
        failure_notice: Optional[str] = None,
    ) -> Outcome:
        if key in self._pending:
            dlog("console_action_skipped", key)
            message = f"{key} already in progress"
            self.bus.info(message)
            return Outcome(ok=False, error=message, skipped=True)

        self._pending.add(key)
        value = None
        try:
            try:
                value = await action()
            except (ValidationError, RequestError) as e:
                return self._fail(key, str(e) or failure, failure_notice)

            if reload is not None:
                try:
                    await reload()
                except RequestError as e:
                    return self._fail(key, str(e) or failure, failure_notice, value=value)

            message = success(value) if callable(success) else success
            if message:
                self.bus.success(message)
            dlog("console_action_ok", key)
            return Outcome(ok=True, value=value)
        finally:
            self._pending.discard(key)

    def _fail(self, key: str, message: str, notice: Optional[str], value: Any = None) -> Outcome:
        dlog("console_action_failed", {"action": key, "error": message})
        self.bus.error(notice or message)
        return Outcome(ok=False, value=value, error=message)


Clipboard = Callable[[str], Union[bool, Awaitable[bool]]]


async def copy_to_clipboard(bus: NotificationBus, clipboard: Clipboard, text: str) -> bool:
    """Hand text to the platform clipboard and report the boolean result."""
    result = clipboard(text)
    if inspect.isawaitable(result):
        result = await result
    if result:
        bus.success("Copied to clipboard")
        return True
    bus.error("Failed to copy to clipboard")
    return False


async def settle_all(*aws: Awaitable[Any]) -> list:
    """Await all reloads, then re-raise the first failure once every one has settled."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)

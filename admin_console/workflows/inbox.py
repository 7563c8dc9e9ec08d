from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from admin_console.actions import ActionRunner, Outcome, settle_all
from admin_console.api_client import RequestClient
from admin_console.list_state import ListState, rows_from_payload
from admin_console.notifications import NotificationBus
from admin_console.errors import ValidationError


INBOX_LIMIT = 100


@dataclass(frozen=True)
class InboxMessageForm:
    title: str = ""
    content: str = ""
    type: str = "INFO"
    payload: Optional[Dict[str, Any]] = field(default=None)

    def body(self) -> dict:
        if not self.title.strip():
            raise ValidationError("Title is required", field="title")
        if not self.content.strip():
            raise ValidationError("Content is required", field="content")
        body: Dict[str, Any] = {"title": self.title.strip(), "content": self.content, "type": self.type or "INFO"}
        if self.payload is not None:
            body["payload"] = self.payload
        return body


class InboxWorkflows:
    def __init__(
        self,
        client: RequestClient,
        bus: NotificationBus,
        *,
        runner: ActionRunner | None = None,
        page_size: int = 20,
    ) -> None:
        self._client = client
        self._bus = bus
        self._runner = runner or ActionRunner(bus)
        self.messages = ListState(page_size=page_size)
        self.unread_count = 0

    async def reload(self) -> ListState:
        listing, counter = await settle_all(
            self._client.call("/inbox", params={"limit": str(INBOX_LIMIT)}),
            self._client.call("/inbox/unread-count"),
        )
        self.messages = self.messages.reload(rows_from_payload(listing))
        raw = counter.get("unreadCount") if isinstance(counter, Mapping) else 0
        try:
            self.unread_count = int(raw or 0)
        except (TypeError, ValueError):
            self.unread_count = 0
        return self.messages

    async def load(self) -> Outcome:
        return await self._runner.run("Load inbox", self.reload, failure="Failed to load inbox")

    async def send_message(self, form: InboxMessageForm) -> Outcome:
        async def action() -> Any:
            return await self._client.call("/inbox/send", method="POST", body=form.body())

        return await self._runner.run(
            "Send message",
            action,
            reload=self.reload,
            success="Message sent to inbox",
            failure="Failed to send message",
        )

    async def mark_read(self, message_id: Any) -> Outcome:
        async def action() -> Any:
            return await self._client.call("/inbox/read", method="POST", body={"messageIds": [message_id]})

        return await self._runner.run(
            f"Mark message {message_id} read",
            action,
            reload=self.reload,
            success="Message marked as read",
            failure="Failed to mark message as read",
        )

    async def mark_all_read(self) -> Outcome:
        async def action() -> Any:
            return await self._client.call("/inbox/read-all", method="POST")

        return await self._runner.run(
            "Mark all read",
            action,
            reload=self.reload,
            success="All messages marked as read",
            failure="Failed to mark all as read",
        )

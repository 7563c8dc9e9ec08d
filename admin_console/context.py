from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from admin_console.actions import ActionRunner
from admin_console.api_client import RequestClient
from admin_console.config import ConsoleConfig, dlog, load_console_config
from admin_console.notifications import NotificationBus, NotificationFeed
from admin_console.session import Session, SessionManager
from admin_console.workflows import AccountWorkflows, InboxWorkflows, SecurityWorkflows, TokenLifecycleWorkflows


@dataclass
class ConsoleContext:
    """Everything a console page needs, with an explicit start and close."""

    config: ConsoleConfig
    client: RequestClient
    bus: NotificationBus
    runner: ActionRunner
    session: SessionManager
    tokens: TokenLifecycleWorkflows
    security: SecurityWorkflows
    accounts: AccountWorkflows
    inbox: InboxWorkflows
    feeds: List[NotificationFeed] = field(default_factory=list)
    started: bool = False
    closed: bool = False

    async def start(self) -> Optional[Session]:
        """Run the one bootstrap probe of this context's lifetime."""
        if self.started:
            return self.session.session
        self.started = True
        return await self.session.bootstrap()

    def open_feed(self) -> NotificationFeed:
        feed = NotificationFeed(self.bus)
        self.feeds.append(feed)
        return feed

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for feed in self.feeds:
            feed.close()
        self.feeds.clear()
        self.session.dispose()
        await self.client.aclose()
        dlog("console_closed", {"base_url": self.config.base_url})

    async def __aenter__(self) -> "ConsoleContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_console(
    config: ConsoleConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ConsoleContext:
    cfg = config or load_console_config()
    client = RequestClient(
        base_url=cfg.base_url,
        api_prefix=cfg.api_prefix,
        timeout=cfg.timeout,
        transport=transport,
    )
    bus = NotificationBus(display_seconds=cfg.toast_seconds)
    runner = ActionRunner(bus)
    return ConsoleContext(
        config=cfg,
        client=client,
        bus=bus,
        runner=runner,
        session=SessionManager(client, bus, runner),
        tokens=TokenLifecycleWorkflows(
            client,
            bus,
            runner=runner,
            device_page_size=cfg.device_page_size,
            token_page_size=cfg.token_page_size,
        ),
        security=SecurityWorkflows(client, bus, runner=runner),
        accounts=AccountWorkflows(client, bus, runner=runner),
        inbox=InboxWorkflows(client, bus, runner=runner),
    )

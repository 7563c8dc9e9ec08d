from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from admin_console.actions import ActionRunner, Clipboard, Outcome, copy_to_clipboard, settle_all
from admin_console.api_client import RequestClient
from admin_console.config import DEFAULT_DEVICE_PAGE_SIZE, DEFAULT_TOKEN_PAGE_SIZE, dlog
from admin_console.list_state import ListState, rows_from_payload
from admin_console.notifications import NotificationBus
from admin_console.errors import ValidationError
from admin_console.ttl import TtlParts, to_seconds


class TokenSource(str, Enum):
    APP_ACCESS = "APP_ACCESS"
    OAUTH_ACCESS = "OAUTH_ACCESS"
    OAUTH_REFRESH = "OAUTH_REFRESH"


class TokenStatus(str, Enum):
    ALL = "ALL"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


MAX_TOKEN_LIMIT = 200
DEFAULT_TOKEN_LIMIT = 100


def _default_sources() -> FrozenSet[TokenSource]:
    return frozenset(TokenSource)


@dataclass(frozen=True)
class TokenFilter:
    sources: FrozenSet[TokenSource] = field(default_factory=_default_sources)
    status: TokenStatus = TokenStatus.ALL
    limit: int = DEFAULT_TOKEN_LIMIT

    def __post_init__(self) -> None:
        if not 1 <= self.limit <= MAX_TOKEN_LIMIT:
            raise ValidationError(f"Limit must be between 1 and {MAX_TOKEN_LIMIT}", field="limit")

    @classmethod
    def parse(cls, sources: Optional[str], status: Optional[str], limit: Any) -> "TokenFilter":
        """Build a filter from raw form text; blank fields take the defaults."""
        picked = set()
        for part in (sources or "").split(","):
            name = part.strip().upper()
            if not name:
                continue
            try:
                picked.add(TokenSource(name))
            except ValueError:
                raise ValidationError(f"Unknown token source: {part.strip()}", field="sources") from None

        status_text = (status or "").strip().upper() or TokenStatus.ALL.value
        try:
            status_value = TokenStatus(status_text)
        except ValueError:
            raise ValidationError(f"Unknown token status: {status}", field="status") from None

        limit_text = "" if limit is None else str(limit).strip()
        if not limit_text:
            limit_value = DEFAULT_TOKEN_LIMIT
        elif limit_text.isdecimal():
            limit_value = int(limit_text)
        else:
            raise ValidationError(f"Limit must be between 1 and {MAX_TOKEN_LIMIT}", field="limit")

        return cls(sources=frozenset(picked) or _default_sources(), status=status_value, limit=limit_value)

    def query_params(self) -> Dict[str, str]:
        sources = self.sources or _default_sources()
        return {
            "sources": ",".join(s.value for s in TokenSource if s in sources),
            "status": self.status.value,
            "limit": str(self.limit),
        }


def token_preview(token: Optional[str]) -> str:
    if not token:
        return "-"
    return f"{token[:20]}..." if len(token) > 20 else token


class TokenLifecycleWorkflows:
    """Device and token actions: issue, refresh, revoke, filter and reload.

    State changes only come from full reloads after the server confirms a
    mutation; nothing here patches the lists locally.
    """

    def __init__(
        self,
        client: RequestClient,
        bus: NotificationBus,
        *,
        runner: ActionRunner | None = None,
        device_page_size: int = DEFAULT_DEVICE_PAGE_SIZE,
        token_page_size: int = DEFAULT_TOKEN_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._bus = bus
        self._runner = runner or ActionRunner(bus)
        self.devices = ListState(page_size=device_page_size)
        self.tokens = ListState(page_size=token_page_size)
        self.token_filter = TokenFilter()
        self.issue_result: Any = None
        self.refresh_result: Any = None
        self.refresh_device_token = ""

    # ---------- reloads ----------
    async def reload_devices(self, *, reset_page: bool = False) -> ListState:
        payload = await self._client.call("/security/app-devices")
        self.devices = self.devices.reload(rows_from_payload(payload), reset_page=reset_page)
        return self.devices

    async def reload_tokens(self, token_filter: TokenFilter | None = None, *, reset_page: bool = False) -> ListState:
        active = token_filter or self.token_filter
        payload = await self._client.call("/security/tokens", params=active.query_params())
        self.tokens = self.tokens.reload(rows_from_payload(payload), reset_page=reset_page)
        return self.tokens

    async def _reload_both(self, reset_page: bool) -> None:
        await settle_all(self.reload_devices(reset_page=reset_page), self.reload_tokens(reset_page=reset_page))

    async def load_all(self) -> Outcome:
        return await self._runner.run(
            "Load app access",
            lambda: self._reload_both(False),
            failure="Failed to load app access data",
        )

    # ---------- mutations ----------
    def _keep_device_token(self, result: Any) -> None:
        if isinstance(result, Mapping) and result.get("deviceToken"):
            self.refresh_device_token = str(result["deviceToken"])

    async def issue_app_token(self, master_password: str, device_name: str, ttl: TtlParts) -> Outcome:
        async def action() -> Any:
            seconds = to_seconds(ttl)
            if not (master_password or "").strip():
                raise ValidationError("Master password is required", field="masterPassword")
            if not (device_name or "").strip():
                raise ValidationError("Device name is required", field="deviceName")
            result = await self._client.call(
                "/security/app-tokens/issue",
                method="POST",
                body={"masterPassword": master_password, "deviceName": device_name.strip(), "accessTtlSeconds": seconds},
            )
            self.issue_result = result
            self._keep_device_token(result)
            dlog("console_token_issued", {"device": device_name, "ttl": seconds})
            return result

        return await self._runner.run(
            "Issue app token",
            action,
            reload=lambda: self._reload_both(True),
            success="Issued app access token successfully",
            failure="Failed to issue app token",
        )

    async def refresh_app_token(self, ttl: TtlParts, device_token: Optional[str] = None) -> Outcome:
        async def action() -> Any:
            seconds = to_seconds(ttl)
            token = (device_token if device_token is not None else self.refresh_device_token).strip()
            if not token:
                raise ValidationError("Device token is required", field="deviceToken")
            result = await self._client.call(
                "/security/app-tokens/refresh",
                method="POST",
                body={"deviceToken": token, "accessTtlSeconds": seconds},
            )
            self.refresh_result = result
            self._keep_device_token(result)
            dlog("console_token_refreshed", {"device_token": token_preview(token), "ttl": seconds})
            return result

        return await self._runner.run(
            "Refresh app token",
            action,
            reload=lambda: self._reload_both(True),
            success="Refreshed app access token successfully",
            failure="Failed to refresh app token",
        )

    async def revoke_device(self, device: Mapping[str, Any]) -> Outcome:
        device_id = device.get("deviceId")
        label = device.get("deviceName") or device_id

        async def action() -> Any:
            if not device_id:
                raise ValidationError("Device id is required", field="deviceId")
            return await self._client.call(f"/security/app-devices/{device_id}/revoke", method="POST")

        return await self._runner.run(
            f"Revoke device {device_id}",
            action,
            reload=lambda: self._reload_both(True),
            success=f"Device revoked: {label}",
            failure="Failed to revoke device",
        )

    # ---------- filter and plain refreshes ----------
    async def apply_token_filter(self, token_filter: TokenFilter) -> Outcome:
        async def action() -> ListState:
            self.token_filter = token_filter
            return await self.reload_tokens(token_filter, reset_page=True)

        return await self._runner.run(
            "Apply token filter",
            action,
            success="Token filter applied",
            failure="Failed to apply token filter",
        )

    async def apply_token_filter_form(self, sources: Optional[str], status: Optional[str], limit: Any) -> Outcome:
        async def action() -> ListState:
            token_filter = TokenFilter.parse(sources, status, limit)
            self.token_filter = token_filter
            return await self.reload_tokens(token_filter, reset_page=True)

        return await self._runner.run(
            "Apply token filter",
            action,
            success="Token filter applied",
            failure="Failed to apply token filter",
        )

    async def refresh_devices(self) -> Outcome:
        return await self._runner.run(
            "Refresh app devices",
            self.reload_devices,
            success="App devices refreshed",
            failure="Failed to refresh app devices",
        )

    async def refresh_tokens(self) -> Outcome:
        return await self._runner.run(
            "Refresh token audit",
            self.reload_tokens,
            success="Token audit refreshed",
            failure="Failed to refresh token audit",
        )

    # ---------- paging ----------
    def next_device_page(self) -> ListState:
        self.devices = self.devices.next()
        return self.devices

    def prev_device_page(self) -> ListState:
        self.devices = self.devices.prev()
        return self.devices

    def next_token_page(self) -> ListState:
        self.tokens = self.tokens.next()
        return self.tokens

    def prev_token_page(self) -> ListState:
        self.tokens = self.tokens.prev()
        return self.tokens

    async def copy_token(self, token: str, clipboard: Clipboard) -> bool:
        return await copy_to_clipboard(self._bus, clipboard, token)

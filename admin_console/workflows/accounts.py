from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from admin_console.actions import ActionRunner, Clipboard, Outcome, copy_to_clipboard, settle_all
from admin_console.api_client import RequestClient
from admin_console.list_state import ListState, rows_from_payload
from admin_console.notifications import NotificationBus
from admin_console.errors import ValidationError


ACTIVE = "ACTIVE"
DISABLED = "DISABLED"


@dataclass(frozen=True)
class PromptResult:
    """Answer from an input dialog: a value, or None when the user cancelled."""

    value: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.value is None

    @classmethod
    def cancel(cls) -> "PromptResult":
        return cls(None)


Prompt = Callable[[str], Awaitable[PromptResult]]


@dataclass(frozen=True)
class UserForm:
    username: str = ""
    password: str = ""
    display_name: str = ""
    status: str = ACTIVE

    def payload(self) -> dict:
        if not self.username.strip():
            raise ValidationError("Username is required", field="username")
        if not self.password:
            raise ValidationError("Password is required", field="password")
        return {
            "username": self.username.strip(),
            "password": self.password,
            "displayName": self.display_name,
            "status": self.status,
        }


def _split_csv(text: str) -> List[str]:
    return [part.strip() for part in (text or "").split(",") if part.strip()]


@dataclass(frozen=True)
class ClientForm:
    client_id: str = ""
    client_name: str = ""
    client_secret: str = ""
    grant_types: str = "authorization_code,refresh_token"
    redirect_uris: str = "myapp://oauthredirect"
    scopes: str = "openid,profile"
    require_pkce: bool = True
    status: str = ACTIVE

    def payload(self) -> dict:
        if not self.client_id.strip():
            raise ValidationError("Client id is required", field="clientId")
        if not self.client_name.strip():
            raise ValidationError("Client name is required", field="clientName")
        grant_types = _split_csv(self.grant_types)
        scopes = _split_csv(self.scopes)
        if not grant_types:
            raise ValidationError("At least one grant type is required", field="grantTypes")
        if not scopes:
            raise ValidationError("At least one scope is required", field="scopes")
        return {
            "clientId": self.client_id.strip(),
            "clientName": self.client_name.strip(),
            "clientSecret": self.client_secret or None,
            "grantTypes": grant_types,
            "redirectUris": _split_csv(self.redirect_uris),
            "scopes": scopes,
            "requirePkce": bool(self.require_pkce),
            "status": self.status,
        }


def _toggled(record: Mapping[str, Any]) -> str:
    return DISABLED if record.get("status") == ACTIVE else ACTIVE


class AccountWorkflows:
    """User accounts and OAuth client registrations."""

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
        self.users = ListState(page_size=page_size)
        self.clients = ListState(page_size=page_size)
        self.new_secret = ""

    async def reload_users(self) -> ListState:
        self.users = self.users.reload(rows_from_payload(await self._client.call("/users")))
        return self.users

    async def reload_clients(self) -> ListState:
        self.clients = self.clients.reload(rows_from_payload(await self._client.call("/clients")))
        return self.clients

    async def load_all(self) -> Outcome:
        return await self._runner.run(
            "Load accounts",
            lambda: settle_all(self.reload_users(), self.reload_clients()),
            failure="Failed to load accounts",
        )

    # ---------- users ----------
    async def create_user(self, form: UserForm) -> Outcome:
        async def action() -> Any:
            return await self._client.call("/users", method="POST", body=form.payload())

        return await self._runner.run(
            "Create user",
            action,
            reload=self.reload_users,
            success="User created",
            failure="Failed to create user",
        )

    async def toggle_user_status(self, user: Mapping[str, Any]) -> Outcome:
        status = _toggled(user)
        user_id = user.get("userId")

        async def action() -> Any:
            return await self._client.call(f"/users/{user_id}/status", method="PATCH", body={"status": status})

        return await self._runner.run(
            f"Update user {user_id}",
            action,
            reload=self.reload_users,
            success=f"User {'activated' if status == ACTIVE else 'disabled'}",
            failure="Failed to update user status",
        )

    async def reset_password(self, user: Mapping[str, Any], prompt: Prompt) -> Outcome:
        """Collect a new password through the prompt; cancelling sends nothing."""
        answer = await prompt(f"Reset password for {user.get('username')}")
        if answer.cancelled or not answer.value:
            return Outcome(ok=False, skipped=True)
        user_id = user.get("userId")

        async def action() -> Any:
            return await self._client.call(f"/users/{user_id}/password", method="POST", body={"password": answer.value})

        return await self._runner.run(
            f"Reset password {user_id}",
            action,
            success="Password reset completed",
            failure="Failed to reset password",
        )

    # ---------- clients ----------
    async def create_client(self, form: ClientForm) -> Outcome:
        async def action() -> Any:
            return await self._client.call("/clients", method="POST", body=form.payload())

        return await self._runner.run(
            "Create client",
            action,
            reload=self.reload_clients,
            success="Client created",
            failure="Failed to create client",
        )

    async def toggle_client_status(self, oauth_client: Mapping[str, Any]) -> Outcome:
        status = _toggled(oauth_client)
        client_id = oauth_client.get("clientId")

        async def action() -> Any:
            return await self._client.call(f"/clients/{client_id}/status", method="PATCH", body={"status": status})

        return await self._runner.run(
            f"Update client {client_id}",
            action,
            reload=self.reload_clients,
            success=f"Client {'activated' if status == ACTIVE else 'disabled'}",
            failure="Failed to update client status",
        )

    async def rotate_secret(self, oauth_client: Mapping[str, Any]) -> Outcome:
        client_id = oauth_client.get("clientId")

        async def action() -> str:
            result = await self._client.call(f"/clients/{client_id}/secret/rotate", method="POST")
            data = result if isinstance(result, Mapping) else {}
            self.new_secret = f"{data.get('clientId', client_id)}: {data.get('newClientSecret')}"
            return self.new_secret

        return await self._runner.run(
            f"Rotate secret {client_id}",
            action,
            success="Client secret rotated",
            failure="Failed to rotate secret",
        )

    async def copy_secret(self, clipboard: Clipboard) -> bool:
        if not self.new_secret:
            return False
        return await copy_to_clipboard(self._bus, clipboard, self.new_secret)

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from .actions import ActionRunner, Outcome
from .api_client import RequestClient
from .errors import RequestError
from .config import dlog
from .notifications import NotificationBus


class SessionStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class Session:
    identity: str
    authenticated: bool = True
    issued_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["Session"]:
        if not isinstance(payload, dict):
            return None
        identity = payload.get("username") or payload.get("identity")
        if not identity:
            return None
        issued_at = payload.get("issuedAt")
        return cls(identity=str(identity), authenticated=True, issued_at=str(issued_at) if issued_at else None)


ChangeListener = Callable[[SessionStatus, Optional[Session]], None]


class SessionManager:
    """Owns the authenticated-session value.

    The session is only ever replaced as a whole or cleared. Bootstrap is a
    single probe of /session/me; callers are expected to run it once.
    """

    def __init__(self, client: RequestClient, bus: NotificationBus, runner: ActionRunner | None = None) -> None:
        self._client = client
        self._bus = bus
        self._runner = runner or ActionRunner(bus)
        self._status = SessionStatus.LOADING
        self._session: Optional[Session] = None
        self._listeners: List[ChangeListener] = []
        self._disposed = False

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def authenticated(self) -> bool:
        return self._status is SessionStatus.AUTHENTICATED

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, session: Optional[Session]) -> None:
        self._session = session
        self._status = SessionStatus.AUTHENTICATED if session else SessionStatus.ANONYMOUS
        dlog("console_session", {"status": self._status.value, "identity": session.identity if session else None})
        for listener in list(self._listeners):
            try:
                listener(self._status, session)
            except Exception as e:
                dlog("console_session_listener_error", str(e))

    def _check_alive(self) -> None:
        if self._disposed:
            raise RuntimeError("Session manager has been disposed.")

    async def bootstrap(self) -> Optional[Session]:
        """Probe the session endpoint; any failure means anonymous, never an error."""
        self._check_alive()
        try:
            payload = await self._client.call("/session/me")
        except RequestError as e:
            dlog("console_session_probe_failed", str(e))
            self._set(None)
            return None
        self._set(Session.from_payload(payload))
        return self._session

    async def refresh(self) -> Optional[Session]:
        return await self.bootstrap()

    async def login(self, username: str, password: str) -> Outcome:
        self._check_alive()

        async def action() -> Session:
            payload = await self._client.call(
                "/session/login",
                method="POST",
                body={"username": username, "password": password},
            )
            session = Session.from_payload(payload) or Session(identity=username)
            self._set(session)
            return session

        return await self._runner.run(
            "Sign in",
            action,
            success="Signed in successfully",
            failure="Sign in failed",
            failure_notice="Sign in failed",
        )

    async def logout(self) -> Outcome:
        """Call the logout endpoint, then clear local state whatever the answer was."""
        self._check_alive()

        async def action() -> None:
            try:
                await self._client.call("/session/logout", method="POST")
            finally:
                self._set(None)

        return await self._runner.run("Sign out", action, success="Signed out", failure="Sign out failed")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._session = None
        self._status = SessionStatus.ANONYMOUS
        self._listeners.clear()
        self._disposed = True

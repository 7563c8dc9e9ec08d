import itertools
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import bcrypt
import httpx
import pytest
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from admin_console.config import ConsoleConfig
from admin_console.context import create_console


ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "password"
MASTER_PASSWORD = "master-secret"
SESSION_COOKIE = "ADMIN_SESSION"


@dataclass
class FakeAuthService:
    """In-memory stand-in for the auth service behind the admin API."""

    password_hash: bytes = field(default_factory=lambda: bcrypt.hashpw(ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=4)))
    sessions: Dict[str, str] = field(default_factory=dict)
    devices: List[dict] = field(default_factory=list)
    tokens: List[dict] = field(default_factory=list)
    users: List[dict] = field(default_factory=list)
    clients: List[dict] = field(default_factory=list)
    inbox: List[dict] = field(default_factory=list)
    allow_new_device_login: bool = True
    calls: List[tuple] = field(default_factory=list)
    fail_paths: Dict[str, int] = field(default_factory=dict)
    bcrypt_override: Optional[str] = None
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_device(self, name: str, status: str = "ACTIVE") -> dict:
        device = {
            "deviceId": self.next_id("dev"),
            "deviceName": name,
            "deviceToken": secrets.token_urlsafe(16),
            "status": status,
            "lastSeenAt": None,
            "createAt": "2026-01-01T00:00:00Z",
        }
        self.devices.append(device)
        self.add_token(device, "APP_ACCESS", "REVOKED" if status == "REVOKED" else "ACTIVE")
        return device

    def add_token(self, device: Optional[dict], source: str, status: str = "ACTIVE", ttl: int = 600) -> dict:
        token = {
            "tokenId": self.next_id("tok"),
            "source": source,
            "status": status,
            "deviceId": device["deviceId"] if device else None,
            "deviceName": device["deviceName"] if device else None,
            "token": secrets.token_urlsafe(24),
            "ttl": ttl,
        }
        self.tokens.append(token)
        return token

    def requests_to(self, path: str, method: str = "GET") -> List[tuple]:
        return [c for c in self.calls if c[0] == method and c[1] == "/admin/api" + path]


def public_device(device: dict) -> dict:
    return {k: v for k, v in device.items() if k != "deviceToken"}


def create_fake_backend(service: FakeAuthService) -> FastAPI:
    app = FastAPI()

    @app.exception_handler(HTTPException)
    async def error_body(request: Request, exc: HTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.middleware("http")
    async def record(request: Request, call_next):
        service.calls.append((request.method, request.url.path, dict(request.query_params)))
        status = service.fail_paths.get(request.url.path)
        if status:
            return JSONResponse({"error": f"forced failure on {request.url.path}"}, status_code=status)
        return await call_next(request)

    def require_session(request: Request) -> str:
        user = service.sessions.get(request.cookies.get(SESSION_COOKIE) or "")
        if not user:
            raise HTTPException(status_code=401, detail="authentication required")
        return user

    api = "/admin/api"
    auth = [Depends(require_session)]

    # ---------- session ----------
    @app.post(f"{api}/session/login")
    async def login(payload: dict):
        username = payload.get("username")
        password = (payload.get("password") or "").encode()
        if username != ADMIN_USERNAME or not bcrypt.checkpw(password, service.password_hash):
            raise HTTPException(status_code=401, detail="invalid credentials")
        sid = secrets.token_hex(8)
        service.sessions[sid] = username
        resp = JSONResponse({"username": username, "issuedAt": "2026-10-18T00:00:00Z"})
        resp.set_cookie(SESSION_COOKIE, sid, path="/")
        return resp

    @app.post(f"{api}/session/logout")
    async def logout(request: Request):
        service.sessions.pop(request.cookies.get(SESSION_COOKIE) or "", None)
        resp = Response(status_code=204)
        resp.delete_cookie(SESSION_COOKIE, path="/")
        return resp

    @app.get(f"{api}/session/me")
    async def me(user: str = Depends(require_session)):
        return {"username": user, "issuedAt": "2026-10-18T00:00:00Z"}

    # ---------- users ----------
    @app.get(f"{api}/users", dependencies=auth)
    async def list_users():
        return service.users

    @app.post(f"{api}/users", dependencies=auth)
    async def create_user(payload: dict):
        if any(u["username"] == payload.get("username") for u in service.users):
            raise HTTPException(status_code=409, detail="resource already exists")
        user = {
            "userId": service.next_id("user"),
            "username": payload["username"],
            "displayName": payload.get("displayName"),
            "status": payload.get("status") or "ACTIVE",
        }
        service.users.append(user)
        return user

    @app.patch(f"{api}/users/{{user_id}}/status", dependencies=auth)
    async def user_status(user_id: str, payload: dict):
        for user in service.users:
            if user["userId"] == user_id:
                user["status"] = payload["status"]
                return user
        raise HTTPException(status_code=404, detail="user not found")

    @app.post(f"{api}/users/{{user_id}}/password", dependencies=auth)
    async def user_password(user_id: str, payload: dict):
        if not payload.get("password"):
            raise HTTPException(status_code=400, detail="password must not be blank")
        return {"userId": user_id, "updated": True}

    # ---------- clients ----------
    @app.get(f"{api}/clients", dependencies=auth)
    async def list_clients():
        return service.clients

    @app.post(f"{api}/clients", dependencies=auth)
    async def create_client(payload: dict):
        client = dict(payload)
        client.pop("clientSecret", None)
        service.clients.append(client)
        return client

    @app.patch(f"{api}/clients/{{client_id}}/status", dependencies=auth)
    async def client_status(client_id: str, payload: dict):
        for client in service.clients:
            if client["clientId"] == client_id:
                client["status"] = payload["status"]
                return client
        raise HTTPException(status_code=404, detail="client not found")

    @app.post(f"{api}/clients/{{client_id}}/secret/rotate", dependencies=auth)
    async def rotate_secret(client_id: str):
        return {"clientId": client_id, "newClientSecret": "rotated-secret"}

    # ---------- inbox ----------
    @app.get(f"{api}/inbox", dependencies=auth)
    async def list_inbox(limit: int = 100):
        return service.inbox[:limit]

    @app.get(f"{api}/inbox/unread-count", dependencies=auth)
    async def unread_count():
        return {"unreadCount": sum(1 for m in service.inbox if not m["read"])}

    @app.post(f"{api}/inbox/send", dependencies=auth)
    async def send(payload: dict):
        message = {"messageId": service.next_id("msg"), "title": payload["title"], "content": payload["content"], "type": payload.get("type"), "read": False}
        service.inbox.append(message)
        return message

    @app.post(f"{api}/inbox/read", dependencies=auth)
    async def mark_read(payload: dict):
        ids = set(payload.get("messageIds") or [])
        for message in service.inbox:
            if message["messageId"] in ids:
                message["read"] = True
        return Response(status_code=204)

    @app.post(f"{api}/inbox/read-all", dependencies=auth)
    async def mark_all_read():
        for message in service.inbox:
            message["read"] = True
        return Response(status_code=204)

    # ---------- security ----------
    @app.get(f"{api}/security/jwks", dependencies=auth)
    async def jwks():
        return {"jwks": {"keys": [{"kty": "RSA", "kid": "k1", "e": "AQAB", "n": "sXchDaQebHnPiGvyDOAT4saGEUetSyo9"}]}}

    @app.get(f"{api}/security/new-device-access", dependencies=auth)
    async def get_new_device_access():
        return {"allowNewDeviceLogin": service.allow_new_device_login}

    @app.put(f"{api}/security/new-device-access", dependencies=auth)
    async def put_new_device_access(payload: dict):
        service.allow_new_device_login = bool(payload.get("allowNewDeviceLogin"))
        return {"allowNewDeviceLogin": service.allow_new_device_login}

    @app.get(f"{api}/security/app-devices", dependencies=auth)
    async def list_devices():
        return [public_device(d) for d in service.devices]

    @app.post(f"{api}/security/app-devices/{{device_id}}/revoke", dependencies=auth)
    async def revoke(device_id: str):
        for device in service.devices:
            if device["deviceId"] == device_id:
                device["status"] = "REVOKED"
                for token in service.tokens:
                    if token["deviceId"] == device_id:
                        token["status"] = "REVOKED"
                return public_device(device)
        raise HTTPException(status_code=404, detail="device not found")

    @app.get(f"{api}/security/tokens", dependencies=auth)
    async def list_tokens(sources: Optional[str] = None, status: str = "ALL", limit: int = 200):
        wanted = set((sources or "APP_ACCESS,OAUTH_ACCESS,OAUTH_REFRESH").split(","))
        rows = [t for t in service.tokens if t["source"] in wanted and (status == "ALL" or t["status"] == status)]
        return rows[:limit]

    @app.post(f"{api}/security/app-tokens/issue", dependencies=auth)
    async def issue(payload: dict):
        if payload.get("masterPassword") != MASTER_PASSWORD:
            raise HTTPException(status_code=400, detail="invalid master password")
        device = service.add_device(payload["deviceName"])
        token = service.tokens[-1]
        token["ttl"] = payload.get("accessTtlSeconds")
        return {"deviceId": device["deviceId"], "deviceToken": device["deviceToken"], "accessToken": token["token"], "accessTtlSeconds": token["ttl"]}

    @app.post(f"{api}/security/app-tokens/refresh", dependencies=auth)
    async def refresh(payload: dict):
        for device in service.devices:
            if device["deviceToken"] == payload.get("deviceToken"):
                if device["status"] != "ACTIVE":
                    raise HTTPException(status_code=400, detail="device revoked")
                token = service.add_token(device, "APP_ACCESS", ttl=payload.get("accessTtlSeconds"))
                return {"deviceId": device["deviceId"], "deviceToken": device["deviceToken"], "accessToken": token["token"], "accessTtlSeconds": token["ttl"]}
        raise HTTPException(status_code=400, detail="unknown device token")

    @app.post(f"{api}/security/public-key/generate", dependencies=auth)
    async def public_key(payload: dict):
        if not payload.get("e") or not payload.get("n"):
            raise HTTPException(status_code=400, detail="e and n are required")
        return {"publicKey": f"-----BEGIN PUBLIC KEY-----\n{payload['n']}\n-----END PUBLIC KEY-----"}

    @app.post(f"{api}/security/key-pair/generate", dependencies=auth)
    async def key_pair():
        return {"publicKey": "PUBLIC", "privateKey": "PRIVATE"}

    @app.post(f"{api}/bcrypt/generate", dependencies=auth)
    async def bcrypt_generate(payload: dict):
        if service.bcrypt_override is not None:
            return {"bcrypt": service.bcrypt_override}
        hashed = bcrypt.hashpw(payload["password"].encode(), bcrypt.gensalt(rounds=4)).decode()
        return {"bcrypt": hashed}

    return app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def service():
    return FakeAuthService()


@pytest.fixture
def backend(service):
    return create_fake_backend(service)


@pytest.fixture
def console_config():
    return ConsoleConfig(base_url="http://testserver", toast_seconds=0.05, device_page_size=2, token_page_size=2)


class RecordingTransport(httpx.AsyncBaseTransport):
    """Keeps every outgoing request so tests can inspect headers and bodies."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def transport(backend):
    return RecordingTransport(httpx.ASGITransport(app=backend))


@pytest.fixture
async def console(transport, console_config):
    console = create_console(console_config, transport=transport)
    yield console
    await console.close()


@pytest.fixture
def notices(console):
    seen = []
    console.bus.subscribe(seen.append)
    return seen

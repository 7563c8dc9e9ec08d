from __future__ import annotations

from typing import Any, Mapping, Optional

import bcrypt

from admin_console.actions import ActionRunner, Clipboard, Outcome, copy_to_clipboard, settle_all
from admin_console.api_client import RequestClient
from admin_console.errors import RequestError, ValidationError
from admin_console.notifications import NotificationBus


def _first_jwk(jwks: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(jwks, Mapping):
        return None
    inner = jwks.get("jwks")
    keys = inner.get("keys") if isinstance(inner, Mapping) else None
    if not isinstance(keys, list) or not keys or not isinstance(keys[0], Mapping):
        return None
    return keys[0]


def _hash_matches(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


class SecurityWorkflows:
    """Signing-key material, new-device policy and hashing tools."""

    def __init__(self, client: RequestClient, bus: NotificationBus, *, runner: ActionRunner | None = None) -> None:
        self._client = client
        self._bus = bus
        self._runner = runner or ActionRunner(bus)
        self.jwks: Any = None
        self.new_device_access = False
        self.public_key = ""
        self.key_pair: Any = None
        self.bcrypt_hash = ""

    async def reload_jwks(self) -> Any:
        self.jwks = await self._client.call("/security/jwks")
        return self.jwks

    async def reload_new_device_access(self) -> bool:
        data = await self._client.call("/security/new-device-access")
        self.new_device_access = bool(isinstance(data, Mapping) and data.get("allowNewDeviceLogin"))
        return self.new_device_access

    async def load_all(self) -> Outcome:
        return await self._runner.run(
            "Load security data",
            lambda: settle_all(self.reload_jwks(), self.reload_new_device_access()),
            failure="Failed to load security data",
        )

    async def set_new_device_access(self, enabled: bool) -> Outcome:
        async def action() -> bool:
            result = await self._client.call(
                "/security/new-device-access",
                method="PUT",
                body={"allowNewDeviceLogin": bool(enabled)},
            )
            self.new_device_access = bool(isinstance(result, Mapping) and result.get("allowNewDeviceLogin"))
            return self.new_device_access

        return await self._runner.run(
            "Update new device access",
            action,
            success=lambda value: f"New device access {'enabled' if value else 'disabled'}",
            failure="Failed to update new device access",
        )

    async def generate_public_key(self, e: Optional[str] = None, n: Optional[str] = None) -> Outcome:
        """Convert a JWK modulus/exponent into a PEM key; defaults to the first served JWK."""

        async def action() -> str:
            exponent, modulus = e, n
            if exponent is None and modulus is None:
                key = _first_jwk(self.jwks)
                if not key or not all(isinstance(key.get(part), str) and key.get(part) for part in ("e", "n")):
                    raise ValidationError("No JWK key found", field="jwks")
                exponent, modulus = key["e"], key["n"]
            if not isinstance(exponent, str) or not isinstance(modulus, str) or not exponent.strip() or not modulus.strip():
                raise ValidationError("Both e and n are required", field="jwk")
            result = await self._client.call(
                "/security/public-key/generate",
                method="POST",
                body={"e": exponent.strip(), "n": modulus.strip()},
            )
            self.public_key = str(result.get("publicKey") or "") if isinstance(result, Mapping) else ""
            return self.public_key

        return await self._runner.run(
            "Generate public key",
            action,
            success="Generated public key successfully",
            failure="Failed to generate public key",
        )

    async def generate_key_pair(self) -> Outcome:
        async def action() -> Any:
            self.key_pair = await self._client.call("/security/key-pair/generate", method="POST")
            return self.key_pair

        return await self._runner.run(
            "Generate key pair",
            action,
            success="Generated key pair successfully",
            failure="Failed to generate key pair",
        )

    async def generate_bcrypt(self, password: str) -> Outcome:
        """Ask the server for a bcrypt hash and check it against the password before showing it."""

        async def action() -> str:
            if not password:
                raise ValidationError("Password is required", field="password")
            result = await self._client.call("/bcrypt/generate", method="POST", body={"password": password})
            hashed = result.get("bcrypt") if isinstance(result, Mapping) else None
            if not hashed or not _hash_matches(password, str(hashed)):
                raise RequestError("Generated bcrypt hash does not match the password", payload=result)
            self.bcrypt_hash = str(hashed)
            return self.bcrypt_hash

        return await self._runner.run(
            "Generate bcrypt",
            action,
            success="Generated bcrypt successfully",
            failure="Failed to generate bcrypt",
        )

    async def copy_text(self, text: str, clipboard: Clipboard) -> bool:
        return await copy_to_clipboard(self._bus, clipboard, text)
